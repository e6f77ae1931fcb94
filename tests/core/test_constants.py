"""Tests for constants and the error hierarchy."""
import os
import stat

from stagebackup.core.constants import (
    DEFAULT_CONFIG,
    ArchiveEntryType,
    ErrorCode,
    Limits,
    is_selectable,
)
from stagebackup.core.errors import ArchiveWriteError, BackupError, SinkError


class TestErrorCode:
    """Tests for exit statuses."""

    def test_values(self):
        """Test exit status numbers."""
        assert ErrorCode.SUCCESS == 0
        assert ErrorCode.USAGE == 1
        assert ErrorCode.FATAL == 2
        assert ErrorCode.INTERRUPTED == 130


class TestIsSelectable:
    """Tests for is_selectable()."""

    def test_selectable_types(self):
        """Test regular files, directories and symlinks."""
        assert is_selectable(stat.S_IFREG | 0o644)
        assert is_selectable(stat.S_IFDIR | 0o755)
        assert is_selectable(stat.S_IFLNK | 0o777)

    def test_special_types(self):
        """Test that devices, fifos and sockets are not selectable."""
        for kind in (stat.S_IFCHR, stat.S_IFBLK, stat.S_IFIFO, stat.S_IFSOCK):
            assert not is_selectable(kind | 0o600)

    def test_device_flag(self):
        """Test is_device."""
        assert ArchiveEntryType.CHAR_DEVICE.is_device
        assert ArchiveEntryType.BLOCK_DEVICE.is_device
        assert not ArchiveEntryType.FIFO.is_device


class TestLimits:
    """Tests for cipher and compression limits."""

    def test_cipher_sizes(self):
        """Test AES-256 sizes."""
        assert Limits.KEY_LENGTH == 32
        assert Limits.IV_LENGTH == 16

    def test_default_level_in_range(self):
        """Test the default compression level."""
        level = DEFAULT_CONFIG["compression"]["level"]
        assert Limits.MIN_COMPRESSION_LEVEL <= level <= Limits.MAX_COMPRESSION_LEVEL


class TestErrors:
    """Tests for the exception hierarchy."""

    def test_backup_error_defaults_to_fatal(self):
        """Test default exit status."""
        error = BackupError("boom")
        assert error.message == "boom"
        assert error.error_code == ErrorCode.FATAL
        assert str(error) == "boom"

    def test_archive_write_error(self):
        """Test that archive write errors keep the path."""
        error = ArchiveWriteError("broken", os.path.join("docs", "a.md"))
        assert error.path == "docs/a.md"
        assert error.error_code == ErrorCode.FATAL

    def test_sink_error_is_backup_error(self):
        """Test the hierarchy."""
        assert issubclass(SinkError, BackupError)
