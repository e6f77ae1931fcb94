"""Tests for archive header capture."""
import os
import stat
import tarfile

import pytest

from stagebackup.archive.metadata import (
    ArchiveHeader,
    StaticIdentityResolver,
    SystemIdentityResolver,
    capture,
)
from stagebackup.core.constants import ArchiveEntryType


def make_header(**overrides):
    values = dict(
        path="dev/null",
        mode=stat.S_IFCHR | 0o666,
        uid=0,
        gid=0,
        uname="root",
        gname="root",
        size=0,
        entry_type=ArchiveEntryType.CHAR_DEVICE,
        linkname="",
        mtime=1700000000.25,
        atime=1700000001.5,
        ctime=1700000002.0,
        devmajor=1,
        devminor=3,
    )
    values.update(overrides)
    return ArchiveHeader(**values)


class TestCapture:
    """Tests for capture()."""

    def test_regular_file(self, source_dir, resolver):
        """Test capturing a regular file."""
        path = source_dir / "a.txt"
        st = os.lstat(path)

        header = capture(str(path), name="a.txt", resolver=resolver)

        assert header.path == "a.txt"
        assert header.entry_type is ArchiveEntryType.REGULAR
        assert header.size == len("Hello World")
        assert header.mode == st.st_mode
        assert header.uid == st.st_uid
        assert header.uname == "tester"
        assert header.gname == "testers"
        assert header.mtime == st.st_mtime
        assert header.has_body

    def test_symlink_is_not_followed(self, source_dir, resolver):
        """Test that a symlink is captured as a link."""
        header = capture(str(source_dir / "link.txt"), name="link.txt", resolver=resolver)

        assert header.entry_type is ArchiveEntryType.SYMLINK
        assert header.linkname == "a.txt"
        assert not header.has_body
        assert header.body_size == 0

    def test_directory(self, source_dir, resolver):
        """Test capturing a directory."""
        header = capture(str(source_dir / "docs"), resolver=resolver)

        assert header.entry_type is ArchiveEntryType.DIRECTORY
        assert header.path == str(source_dir / "docs")
        assert header.body_size == 0

    def test_fifo(self, temp_dir, resolver):
        """Test capturing a fifo."""
        os.mkfifo(temp_dir / "pipe")
        header = capture(str(temp_dir / "pipe"), resolver=resolver)
        assert header.entry_type is ArchiveEntryType.FIFO
        assert not header.has_body

    def test_missing_path(self, temp_dir, resolver):
        """Test that a vanished file yields None."""
        assert capture(str(temp_dir / "gone"), resolver=resolver) is None

    def test_unknown_ids_have_empty_names(self, source_dir):
        """Test that unresolved ids leave names empty."""
        header = capture(str(source_dir / "a.txt"), resolver=StaticIdentityResolver())
        assert header.uname == ""
        assert header.gname == ""


class TestToTarInfo:
    """Tests for ArchiveHeader.to_tarinfo()."""

    def test_device_numbers(self):
        """Test that device headers carry major and minor numbers."""
        info = make_header().to_tarinfo()

        assert info.type == tarfile.CHRTYPE
        assert info.devmajor == 1
        assert info.devminor == 3
        assert info.mode == 0o666
        assert info.size == 0

    def test_pax_times(self):
        """Test that access and change times become PAX records."""
        info = make_header().to_tarinfo()
        assert info.pax_headers == {"atime": "1700000001.5", "ctime": "1700000002"}
        assert info.mtime == 1700000000.25

    def test_non_regular_size_is_zero(self):
        """Test that only regular files declare a size."""
        header = make_header(
            entry_type=ArchiveEntryType.SYMLINK,
            mode=stat.S_IFLNK | 0o777,
            size=5,
            linkname="a.txt",
        )
        info = header.to_tarinfo()
        assert info.size == 0
        assert info.linkname == "a.txt"
        assert info.devmajor == 0

    def test_regular_size(self):
        """Test that a regular file keeps its size."""
        header = make_header(
            entry_type=ArchiveEntryType.REGULAR, mode=stat.S_IFREG | 0o644, size=42
        )
        assert header.to_tarinfo().size == 42


class TestIdentityResolvers:
    """Tests for identity resolvers."""

    def test_static_resolver(self):
        """Test fixed lookups."""
        resolver = StaticIdentityResolver({1: "alice"}, {2: "staff"})
        assert resolver.user_name(1) == "alice"
        assert resolver.group_name(2) == "staff"
        assert resolver.user_name(99) == ""

    def test_system_resolver_unknown_id(self):
        """Test that an id missing from the databases maps to an empty name."""
        resolver = SystemIdentityResolver()
        assert resolver.user_name(2**31 - 7) == ""
        assert resolver.group_name(2**31 - 7) == ""

    def test_system_resolver_current_user(self):
        """Test resolving the running user."""
        pwd = pytest.importorskip("pwd")
        try:
            expected = pwd.getpwuid(os.getuid()).pw_name
        except KeyError:
            pytest.skip("running user has no passwd entry")
        assert SystemIdentityResolver().user_name(os.getuid()) == expected


class TestArchiveEntryType:
    """Tests for ArchiveEntryType.from_mode()."""

    @pytest.mark.parametrize(
        "mode,expected",
        [
            (stat.S_IFREG, ArchiveEntryType.REGULAR),
            (stat.S_IFDIR, ArchiveEntryType.DIRECTORY),
            (stat.S_IFLNK, ArchiveEntryType.SYMLINK),
            (stat.S_IFCHR, ArchiveEntryType.CHAR_DEVICE),
            (stat.S_IFBLK, ArchiveEntryType.BLOCK_DEVICE),
            (stat.S_IFIFO, ArchiveEntryType.FIFO),
            (stat.S_IFSOCK, ArchiveEntryType.REGULAR),
        ],
    )
    def test_from_mode(self, mode, expected):
        """Test classification of mode bits."""
        assert ArchiveEntryType.from_mode(mode | 0o644) is expected
