"""
StageBackup Core: Constants and Type Definitions

This module provides system-wide constants, exit codes, archive entry types
and configuration keys.
"""
import stat
import tarfile
from enum import Enum, IntEnum

# Version information
STAGEBACKUP_VERSION = "1.0.0"


# Process exit codes
class ErrorCode(IntEnum):
    """Exit statuses for StageBackup runs."""

    SUCCESS = 0  # Run completed
    USAGE = 1  # Bad arguments or configuration
    FATAL = 2  # Run aborted (sink failure, mid-body I/O error, cipher setup)
    INTERRUPTED = 130  # Ctrl+C


class ArchiveEntryType(Enum):
    """Archive entry types, valued by their tar type flag."""

    REGULAR = tarfile.REGTYPE
    SYMLINK = tarfile.SYMTYPE
    CHAR_DEVICE = tarfile.CHRTYPE
    BLOCK_DEVICE = tarfile.BLKTYPE
    DIRECTORY = tarfile.DIRTYPE
    FIFO = tarfile.FIFOTYPE

    @classmethod
    def from_mode(cls, mode: int) -> "ArchiveEntryType":
        """Classify mode bits. Anything unrecognised is archived as a regular file."""
        if stat.S_ISDIR(mode):
            return cls.DIRECTORY
        elif stat.S_ISLNK(mode):
            return cls.SYMLINK
        elif stat.S_ISBLK(mode):
            return cls.BLOCK_DEVICE
        elif stat.S_ISCHR(mode):
            return cls.CHAR_DEVICE
        elif stat.S_ISFIFO(mode):
            return cls.FIFO
        return cls.REGULAR

    @property
    def is_device(self) -> bool:
        return self in (ArchiveEntryType.BLOCK_DEVICE, ArchiveEntryType.CHAR_DEVICE)


def is_selectable(mode: int) -> bool:
    """Check whether a walked entry may take part in selection.

    Only regular files, directories and symlinks are kept; devices, fifos
    and sockets are skipped without recursion.
    """
    return stat.S_ISREG(mode) or stat.S_ISDIR(mode) or stat.S_ISLNK(mode)


# Resource limits and defaults
class Limits:
    """Sizes and defaults used across the pipeline."""

    # AES-256
    KEY_LENGTH = 32
    IV_LENGTH = 16

    # Compression levels
    MIN_COMPRESSION_LEVEL = 1
    MAX_COMPRESSION_LEVEL = 9
    DEFAULT_COMPRESSION_LEVEL = 6

    # Body copy chunk size
    COPY_BUFFER_SIZE = 64 * 1024


# Configuration keys
class ConfigKey:
    """Configuration key constants."""

    ROOT = "root"
    LISTS = "lists"
    OUTPUTS = "outputs"
    COMPRESSION = "compression"
    ENCRYPTION = "encryption"
    LOGGING = "logging"

    COMPRESSION_ALGORITHM = "algorithm"
    COMPRESSION_LEVEL = "level"

    ENCRYPTION_ENABLED = "enabled"
    ENCRYPTION_MODE = "mode"


DEFAULT_LIST_FILE = "backup.list"

# Default configuration values
DEFAULT_CONFIG = {
    ConfigKey.ROOT: "~",
    ConfigKey.LISTS: [],
    ConfigKey.OUTPUTS: [],
    ConfigKey.COMPRESSION: {
        ConfigKey.COMPRESSION_ALGORITHM: "gzip",
        ConfigKey.COMPRESSION_LEVEL: Limits.DEFAULT_COMPRESSION_LEVEL,
    },
    ConfigKey.ENCRYPTION: {
        ConfigKey.ENCRYPTION_ENABLED: False,
        ConfigKey.ENCRYPTION_MODE: "ctr",
    },
    ConfigKey.LOGGING: {
        "level": "INFO",
        "file": None,
    },
}
