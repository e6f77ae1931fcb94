"""Exception hierarchy shared by StageBackup components."""

from stagebackup.core.constants import ErrorCode


class BackupError(Exception):
    """Base error carrying the exit status it should map to."""

    def __init__(self, message: str, error_code: ErrorCode = ErrorCode.FATAL):
        self.message = message
        self.error_code = error_code
        super().__init__(message)


class ArchiveWriteError(BackupError):
    """Archive stream became inconsistent; the run must stop."""

    def __init__(self, message: str, path: str = ""):
        self.path = path
        super().__init__(message, ErrorCode.FATAL)


class SinkError(BackupError):
    """Writing to a destination sink failed."""
