"""StageBackup Core - Shared constants and errors.

Import specific names from submodules:
    from stagebackup.core.constants import ErrorCode, Limits
    from stagebackup.core.errors import BackupError
"""

from stagebackup.core import constants, errors

__all__ = [
    "constants",
    "errors",
]
