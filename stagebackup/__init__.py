"""StageBackup - staged include/exclude selection streamed into tar archives.

Rule files list [include] and [exclude] stages of glob patterns. The
stages are compiled into an ordered file list, and each file is written
with its metadata into a PAX tar stream that is compressed and, optionally,
encrypted before reaching one or more outputs.
"""

from stagebackup.core.constants import STAGEBACKUP_VERSION

__version__ = STAGEBACKUP_VERSION

__all__ = ["__version__"]
