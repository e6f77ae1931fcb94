"""StageBackup Archive - metadata capture and tar emission."""

from .emitter import ArchiveEmitter, EmitStats, emit_archive
from .metadata import (
    ArchiveHeader,
    IdentityResolver,
    StaticIdentityResolver,
    SystemIdentityResolver,
    capture,
)

__all__ = [
    "ArchiveEmitter",
    "ArchiveHeader",
    "EmitStats",
    "IdentityResolver",
    "StaticIdentityResolver",
    "SystemIdentityResolver",
    "capture",
    "emit_archive",
]
