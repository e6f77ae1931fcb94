#!/usr/bin/env python3
"""Write selected files into a PAX tar stream.

Failure handling per file:
- metadata cannot be captured      -> reported, file skipped
- header cannot be encoded         -> reported, file skipped
- regular file cannot be opened    -> reported, file skipped
- anything failing once the header
  has gone into the stream         -> ArchiveWriteError, run aborted

Sink failures raised by the layers below propagate unchanged.
"""

import tarfile
from dataclasses import dataclass
from typing import BinaryIO, Iterable, Optional

from stagebackup.archive.metadata import IdentityResolver, SystemIdentityResolver, capture
from stagebackup.core.constants import Limits
from stagebackup.core.errors import ArchiveWriteError, BackupError
from stagebackup.infrastructure.logger import Logger, get_logger
from stagebackup.rules.compiler import SelectedFile


@dataclass
class EmitStats:
    """Counters for one emission run."""

    written: int = 0
    skipped: int = 0
    bytes: int = 0


class ArchiveEmitter:
    """Tar formatter feeding a writable stream one selected file at a time."""

    def __init__(
        self,
        stream: BinaryIO,
        resolver: Optional[IdentityResolver] = None,
        logger: Optional[Logger] = None,
    ):
        """Initialize the emitter.

        Args:
            stream: Writable binary stream (usually a TransformPipeline)
            resolver: Owner/group name lookups
            logger: Logger for skip diagnostics
        """
        self._resolver = resolver or SystemIdentityResolver()
        self._logger = logger or get_logger()
        self._tar = tarfile.open(
            fileobj=stream,
            mode="w|",
            format=tarfile.PAX_FORMAT,
            bufsize=Limits.COPY_BUFFER_SIZE,
        )
        self._tar.copybufsize = Limits.COPY_BUFFER_SIZE
        self._closed = False
        self.stats = EmitStats()

    def emit(self, files: Iterable[SelectedFile]) -> EmitStats:
        """Archive files in order.

        Raises:
            ArchiveWriteError: If a file fails after its header was written
        """
        for selected in files:
            self.emit_file(selected)
        return self.stats

    def emit_file(self, selected: SelectedFile) -> bool:
        """Archive one file.

        Returns:
            True if written, False if skipped
        """
        header = capture(selected.fs_path, name=selected.path, resolver=self._resolver)
        if header is None:
            self._skip(selected, "unable to read file metadata")
            return False

        tarinfo = header.to_tarinfo()
        try:
            tarinfo.tobuf(self._tar.format, self._tar.encoding, self._tar.errors)
        except (ValueError, UnicodeError, tarfile.HeaderError) as e:
            self._skip(selected, f"unable to encode header: {e}")
            return False

        if not header.has_body:
            self._add(tarinfo, None, selected)
            return True

        try:
            source = open(selected.fs_path, "rb")
        except OSError as e:
            self._skip(selected, f"unable to open: {e.strerror or e}")
            return False

        with source:
            self._add(tarinfo, source, selected)
        self.stats.bytes += tarinfo.size
        return True

    def _add(
        self, tarinfo: tarfile.TarInfo, source: Optional[BinaryIO], selected: SelectedFile
    ) -> None:
        try:
            self._tar.addfile(tarinfo, source)
        except BackupError:
            raise
        except (OSError, ValueError, tarfile.TarError) as e:
            self._logger.error(f"Error archiving '{selected.path}': {e}")
            raise ArchiveWriteError(f"Error archiving '{selected.path}': {e}", selected.path) from e
        finally:
            # TarFile records every member it writes; a stream never reads them back
            self._tar.members.clear()

        self.stats.written += 1
        self._logger.debug("Archived", path=selected.path, type=tarinfo.type.decode())

    def _skip(self, selected: SelectedFile, reason: str) -> None:
        self.stats.skipped += 1
        self._logger.warning(f"Skipping '{selected.path}': {reason}", origin=selected.origin)

    def close(self) -> None:
        """Write the end-of-archive blocks and drain the tar buffer."""
        if self._closed:
            return
        self._closed = True
        self._tar.close()

    def __enter__(self) -> "ArchiveEmitter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def emit_archive(
    files: Iterable[SelectedFile],
    stream: BinaryIO,
    resolver: Optional[IdentityResolver] = None,
    logger: Optional[Logger] = None,
) -> EmitStats:
    """Archive files into stream and finish the archive."""
    with ArchiveEmitter(stream, resolver=resolver, logger=logger) as emitter:
        return emitter.emit(files)
