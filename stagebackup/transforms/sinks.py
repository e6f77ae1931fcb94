#!/usr/bin/env python3
"""Destination sinks for the archive stream."""

from typing import BinaryIO, List, Sequence

from stagebackup.core.errors import SinkError


class MultiSink:
    """Duplicate every write to several binary streams.

    Each write reaches every sink, in order, before returning. The first
    failing sink aborts the write with SinkError; there is no degraded mode.
    """

    def __init__(self, sinks: Sequence[BinaryIO], names: Sequence[str] = ()):
        if not sinks:
            raise ValueError("MultiSink needs at least one sink")
        self._sinks: List[BinaryIO] = list(sinks)
        self._names = list(names) or [getattr(s, "name", repr(s)) for s in self._sinks]
        self.bytes_written = 0

    def write(self, data: bytes) -> int:
        for sink, name in zip(self._sinks, self._names):
            try:
                sink.write(data)
            except (OSError, ValueError) as e:
                raise SinkError(f"Error writing to '{name}': {e}") from e
        self.bytes_written += len(data)
        return len(data)

    def flush(self) -> None:
        for sink, name in zip(self._sinks, self._names):
            try:
                sink.flush()
            except (OSError, ValueError) as e:
                raise SinkError(f"Error flushing '{name}': {e}") from e

    def __len__(self) -> int:
        return len(self._sinks)
