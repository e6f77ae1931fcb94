#!/usr/bin/env python3
"""Base classes for streaming byte transforms.

A transform sits between a producer and a downstream writer. Bytes written
to it are processed and passed on immediately; nothing is buffered beyond
what the underlying codec keeps internally.

Lifecycle:
    bind(downstream)  attach the next layer or sink
    start()           emit any preamble (e.g. a cipher IV)
    write(data)       process and forward bytes
    close()           emit trailing bytes (e.g. a compression footer)

Example:
    >>> class UppercaseTransform(StreamTransform):
    ...     def process(self, data):
    ...         return data.upper()
    ...
    >>> transform = UppercaseTransform()
    >>> transform.bind(io.BytesIO())
"""

from abc import ABC, abstractmethod
from typing import Any, BinaryIO, Dict, Optional

from stagebackup.core.constants import ErrorCode
from stagebackup.core.errors import BackupError


class TransformError(BackupError):
    """Error raised by a transform layer."""

    def __init__(self, message: str, transform_name: Optional[str] = None):
        self.transform_name = transform_name
        super().__init__(message, ErrorCode.FATAL)


class StreamTransform(ABC):
    """Abstract base class for a streaming pipeline layer.

    Subclasses implement process(); finalize() and preamble() are optional
    hooks for trailing and leading bytes.
    """

    def __init__(self, name: Optional[str] = None):
        self.name = name or self.__class__.__name__
        self._downstream: Optional[BinaryIO] = None
        self._started = False
        self._closed = False
        self._stats = {"bytes_in": 0, "bytes_out": 0}

    def bind(self, downstream: BinaryIO) -> None:
        """Attach the writer this layer forwards to."""
        self._downstream = downstream

    @property
    def downstream(self) -> BinaryIO:
        if self._downstream is None:
            raise TransformError("Transform is not bound to a downstream writer", self.name)
        return self._downstream

    @abstractmethod
    def process(self, data: bytes) -> bytes:
        """Transform a chunk of input.

        Args:
            data: Input bytes

        Returns:
            Output bytes (possibly empty while a codec accumulates input)
        """

    def preamble(self) -> bytes:
        """Bytes emitted before any processed output."""
        return b""

    def finalize(self) -> bytes:
        """Bytes emitted after the last processed output."""
        return b""

    def _emit(self, data: bytes) -> None:
        if data:
            self.downstream.write(data)
            self._stats["bytes_out"] += len(data)

    def start(self) -> None:
        """Emit the preamble. Called once, before the first write."""
        if self._started:
            return
        self._started = True
        self._emit(self.preamble())

    def write(self, data: bytes) -> int:
        """Process and forward data.

        Returns:
            Number of input bytes consumed
        """
        if self._closed:
            raise TransformError("Write to closed transform", self.name)
        if not self._started:
            self.start()
        self._stats["bytes_in"] += len(data)
        self._emit(self.process(bytes(data)))
        return len(data)

    def flush(self) -> None:
        flush = getattr(self.downstream, "flush", None)
        if flush is not None:
            flush()

    def close(self) -> None:
        """Emit trailing bytes and flush downstream. Safe to call twice."""
        if self._closed:
            return
        self._closed = True
        try:
            if not self._started:
                self.start()
            self._emit(self.finalize())
            self.flush()
        finally:
            self.release()

    def release(self) -> None:
        """Drop sensitive or heavy state. Called when the layer closes."""

    @property
    def closed(self) -> bool:
        return self._closed

    def get_metadata(self) -> Dict[str, Any]:
        """Describe the layer's settings."""
        return {"transform": self.name}

    def get_stats(self) -> Dict[str, Any]:
        stats: Dict[str, Any] = dict(self._stats)
        stats["ratio"] = stats["bytes_out"] / stats["bytes_in"] if stats["bytes_in"] else 0.0
        return stats

    def __repr__(self) -> str:
        status = "closed" if self._closed else "open"
        return f"<{self.__class__.__name__} name={self.name} {status}>"
