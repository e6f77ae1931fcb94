#!/usr/bin/env python3
"""Transform pipeline composing stream layers over a destination sink.

Layers are listed producer-side first. For a backup the archive formatter
writes into the pipeline, which runs:

    archive bytes -> CompressionTransform -> EncryptionTransform -> sink

Ordering rules:
- open() binds each layer to the next and starts them sink-side first, so
  preambles (the cipher IV) reach the sink before any payload.
- close() finalizes layers producer-side first, so each layer's trailer
  still passes through the layers below it. Every layer is closed even
  if an earlier one fails; the first failure is re-raised afterwards.

Example:
    >>> pipeline = TransformPipeline(sink)
    >>> pipeline.add_transform(CompressionTransform(algorithm="gzip"))
    >>> with pipeline:
    ...     pipeline.write(b"archive bytes")
"""

from typing import Any, BinaryIO, Dict, List, Optional

from stagebackup.infrastructure.logger import Logger, get_logger
from stagebackup.transforms.base import StreamTransform, TransformError


class TransformPipeline:
    """Writable stream made of ordered transform layers."""

    def __init__(
        self,
        sink: BinaryIO,
        transforms: Optional[List[StreamTransform]] = None,
        logger: Optional[Logger] = None,
    ):
        """Initialize transform pipeline.

        Args:
            sink: Destination writer at the bottom of the stack
            transforms: Layers, producer-side first
            logger: Logger for teardown diagnostics
        """
        self._sink = sink
        self._transforms: List[StreamTransform] = list(transforms or [])
        self._logger = logger or get_logger()
        self._opened = False
        self._closed = False
        self.bytes_written = 0

    def add_transform(self, transform: StreamTransform) -> None:
        """Append a layer below the existing ones (closer to the sink)."""
        if self._opened:
            raise TransformError("Cannot add transforms to an open pipeline", transform.name)
        self._transforms.append(transform)

    def get_transforms(self) -> List[StreamTransform]:
        return self._transforms.copy()

    def open(self) -> "TransformPipeline":
        """Bind layers together and emit their preambles."""
        if self._opened:
            return self
        self._opened = True

        for i, transform in enumerate(self._transforms):
            downstream = self._transforms[i + 1] if i + 1 < len(self._transforms) else self._sink
            transform.bind(downstream)

        for transform in reversed(self._transforms):
            transform.start()
        return self

    def write(self, data: bytes) -> int:
        if self._closed:
            raise TransformError("Write to closed pipeline", "pipeline")
        if not self._opened:
            self.open()

        head = self._transforms[0] if self._transforms else self._sink
        head.write(data)
        self.bytes_written += len(data)
        return len(data)

    def flush(self) -> None:
        """Flush the sink. Codec state is only drained by close()."""
        self._sink.flush()

    def close(self) -> None:
        """Finalize every layer producer-side first, then flush the sink."""
        if self._closed:
            return
        if not self._opened:
            self.open()
        self._closed = True

        errors: List[Exception] = []
        for transform in self._transforms:
            try:
                transform.close()
            except Exception as e:
                self._logger.error(f"Failed to finalize {transform.name}: {e}")
                errors.append(e)

        try:
            self._sink.flush()
        except Exception as e:
            errors.append(e)

        if errors:
            raise errors[0]

    @property
    def closed(self) -> bool:
        return self._closed

    def get_stats(self) -> Dict[str, Any]:
        return {
            "bytes_written": self.bytes_written,
            "transform_stats": {t.name: t.get_stats() for t in self._transforms},
        }

    def __enter__(self) -> "TransformPipeline":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __len__(self) -> int:
        return len(self._transforms)

    def __repr__(self) -> str:
        names = [t.name for t in self._transforms]
        return f"<TransformPipeline transforms={names}>"
