#!/usr/bin/env python3
"""Streaming compression layer.

This module provides incremental compressors for the archive stream:
- gzip (RFC 1952 framing, readable by ``gzip -d``)
- bz2
- lzma / xz

Example:
    >>> transform = CompressionTransform(algorithm="gzip")
    >>> transform.bind(sink)
    >>> transform.write(b"Hello World!")
    >>> transform.close()
"""

import bz2
import gzip
import lzma
import zlib
from enum import Enum
from typing import Any, Dict

from stagebackup.core.constants import Limits
from stagebackup.transforms.base import StreamTransform, TransformError


class CompressionAlgorithm(Enum):
    """Supported compression algorithms."""

    GZIP = "gzip"
    BZ2 = "bz2"
    LZMA = "lzma"

    @property
    def extension(self) -> str:
        return {"gzip": ".gz", "bz2": ".bz2", "lzma": ".xz"}[self.value]


class CompressionTransform(StreamTransform):
    """Compress everything written through it."""

    def __init__(
        self,
        name: str = "compression",
        algorithm: str = "gzip",
        compression_level: int = Limits.DEFAULT_COMPRESSION_LEVEL,
    ):
        """Initialize compression transform.

        Args:
            name: Transform name
            algorithm: Compression algorithm (gzip, bz2, lzma)
            compression_level: Compression level, clamped to 1-9
        """
        super().__init__(name=name)

        try:
            self._algorithm = CompressionAlgorithm(algorithm.lower())
        except ValueError:
            raise TransformError(
                f"Invalid algorithm: {algorithm}. Must be gzip, bz2, or lzma",
                name,
            )

        self._compression_level = max(
            Limits.MIN_COMPRESSION_LEVEL,
            min(Limits.MAX_COMPRESSION_LEVEL, compression_level),
        )
        self._compressor = self._create_compressor()

    @property
    def algorithm(self) -> CompressionAlgorithm:
        return self._algorithm

    def _create_compressor(self):
        if self._algorithm == CompressionAlgorithm.GZIP:
            # wbits 16 + MAX_WBITS selects the gzip container
            return zlib.compressobj(self._compression_level, zlib.DEFLATED, 16 + zlib.MAX_WBITS)
        elif self._algorithm == CompressionAlgorithm.BZ2:
            return bz2.BZ2Compressor(self._compression_level)
        return lzma.LZMACompressor(preset=self._compression_level)

    def process(self, data: bytes) -> bytes:
        try:
            return self._compressor.compress(data)
        except (zlib.error, ValueError, lzma.LZMAError) as e:
            raise TransformError(f"Compression error ({self._algorithm.value}): {e}", self.name)

    def finalize(self) -> bytes:
        try:
            return self._compressor.flush()
        except (zlib.error, ValueError, lzma.LZMAError) as e:
            raise TransformError(f"Compression error ({self._algorithm.value}): {e}", self.name)

    def get_metadata(self) -> Dict[str, Any]:
        return {
            "transform": self.name,
            "algorithm": self._algorithm.value,
            "compression_level": self._compression_level,
        }


def decompress_bytes(content: bytes, algorithm: str = "gzip") -> bytes:
    """Decompress a complete compressed stream.

    Args:
        content: Compressed bytes
        algorithm: Algorithm the stream was written with

    Returns:
        Decompressed bytes

    Raises:
        TransformError: If the data is not a valid stream for the algorithm
    """
    try:
        algo = CompressionAlgorithm(algorithm.lower())
    except ValueError:
        raise TransformError(f"Invalid algorithm: {algorithm}", "decompress")

    try:
        if algo == CompressionAlgorithm.GZIP:
            return gzip.decompress(content)
        elif algo == CompressionAlgorithm.BZ2:
            return bz2.decompress(content)
        return lzma.decompress(content)
    except (OSError, EOFError, ValueError, zlib.error, lzma.LZMAError) as e:
        raise TransformError(f"Decompression error ({algo.value}): {e}", "decompress")
