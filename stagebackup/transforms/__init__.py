"""StageBackup Transforms - streaming layers under the archive formatter.

- TransformPipeline: ordered composition with explicit open/close ordering
- StreamTransform: base class for layers
- CompressionTransform: gzip, bz2, lzma
- EncryptionTransform: AES-256 stream cipher with an in-band IV
- MultiSink: fan-out to several destinations
"""

from .base import StreamTransform, TransformError
from .compression import CompressionAlgorithm, CompressionTransform, decompress_bytes
from .encryption import (
    EncryptionTransform,
    decrypt_bytes,
    derive_key,
    prompt_passphrase,
    zero_buffer,
)
from .pipeline import TransformPipeline
from .sinks import MultiSink

__all__ = [
    # Pipeline
    "TransformPipeline",
    "MultiSink",
    # Base classes
    "StreamTransform",
    "TransformError",
    # Compression
    "CompressionAlgorithm",
    "CompressionTransform",
    "decompress_bytes",
    # Encryption
    "EncryptionTransform",
    "decrypt_bytes",
    "derive_key",
    "prompt_passphrase",
    "zero_buffer",
]
