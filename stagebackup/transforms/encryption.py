#!/usr/bin/env python3
"""Optional confidentiality layer: AES-256 in a stream cipher mode.

Stream layout:
    bytes 0-15   random IV, stored in clear
    bytes 16-    ciphertext of everything written through the layer

The key is the UTF-8 passphrase truncated or zero-padded to 32 bytes. No
key stretching is applied, so a short passphrase gives a weak key; this
matches the archive format readers expect. Passphrase and key buffers are
zeroed as soon as they are no longer needed.

Example:
    >>> layer = EncryptionTransform(lambda: "correct horse")
    >>> layer.bind(sink)
    >>> layer.write(b"archive bytes")
    >>> layer.close()
"""

import getpass
import os
from typing import Any, Callable, Dict, Optional, Union

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

try:
    from cryptography.hazmat.decrepit.ciphers.modes import OFB
except ImportError:
    OFB = modes.OFB

from stagebackup.core.constants import Limits
from stagebackup.transforms.base import StreamTransform, TransformError

Secret = Union[str, bytes, bytearray]
PassphraseSource = Callable[[], Secret]

CIPHER_MODES = {
    "ctr": modes.CTR,
    "ofb": OFB,
}


def prompt_passphrase(prompt: str = "Password: ") -> str:
    """Read a passphrase from the controlling terminal without echo."""
    return getpass.getpass(prompt)


def zero_buffer(buffer: bytearray) -> None:
    """Overwrite a mutable buffer in place."""
    for i in range(len(buffer)):
        buffer[i] = 0


def derive_key(passphrase: Union[bytes, bytearray]) -> bytearray:
    """Truncate or zero-pad a passphrase to the AES-256 key length."""
    key = bytearray(Limits.KEY_LENGTH)
    length = min(len(passphrase), Limits.KEY_LENGTH)
    key[:length] = passphrase[:length]
    return key


def _secret_buffer(secret: Secret) -> bytearray:
    if isinstance(secret, str):
        return bytearray(secret.encode("utf-8"))
    return bytearray(secret)


def _cipher_mode(mode: str):
    try:
        return CIPHER_MODES[mode.lower()]
    except KeyError:
        raise TransformError(
            f"Invalid cipher mode: {mode}. Must be one of {', '.join(sorted(CIPHER_MODES))}",
            "encryption",
        )


def _build_cipher(secret: Secret, mode: str, iv: bytes) -> Cipher:
    buffer = _secret_buffer(secret)
    key = derive_key(buffer)
    try:
        return Cipher(algorithms.AES(bytes(key)), _cipher_mode(mode)(iv))
    finally:
        zero_buffer(buffer)
        zero_buffer(key)


class EncryptionTransform(StreamTransform):
    """Encrypt the stream with AES-256 keyed by a passphrase.

    All setup (passphrase entry, IV generation, cipher construction) happens
    in the constructor so that failures surface before any output exists.
    """

    def __init__(
        self,
        passphrase_source: Optional[PassphraseSource] = None,
        name: str = "encryption",
        mode: str = "ctr",
        iv: Optional[bytes] = None,
        random_bytes: Callable[[int], bytes] = os.urandom,
    ):
        """Initialize encryption transform.

        Args:
            passphrase_source: Callable returning the passphrase
                (default: interactive terminal prompt)
            name: Transform name
            mode: Cipher mode, ``ctr`` or ``ofb``
            iv: Fixed IV, for reproducible tests only
            random_bytes: Source of randomness for the IV
        """
        super().__init__(name=name)
        self._mode = mode.lower()
        _cipher_mode(self._mode)

        try:
            self._iv = bytes(iv) if iv is not None else bytes(random_bytes(Limits.IV_LENGTH))
        except (OSError, NotImplementedError) as e:
            raise TransformError(f"Unable to generate IV: {e}", name)
        if len(self._iv) != Limits.IV_LENGTH:
            raise TransformError(f"IV must be {Limits.IV_LENGTH} bytes", name)

        source = passphrase_source or prompt_passphrase
        try:
            secret = source()
        except (EOFError, OSError) as e:
            raise TransformError(f"Unable to read passphrase: {e}", name)

        buffer = _secret_buffer(secret)
        try:
            self._encryptor = _build_cipher(buffer, self._mode, self._iv).encryptor()
        finally:
            zero_buffer(buffer)
            if isinstance(secret, bytearray):
                zero_buffer(secret)

    @property
    def iv(self) -> bytes:
        return self._iv

    def preamble(self) -> bytes:
        return self._iv

    def process(self, data: bytes) -> bytes:
        return self._encryptor.update(data)

    def finalize(self) -> bytes:
        return self._encryptor.finalize()

    def release(self) -> None:
        self._encryptor = None

    def get_metadata(self) -> Dict[str, Any]:
        return {"transform": self.name, "cipher": "aes-256", "mode": self._mode}


def decrypt_bytes(content: bytes, passphrase: Secret, mode: str = "ctr") -> bytes:
    """Decrypt a complete stream written by EncryptionTransform.

    A wrong passphrase does not raise; it yields unrelated bytes.

    Raises:
        TransformError: If the stream is too short to hold an IV
    """
    if len(content) < Limits.IV_LENGTH:
        raise TransformError("Encrypted stream is shorter than its IV", "decrypt")

    iv, body = content[: Limits.IV_LENGTH], content[Limits.IV_LENGTH :]
    decryptor = _build_cipher(passphrase, mode, iv).decryptor()
    return decryptor.update(body) + decryptor.finalize()
