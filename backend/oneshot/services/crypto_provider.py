import base64
import binascii
import os
from typing import Protocol

import structlog
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from oneshot.exceptions import CryptoConfigError, DecryptionError

logger = structlog.get_logger()

NONCE_SIZE = 12  # 96-bit GCM nonce
KEY_SIZE = 32  # AES-256


class CryptoProvider(Protocol):
    def encrypt(self, plaintext: str) -> tuple[bytes, bytes]: ...

    def decrypt(self, ciphertext: bytes, nonce: bytes) -> str: ...


def generate_key() -> str:
    """Generate a new urlsafe base64 encoded AES-256 key."""
    return base64.urlsafe_b64encode(AESGCM.generate_key(bit_length=KEY_SIZE * 8)).decode()


def decode_key(encoded: str) -> bytes:
    """Decode and size-check a urlsafe base64 key."""
    try:
        key = base64.urlsafe_b64decode(encoded.encode())
    except (binascii.Error, ValueError):
        raise CryptoConfigError("Encryption key is not valid base64")
    if len(key) != KEY_SIZE:
        raise CryptoConfigError(f"Encryption key must decode to exactly {KEY_SIZE} bytes")
    return key


class AesGcmCryptoProvider:
    """AES-256-GCM with a fresh random nonce for every encryption."""

    def __init__(self, key: bytes) -> None:
        if len(key) != KEY_SIZE:
            raise CryptoConfigError(f"Encryption key must be exactly {KEY_SIZE} bytes")
        self._aead = AESGCM(key)

    @classmethod
    def from_encoded_key(cls, encoded: str | None) -> "AesGcmCryptoProvider":
        """
        Build a provider from a configured key.

        Without a key an ephemeral one is generated, so stored secrets
        become unreadable after a restart.
        """
        if not encoded:
            logger.warning("encryption_key_not_configured", ephemeral=True)
            return cls(AESGCM.generate_key(bit_length=KEY_SIZE * 8))
        return cls(decode_key(encoded))

    def encrypt(self, plaintext: str) -> tuple[bytes, bytes]:
        nonce = os.urandom(NONCE_SIZE)
        ciphertext = self._aead.encrypt(nonce, plaintext.encode("utf-8"), None)
        return ciphertext, nonce

    def decrypt(self, ciphertext: bytes, nonce: bytes) -> str:
        if len(nonce) != NONCE_SIZE:
            raise DecryptionError("Could not decrypt data, it might be corrupted")
        try:
            return self._aead.decrypt(nonce, ciphertext, None).decode("utf-8")
        except (InvalidTag, UnicodeDecodeError) as e:
            raise DecryptionError("Could not decrypt data, it might be corrupted") from e
