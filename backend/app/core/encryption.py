"""
Symmetric encryption for Spotify tokens stored at rest (AES-256-GCM).
"""

import base64
import hashlib
import logging
import os
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

logger = logging.getLogger(__name__)

NONCE_LENGTH = 12  # 96-bit nonce recommended for GCM
KEY_LENGTH = 32  # AES-256

# Base64-encoded 32-byte key
ENCRYPTION_KEY = os.getenv("ENCRYPTION_KEY")
if not ENCRYPTION_KEY and os.getenv("ENVIRONMENT") == "production":
    raise RuntimeError("ENCRYPTION_KEY must be set in production")


class EncryptionError(Exception):
    """Raised when a value cannot be encrypted or decrypted."""


class EncryptionService:
    """Encrypts strings to base64(nonce || ciphertext || tag) and back."""

    def __init__(self, key: bytes):
        if len(key) != KEY_LENGTH:
            raise ValueError("Encryption key must be 32 bytes (256 bits) long.")
        self._aesgcm = AESGCM(key)

    @classmethod
    def from_base64(cls, base64_key: str) -> "EncryptionService":
        try:
            key = base64.b64decode(base64_key, validate=True)
        except ValueError:
            raise ValueError("Encryption key is not valid base64.")
        return cls(key)

    def encrypt(self, plaintext: str) -> str:
        nonce = os.urandom(NONCE_LENGTH)
        ciphertext = self._aesgcm.encrypt(nonce, plaintext.encode("utf-8"), None)
        return base64.b64encode(nonce + ciphertext).decode("ascii")

    def decrypt(self, token: str) -> str:
        try:
            combined = base64.b64decode(token, validate=True)
        except ValueError:
            raise EncryptionError("Encrypted value is not valid base64")

        if len(combined) <= NONCE_LENGTH:
            raise EncryptionError("Encrypted value is too short")

        nonce, ciphertext = combined[:NONCE_LENGTH], combined[NONCE_LENGTH:]
        try:
            return self._aesgcm.decrypt(nonce, ciphertext, None).decode("utf-8")
        except InvalidTag:
            raise EncryptionError("Encrypted value failed authentication")


_encryption_service: Optional[EncryptionService] = None


def get_encryption_service() -> EncryptionService:
    """
    Return the process-wide encryption service.

    Falls back to a key derived from a fixed development secret when
    ENCRYPTION_KEY is unset outside production.
    """
    global _encryption_service

    if _encryption_service is None:
        if ENCRYPTION_KEY:
            _encryption_service = EncryptionService.from_base64(ENCRYPTION_KEY)
        else:
            logger.warning("ENCRYPTION_KEY is not set, using development key")
            dev_key = hashlib.sha256(b"dev-encryption-key-never-use-in-production")
            _encryption_service = EncryptionService(dev_key.digest())

    return _encryption_service


def encrypt(plaintext: str) -> str:
    return get_encryption_service().encrypt(plaintext)


def decrypt(token: str) -> str:
    return get_encryption_service().decrypt(token)
