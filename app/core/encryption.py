"""
Authenticated encryption for secrets stored at rest.

Blobs are laid out as ``nonce(16) || tag(16) || ciphertext`` and sealed with
AES-256-GCM. The key is fixed for the lifetime of the process and validated
once at startup.
"""

import logging
import os
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from app.core.exceptions import ConfigurationError, DecryptionError

logger = logging.getLogger(__name__)

KEY_SIZE = 32
NONCE_SIZE = 16
TAG_SIZE = 16


class FieldEncryption:
    def __init__(self, key: bytes):
        if len(key) != KEY_SIZE:
            raise ConfigurationError(
                f"Encryption key must be exactly {KEY_SIZE} bytes (256 bits)"
            )
        self._aead = AESGCM(key)

    @classmethod
    def from_secret(cls, secret: Optional[str]) -> "FieldEncryption":
        if not secret:
            raise ConfigurationError("APP_ENCRYPTION_KEY is required")
        return cls(secret.encode("utf-8"))

    def encrypt(self, plaintext: str) -> bytes:
        nonce = os.urandom(NONCE_SIZE)
        # AESGCM appends the tag to the ciphertext
        sealed = self._aead.encrypt(nonce, plaintext.encode("utf-8"), None)
        ciphertext, tag = sealed[:-TAG_SIZE], sealed[-TAG_SIZE:]
        return nonce + tag + ciphertext

    def decrypt(self, blob: bytes) -> str:
        if len(blob) < NONCE_SIZE + TAG_SIZE:
            raise DecryptionError("Invalid encrypted data: too short")

        nonce = blob[:NONCE_SIZE]
        tag = blob[NONCE_SIZE:NONCE_SIZE + TAG_SIZE]
        ciphertext = blob[NONCE_SIZE + TAG_SIZE:]

        try:
            plaintext = self._aead.decrypt(nonce, ciphertext + tag, None)
        except InvalidTag:
            raise DecryptionError("Authentication tag mismatch") from None

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError:
            raise DecryptionError("Decrypted data is not valid UTF-8") from None


def init_field_encryption(settings) -> FieldEncryption:
    """Build the process-wide cipher; a bad key stops startup."""
    encryption = FieldEncryption.from_secret(settings.APP_ENCRYPTION_KEY)
    logger.info("Field encryption initialised")
    return encryption
