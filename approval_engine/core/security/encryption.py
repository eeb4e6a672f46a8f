import hashlib
import os
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from approval_engine.core.logging import get_logger

logger = get_logger(__name__)

IV_LENGTH = 16
TAG_LENGTH = 16


class TokenCipher:
    """
    AES-256-GCM encryption for stored channel credentials.

    Ciphertext is serialized as ``iv:authTag:ciphertext`` in hex so it can be
    stored in a plain text column.
    """

    def __init__(self, encryption_key: str):
        if not encryption_key:
            raise ValueError("Encryption key is required")
        self._aead = AESGCM(hashlib.sha256(encryption_key.encode()).digest())

    def encrypt(self, plaintext: str) -> str:
        iv = os.urandom(IV_LENGTH)
        sealed = self._aead.encrypt(iv, plaintext.encode('utf-8'), None)
        ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]
        return f"{iv.hex()}:{tag.hex()}:{ciphertext.hex()}"

    def decrypt(self, encrypted: str) -> str:
        """Decrypt an ``iv:authTag:ciphertext`` string."""
        parts = encrypted.split(':')
        if len(parts) != 3:
            raise ValueError("Invalid encrypted token format")

        try:
            iv, tag, ciphertext = (bytes.fromhex(part) for part in parts)
            plaintext = self._aead.decrypt(iv, ciphertext + tag, None)
        except (InvalidTag, ValueError) as e:
            logger.error("Token decryption failed", extra={'error_type': type(e).__name__})
            raise ValueError("Decryption failed") from e

        return plaintext.decode('utf-8')


def mask_secret(value: Optional[str], visible: int = 4) -> Optional[str]:
    """Display form of a credential: last ``visible`` characters only."""
    if not value:
        return value
    if len(value) <= visible:
        return '*' * len(value)
    return '*' * (len(value) - visible) + value[-visible:]


__all__ = ["TokenCipher", "mask_secret"]
