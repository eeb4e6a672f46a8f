"""Security primitives: token signing and credential encryption."""

from .encryption import TokenCipher, mask_secret
from .signing import HMACHelper, get_signing_key, get_encryption_key

__all__ = [
    "TokenCipher",
    "mask_secret",
    "HMACHelper",
    "get_signing_key",
    "get_encryption_key",
]
