"""At-rest field encryption."""

from chatbridge.security.cipher import (
    DECRYPTION_FAILED,
    ENVELOPE_PREFIX,
    FieldCipher,
    get_cipher,
    is_sealed,
)

__all__ = [
    "DECRYPTION_FAILED",
    "ENVELOPE_PREFIX",
    "FieldCipher",
    "get_cipher",
    "is_sealed",
]
