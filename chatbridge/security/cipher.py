"""
At-rest encryption for chat content fields.

Fields are sealed with AES-256-CBC under a single process-wide key and
stored as a tagged envelope: ``enc:<hex iv>:<hex ciphertext>``. Values
without the tag are legacy plaintext and pass through ``open`` unchanged.

The key is SHA-256 of ``ENCRYPTION_KEY``. When no secret is configured a
built-in fallback secret is used; that only obfuscates data at rest and is
not suitable for protecting anything sensitive.
"""

from __future__ import annotations

import hashlib
import os
import re
from functools import lru_cache
from typing import Any

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from chatbridge.config import get_settings
from chatbridge.core import get_logger

logger = get_logger(__name__)

ENVELOPE_PREFIX = "enc:"
DECRYPTION_FAILED = "[Decryption Failed]"
FALLBACK_SECRET = "chatbridge-insecure-fallback-secret"

_IV_BYTES = 16
_BLOCK_BITS = algorithms.AES.block_size

# hex IV, then one or more hex ciphertext blocks
_ENVELOPE_RE = re.compile(r"enc:[0-9a-f]{32}:(?:[0-9a-f]{32})+")


def derive_key(secret: str | None) -> bytes:
    """Hash the configured secret (or the fallback) into a 32-byte AES key."""
    material = secret or FALLBACK_SECRET
    return hashlib.sha256(material.encode("utf-8")).digest()


def is_sealed(value: Any) -> bool:
    """Return True only if ``value`` is a well-formed encryption envelope.

    Plain text that merely starts with ``enc:`` is not sealed.
    """
    return isinstance(value, str) and _ENVELOPE_RE.fullmatch(value) is not None


class FieldCipher:
    """Seal and open individual text fields.

    Instances are immutable after construction and safe to share between
    concurrent requests.
    """

    def __init__(self, secret: str | None = None):
        self.uses_fallback_key = not secret
        self._key = derive_key(secret)

    def seal(self, value: Any) -> Any:
        """
        Encrypt a text field.

        Non-string and empty values are returned unchanged. Every call draws
        a fresh IV, so sealing the same plaintext twice yields different
        envelopes.
        """
        if not isinstance(value, str) or not value:
            return value

        iv = os.urandom(_IV_BYTES)
        padder = padding.PKCS7(_BLOCK_BITS).padder()
        padded = padder.update(value.encode("utf-8")) + padder.finalize()
        encryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv)).encryptor()
        ciphertext = encryptor.update(padded) + encryptor.finalize()
        return f"{ENVELOPE_PREFIX}{iv.hex()}:{ciphertext.hex()}"

    def open(self, value: Any) -> Any:
        """
        Decrypt a text field.

        Values without the envelope prefix are returned as-is. Any failure
        to decrypt returns ``DECRYPTION_FAILED`` instead of raising.
        """
        if not isinstance(value, str) or not value.startswith(ENVELOPE_PREFIX):
            return value

        try:
            iv_hex, ciphertext_hex = value[len(ENVELOPE_PREFIX):].split(":", 1)
            iv = bytes.fromhex(iv_hex)
            ciphertext = bytes.fromhex(ciphertext_hex)
            decryptor = Cipher(algorithms.AES(self._key), modes.CBC(iv)).decryptor()
            padded = decryptor.update(ciphertext) + decryptor.finalize()
            unpadder = padding.PKCS7(_BLOCK_BITS).unpadder()
            plaintext = unpadder.update(padded) + unpadder.finalize()
            return plaintext.decode("utf-8")
        except (ValueError, TypeError) as exc:
            logger.warning(
                "Failed to decrypt field",
                data={"error": type(exc).__name__, "length": len(value)},
            )
            return DECRYPTION_FAILED


@lru_cache
def get_cipher() -> FieldCipher:
    """Get the process-wide cipher built from settings."""
    return FieldCipher(get_settings().encryption_key)
