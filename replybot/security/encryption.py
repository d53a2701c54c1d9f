"""AES-256-GCM protection for stored page access tokens.

Tokens are stored as ``iv:authTag:ciphertext`` with every part hex encoded and
a 16 byte random IV. The response orchestrator only ever sees the ``decrypt``
capability, so tests can inject a stub instead of real key material.
"""

from __future__ import annotations

import logging
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from ..config import get_settings

logger = logging.getLogger(__name__)

IV_BYTES = 16
TAG_BYTES = 16
KEY_BYTES = 32


class TokenDecryptionError(Exception):
    """Raised when a stored credential cannot be decrypted."""


def _parse_key(key_hex: str | None) -> bytes:
    if not key_hex:
        raise TokenDecryptionError("Encryption key is not configured")
    try:
        key = bytes.fromhex(key_hex)
    except ValueError as exc:
        raise TokenDecryptionError("Encryption key must be hex encoded") from exc
    if len(key) != KEY_BYTES:
        raise TokenDecryptionError("Encryption key must be 32 bytes (64 hex chars)")
    return key


class TokenCipher:
    """Encrypt and decrypt credentials with a 256-bit key given as hex."""

    def __init__(self, key_hex: str | None) -> None:
        self._key = _parse_key(key_hex)
        self._aead = AESGCM(self._key)

    def encrypt(self, plain_text: str) -> str:
        iv = os.urandom(IV_BYTES)
        sealed = self._aead.encrypt(iv, plain_text.encode("utf-8"), None)
        # AESGCM appends the tag to the ciphertext.
        ciphertext, tag = sealed[:-TAG_BYTES], sealed[-TAG_BYTES:]
        return f"{iv.hex()}:{tag.hex()}:{ciphertext.hex()}"

    def decrypt(self, token: str) -> str:
        parts = token.split(":") if token else []
        if len(parts) != 3 or not all(parts):
            logger.error("Invalid ciphertext format")
            raise TokenDecryptionError("Invalid encrypted token format")
        iv_hex, tag_hex, ciphertext_hex = parts
        try:
            iv = bytes.fromhex(iv_hex)
            tag = bytes.fromhex(tag_hex)
            ciphertext = bytes.fromhex(ciphertext_hex)
        except ValueError as exc:
            raise TokenDecryptionError("Invalid encrypted token format") from exc
        if len(tag) != TAG_BYTES:
            raise TokenDecryptionError("Invalid encrypted token format")
        try:
            plain = self._aead.decrypt(iv, ciphertext + tag, None)
        except (InvalidTag, ValueError) as exc:
            raise TokenDecryptionError("Encrypted token failed authentication") from exc
        return plain.decode("utf-8")


def get_token_cipher() -> TokenCipher:
    """Build a cipher from ``ENCRYPTION_KEY``.

    Raises :class:`TokenDecryptionError` when the key is missing or invalid.
    """

    return TokenCipher(get_settings().encryption_key)
