"""Credential protection helpers."""

from .encryption import TokenCipher, TokenDecryptionError, get_token_cipher

__all__ = ["TokenCipher", "TokenDecryptionError", "get_token_cipher"]
