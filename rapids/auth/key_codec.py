"""API key generation and hashing."""

from __future__ import annotations

import hashlib
import secrets

from rapids.exceptions import InvalidKeyConfigError

CHARSETS: dict[str, str] = {
    "alphanumeric": "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789",
    "alphanumeric_lower": "abcdefghijklmnopqrstuvwxyz0123456789",
    "alphanumeric_upper": "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789",
    "hex": "0123456789abcdef",
    "base64url": "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789-_",
}

DEFAULT_PREFIX = "rapids_"
DEFAULT_LENGTH = 32
DEFAULT_CHARSET = "base64url"
SUFFIX_LENGTH = 4


def get_alphabet(charset: str) -> str:
    try:
        return CHARSETS[charset]
    except KeyError:
        raise InvalidKeyConfigError(
            f"charset must be one of: {', '.join(CHARSETS)}"
        ) from None


def random_string(length: int, alphabet: str) -> str:
    """Draw ``length`` characters from ``alphabet``, one secure random byte each.

    Each byte is reduced modulo the alphabet size. Alphabets whose size does
    not divide 256 (36 and 62 characters) are therefore slightly biased toward
    their first characters; that bias is accepted.
    """
    return "".join(alphabet[b % len(alphabet)] for b in secrets.token_bytes(length))


def hash_key(raw_key: str) -> str:
    """SHA-256 of the full raw key, hex encoded. Deterministic, used for lookup."""
    return hashlib.sha256(raw_key.encode()).hexdigest()


def key_suffix(raw_key: str) -> str:
    return raw_key[-SUFFIX_LENGTH:]


def generate_api_key(
    prefix: str = DEFAULT_PREFIX,
    length: int = DEFAULT_LENGTH,
    charset: str = DEFAULT_CHARSET,
) -> tuple[str, str, str]:
    """Generate a new API key. Returns (raw_key, key_hash, suffix)."""
    if not isinstance(length, int) or isinstance(length, bool) or length <= 0:
        raise InvalidKeyConfigError("length must be a positive integer")
    alphabet = get_alphabet(charset)

    raw_key = f"{prefix}{random_string(length, alphabet)}"
    return raw_key, hash_key(raw_key), key_suffix(raw_key)
