"""At-rest encryption for app private keys."""

from __future__ import annotations

import base64
import hashlib
from functools import lru_cache

from cryptography.fernet import Fernet

from rapids.config import settings


def fernet_for(secret: str) -> Fernet:
    """Fernet wants 32 url-safe base64 bytes; derive them from ``secret``."""
    return Fernet(base64.urlsafe_b64encode(hashlib.sha256(secret.encode()).digest()))


@lru_cache(maxsize=1)
def _app_fernet() -> Fernet:
    return fernet_for(settings.app_secret_key)


def encrypt_private_key(private_key: str) -> str:
    return _app_fernet().encrypt(private_key.encode()).decode()


def decrypt_private_key(token: str) -> str:
    """Raises ``cryptography.fernet.InvalidToken`` if the app secret changed."""
    return _app_fernet().decrypt(token.encode()).decode()
