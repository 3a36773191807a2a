"""Rapids exceptions."""


class RapidsError(Exception):
    """Base exception for the API key service."""


class InvalidKeyConfigError(RapidsError, ValueError):
    """Key creation was asked for an unknown charset, a non-positive length
    or an expiry outside the representable date range."""


class StoreError(RapidsError):
    """The key store failed to complete an operation."""

    retryable = False

    def __init__(self, message: str = "Key store operation failed"):
        super().__init__(message)


class DuplicateKeyError(StoreError):
    """Insert collided with an existing id or key hash.

    For generated keys this means the random body repeated, so the caller
    can simply try again.
    """

    retryable = True

    def __init__(self, message: str = "API key id or hash already exists"):
        super().__init__(message)
