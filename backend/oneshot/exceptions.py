"""Typed failures raised by the secret service and its collaborators."""


class SecretError(Exception):
    """Base class for all secret protocol failures."""


class SecretValidationError(SecretError, ValueError):
    """The creation request is malformed (e.g. empty text)."""


class SecretNotFoundError(SecretError):
    """The secret is missing, expired or its view budget is spent.

    The three causes share one message so callers cannot tell them apart.
    """

    default_message = "Secret not found. It may have expired or been viewed already."

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)


class DecryptionError(SecretError):
    """Ciphertext and nonce could not be decrypted (tampered or corrupt)."""


class CryptoConfigError(SecretError, ValueError):
    """The configured encryption key is unusable."""
