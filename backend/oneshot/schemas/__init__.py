from oneshot.schemas.secret import (
    SecretCreate,
    SecretCreateResponse,
    SecretRevealResponse,
)

__all__ = [
    "SecretCreate",
    "SecretCreateResponse",
    "SecretRevealResponse",
]
