import threading

from fastapi import Depends
from sqlalchemy.orm import Session

from oneshot.config import settings
from oneshot.database import get_db
from oneshot.services.crypto_provider import AesGcmCryptoProvider, CryptoProvider
from oneshot.services.secret_service import SecretService
from oneshot.services.secret_store import SqlSecretStore

_crypto: CryptoProvider | None = None
_crypto_lock = threading.Lock()


def get_crypto() -> CryptoProvider:
    """
    Process-wide crypto provider, built from settings on first use.

    Construction is serialized across threadpool workers. Without a configured
    key every provider carries its own random key.
    """
    global _crypto
    if _crypto is None:
        with _crypto_lock:
            if _crypto is None:
                _crypto = AesGcmCryptoProvider.from_encoded_key(settings.encryption_key)
    return _crypto


def build_secret_service(db: Session) -> SecretService:
    return SecretService(SqlSecretStore(db), get_crypto(), settings)


def get_secret_service(db: Session = Depends(get_db)) -> SecretService:
    """Dependency for FastAPI endpoints to get a secret service bound to the request's session."""
    return build_secret_service(db)
