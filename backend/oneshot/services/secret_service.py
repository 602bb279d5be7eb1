from collections.abc import Callable
from datetime import UTC, datetime, timedelta

import structlog

from oneshot.config import Settings
from oneshot.config import settings as default_settings
from oneshot.exceptions import DecryptionError, SecretNotFoundError, SecretValidationError
from oneshot.services.crypto_provider import CryptoProvider
from oneshot.services.secret_store import SecretRecord, SecretStore

logger = structlog.get_logger()


def utcnow() -> datetime:
    """Current UTC time as a naive datetime (the storage convention)."""
    return datetime.now(UTC).replace(tzinfo=None)


def coerce_positive_int(value, default: int, maximum: int | None = None) -> int:
    """
    Coerce a caller-supplied count to a positive integer.

    Anything absent, unparseable, zero or negative yields the default.
    Values above maximum are clamped to it.
    """
    if value is None or isinstance(value, bool):
        return default
    try:
        number = int(value)
    except (TypeError, ValueError, OverflowError):
        try:
            number = int(float(value))
        except (TypeError, ValueError, OverflowError):
            return default
    if number < 1:
        return default
    if maximum is not None and number > maximum:
        return maximum
    return number


class SecretService:
    """
    Creates secrets and runs the consume-on-read protocol.

    The service keeps no locks of its own. Concurrent reveals are
    serialized solely by the store's atomic increment-and-fetch.
    """

    def __init__(
        self,
        store: SecretStore,
        crypto: CryptoProvider,
        settings: Settings = default_settings,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.crypto = crypto
        self.settings = settings
        self.clock = clock

    def create(self, plaintext: str | None, view_limit=None, ttl_minutes=None) -> str:
        """Encrypt plaintext and persist it as a new record. Returns the id."""
        if not plaintext:
            raise SecretValidationError("Please provide some text to encrypt.")
        if len(plaintext.encode("utf-8")) > self.settings.max_plaintext_size:
            raise SecretValidationError(
                f"Text exceeds {self.settings.max_plaintext_size} bytes"
            )

        view_limit = coerce_positive_int(
            view_limit, self.settings.default_view_limit, self.settings.max_view_limit
        )
        ttl_minutes = coerce_positive_int(
            ttl_minutes, self.settings.default_ttl_minutes, self.settings.max_ttl_minutes
        )

        ciphertext, nonce = self.crypto.encrypt(plaintext)
        now = self.clock()
        secret_id = self.store.insert(
            SecretRecord(
                ciphertext=ciphertext,
                nonce=nonce,
                view_limit=view_limit,
                view_count=0,
                expires_at=now + timedelta(minutes=ttl_minutes),
                created_at=now,
            )
        )

        logger.info(
            "secret_created",
            secret_id=secret_id,
            view_limit=view_limit,
            ttl_minutes=ttl_minutes,
        )
        return secret_id

    def reveal(self, secret_id: str) -> str:
        """
        Decrypt a secret and consume one view.

        Raises SecretNotFoundError when the secret is missing, expired or
        exhausted, and DecryptionError when the stored data is corrupt.
        The consumed view is never given back.
        """
        record = self.store.get(secret_id)
        if record is None:
            raise SecretNotFoundError()

        if self.clock() >= record.expires_at:
            self.store.delete(secret_id)
            logger.info("secret_expired", secret_id=secret_id)
            raise SecretNotFoundError()

        view_count = self.store.atomic_increment_and_fetch(secret_id)
        if view_count is None:
            raise SecretNotFoundError()

        if view_count > record.view_limit:
            self.store.delete(secret_id)
            logger.info("secret_exhausted", secret_id=secret_id, view_count=view_count)
            raise SecretNotFoundError()

        if view_count == record.view_limit:
            # Last permitted reader: the record goes before anything is returned.
            self.store.delete(secret_id)

        try:
            plaintext = self.crypto.decrypt(record.ciphertext, record.nonce)
        except DecryptionError:
            logger.warning("secret_decrypt_failed", secret_id=secret_id, view_count=view_count)
            raise

        logger.info(
            "secret_revealed",
            secret_id=secret_id,
            view_count=view_count,
            view_limit=record.view_limit,
            destroyed=view_count == record.view_limit,
        )
        return plaintext

    def delete(self, secret_id: str) -> None:
        """Remove a secret if present. Deleting a missing id is a no-op."""
        self.store.delete(secret_id)

    def purge_expired(self) -> int:
        """Delete every record whose expiry has passed. Returns the count."""
        return self.store.delete_expired(self.clock())
