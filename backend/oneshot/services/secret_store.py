"""
Storage backends for secret records.

Every backend must provide an indivisible increment-and-fetch on the view
counter. The reveal protocol uses that single operation as its only
serialization point, so callers in separate processes never observe the
same post-increment value twice.
"""

from __future__ import annotations

import dataclasses
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from oneshot.models.secret import Secret


@dataclass(frozen=True, slots=True)
class SecretRecord:
    ciphertext: bytes
    nonce: bytes
    view_limit: int
    expires_at: datetime
    created_at: datetime
    view_count: int = 0
    id: str | None = None

    @staticmethod
    def from_model(secret: Secret) -> "SecretRecord":
        return SecretRecord(
            id=secret.id,
            ciphertext=secret.ciphertext,
            nonce=secret.nonce,
            view_limit=secret.view_limit,
            view_count=secret.view_count,
            expires_at=secret.expires_at,
            created_at=secret.created_at,
        )


class SecretStore(Protocol):
    def insert(self, record: SecretRecord) -> str: ...

    def get(self, secret_id: str) -> SecretRecord | None: ...

    def atomic_increment_and_fetch(self, secret_id: str) -> int | None: ...

    def delete(self, secret_id: str) -> None: ...

    def delete_expired(self, now: datetime) -> int: ...


class SqlSecretStore:
    """
    SQLAlchemy-backed store.

    Each operation commits its own transaction. The increment is one
    UPDATE ... RETURNING statement, so the database serializes concurrent
    increments on the same row.
    """

    def __init__(self, db: Session) -> None:
        self._db = db

    def insert(self, record: SecretRecord) -> str:
        secret = Secret(
            ciphertext=record.ciphertext,
            nonce=record.nonce,
            view_limit=record.view_limit,
            view_count=record.view_count,
            expires_at=record.expires_at,
            created_at=record.created_at,
        )
        try:
            self._db.add(secret)
            self._db.commit()
        except Exception:
            self._db.rollback()
            raise
        self._db.refresh(secret)
        return secret.id

    def get(self, secret_id: str) -> SecretRecord | None:
        secret = self._db.execute(
            select(Secret).where(Secret.id == secret_id)
        ).scalar_one_or_none()
        if secret is None:
            return None
        return SecretRecord.from_model(secret)

    def atomic_increment_and_fetch(self, secret_id: str) -> int | None:
        stmt = (
            update(Secret)
            .where(Secret.id == secret_id)
            .values(view_count=Secret.view_count + 1)
            .returning(Secret.view_count)
            .execution_options(synchronize_session=False)
        )
        try:
            view_count = self._db.execute(stmt).scalar_one_or_none()
            self._db.commit()
        except Exception:
            self._db.rollback()
            raise
        return view_count

    def delete(self, secret_id: str) -> None:
        try:
            self._db.execute(
                delete(Secret)
                .where(Secret.id == secret_id)
                .execution_options(synchronize_session=False)
            )
            self._db.commit()
        except Exception:
            self._db.rollback()
            raise

    def delete_expired(self, now: datetime) -> int:
        try:
            result = self._db.execute(
                delete(Secret)
                .where(Secret.expires_at <= now)
                .execution_options(synchronize_session=False)
            )
            self._db.commit()
        except Exception:
            self._db.rollback()
            raise
        return result.rowcount


class MemorySecretStore:
    """Process-local store; a single lock guards every mutation."""

    def __init__(self) -> None:
        self._records: dict[str, SecretRecord] = {}
        self._lock = threading.Lock()

    def insert(self, record: SecretRecord) -> str:
        with self._lock:
            secret_id = str(uuid.uuid4())
            while secret_id in self._records:
                secret_id = str(uuid.uuid4())
            self._records[secret_id] = dataclasses.replace(record, id=secret_id)
            return secret_id

    def get(self, secret_id: str) -> SecretRecord | None:
        with self._lock:
            return self._records.get(secret_id)

    def atomic_increment_and_fetch(self, secret_id: str) -> int | None:
        with self._lock:
            record = self._records.get(secret_id)
            if record is None:
                return None
            record = dataclasses.replace(record, view_count=record.view_count + 1)
            self._records[secret_id] = record
            return record.view_count

    def delete(self, secret_id: str) -> None:
        with self._lock:
            self._records.pop(secret_id, None)

    def delete_expired(self, now: datetime) -> int:
        with self._lock:
            expired = [key for key, record in self._records.items() if record.expires_at <= now]
            for key in expired:
                del self._records[key]
            return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
