"""Contract tests run against every store implementation."""

from datetime import timedelta

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from oneshot.services.secret_store import SecretRecord, SqlSecretStore
from tests.test_utils import utcnow


def make_record(expires_in: timedelta = timedelta(hours=1), view_limit: int = 1) -> SecretRecord:
    now = utcnow()
    return SecretRecord(
        ciphertext=b"\x00" * 32,
        nonce=b"\x01" * 12,
        view_limit=view_limit,
        expires_at=now + expires_in,
        created_at=now,
    )


def test_insert_assigns_unique_ids(store):
    first = store.insert(make_record())
    second = store.insert(make_record())

    assert first != second
    assert store.get(first).id == first
    assert store.get(second).id == second


def test_get_returns_stored_fields(store):
    original = make_record(view_limit=4)
    secret_id = store.insert(original)

    record = store.get(secret_id)
    assert record.ciphertext == original.ciphertext
    assert record.nonce == original.nonce
    assert record.view_limit == 4
    assert record.view_count == 0
    assert record.expires_at == original.expires_at


def test_get_missing_returns_none(store):
    assert store.get("missing") is None


def test_get_does_not_mutate(store):
    secret_id = store.insert(make_record())

    store.get(secret_id)
    store.get(secret_id)

    assert store.get(secret_id).view_count == 0


def test_increment_returns_post_increment_value(store):
    secret_id = store.insert(make_record(view_limit=5))

    assert store.atomic_increment_and_fetch(secret_id) == 1
    assert store.atomic_increment_and_fetch(secret_id) == 2
    assert store.atomic_increment_and_fetch(secret_id) == 3
    assert store.get(secret_id).view_count == 3


def test_increment_missing_returns_none(store):
    assert store.atomic_increment_and_fetch("missing") is None


def test_delete_is_idempotent(store):
    secret_id = store.insert(make_record())

    store.delete(secret_id)
    store.delete(secret_id)
    store.delete("missing")

    assert store.get(secret_id) is None
    assert store.atomic_increment_and_fetch(secret_id) is None


def test_delete_expired_removes_only_expired(store):
    now = utcnow()
    expired = store.insert(make_record(expires_in=timedelta(minutes=-5)))
    active = store.insert(make_record(expires_in=timedelta(hours=1)))

    assert store.delete_expired(now) == 1
    assert store.get(expired) is None
    assert store.get(active) is not None


def test_delete_expired_includes_boundary(store):
    record = make_record()
    secret_id = store.insert(record)

    assert store.delete_expired(record.expires_at) == 1
    assert store.get(secret_id) is None


def test_delete_expired_twice_is_harmless(store):
    store.insert(make_record(expires_in=timedelta(minutes=-1)))

    assert store.delete_expired(utcnow()) == 1
    assert store.delete_expired(utcnow()) == 0


class TestSqlStoreFailures:
    """A failed write must leave the session usable for the rest of the request."""

    def test_rejected_insert_rolls_back(self, db_session):
        store = SqlSecretStore(db_session)

        with pytest.raises(IntegrityError):
            store.insert(make_record(view_limit=0))

        secret_id = store.insert(make_record())
        assert store.get(secret_id) is not None

    @pytest.mark.parametrize("operation", ["delete", "delete_expired"])
    def test_failed_commit_rolls_back(self, db_session, monkeypatch, operation):
        store = SqlSecretStore(db_session)
        secret_id = store.insert(make_record(expires_in=timedelta(minutes=-1)))
        rollbacks = []
        rollback = db_session.rollback

        def failing_commit():
            raise OperationalError("COMMIT", {}, Exception("database is locked"))

        def tracking_rollback():
            rollbacks.append(operation)
            rollback()

        monkeypatch.setattr(db_session, "commit", failing_commit)
        monkeypatch.setattr(db_session, "rollback", tracking_rollback)

        with pytest.raises(OperationalError):
            if operation == "delete":
                store.delete(secret_id)
            else:
                store.delete_expired(utcnow())

        monkeypatch.undo()
        assert rollbacks == [operation]
        assert store.get(secret_id) is not None
