import os

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import oneshot.main as main_module
from oneshot.config import Settings, settings
from oneshot.database import Base, get_db
from oneshot.main import app
from oneshot.middleware.rate_limit import limiter
from oneshot.services.crypto_provider import AesGcmCryptoProvider
from oneshot.services.secret_service import SecretService
from oneshot.services.secret_store import MemorySecretStore, SqlSecretStore
from tests.test_utils import FrozenClock


@pytest.fixture
def db_session():
    """Create a fresh in-memory database for each test."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def crypto():
    return AesGcmCryptoProvider(os.urandom(32))


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def test_settings():
    return Settings(_env_file=None)


@pytest.fixture(params=["memory", "sql"])
def store(request, db_session):
    """Every store implementation must honour the same contract."""
    if request.param == "memory":
        return MemorySecretStore()
    return SqlSecretStore(db_session)


@pytest.fixture
def service(store, crypto, test_settings, clock):
    return SecretService(store, crypto, test_settings, clock=clock)


@pytest.fixture
def client(db_session, monkeypatch):
    """Create a test client with the test database and disabled rate limiting."""

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    # Disable rate limiting and the background sweep for tests
    limiter.enabled = False
    monkeypatch.setattr(settings, "cleanup_enabled", False)

    # Point the startup table check at the test database
    monkeypatch.setattr(main_module, "engine", db_session.get_bind())

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    limiter.enabled = True


@pytest.fixture
def failing_client(db_session, monkeypatch):
    """Client whose reveal blows up with an unexpected error."""

    def raise_error(*args, **kwargs):
        raise RuntimeError("Unexpected database error")

    monkeypatch.setattr(SecretService, "reveal", raise_error)

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    limiter.enabled = False
    monkeypatch.setattr(settings, "cleanup_enabled", False)
    monkeypatch.setattr(main_module, "engine", db_session.get_bind())

    try:
        with TestClient(app, raise_server_exceptions=False) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()
        limiter.enabled = True
