"""
Shared fixtures: a throwaway SQLite database per test and an app wired to it.
"""
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from identity_platform.identity_service.db import Base, get_db
from identity_platform.identity_service.deps import (
    get_dispatcher,
    get_event_publisher,
    get_password_hasher,
    get_token_service,
)
from identity_platform.identity_service.events import (
    AuthEventNotifier,
    InMemoryEventPublisher,
    OutboxDispatcher,
)
from identity_platform.identity_service.gateway import AuthGateway
from identity_platform.identity_service.main import app
from identity_platform.identity_service.passwords import PasswordHasher
from identity_platform.identity_service.store import CredentialStore
from identity_platform.identity_service.tokens import SigningKey, SigningKeyRing, TokenService

TEST_SECRET = "test-signing-secret-0123456789abcdef"


@pytest.fixture
def engine(tmp_path):
    # File-backed so concurrent sessions really use separate connections
    engine = create_engine(
        f"sqlite:///{tmp_path / 'identity.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def hasher():
    # Cheap argon2 parameters keep the suite fast
    return PasswordHasher(argon2__rounds=1, argon2__memory_cost=8192)


@pytest.fixture
def token_service():
    return TokenService(
        SigningKeyRing(current=SigningKey(kid="k1", secret=TEST_SECRET)),
        ttl=timedelta(minutes=5),
    )


@pytest.fixture
def publisher():
    return InMemoryEventPublisher()


@pytest.fixture
def gateway(db_session, hasher, token_service, publisher):
    notifier = AuthEventNotifier(db_session, publisher)
    return AuthGateway(CredentialStore(db_session), hasher, token_service, notifier)


@pytest.fixture
def client(session_factory, hasher, token_service, publisher):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_password_hasher] = lambda: hasher
    app.dependency_overrides[get_token_service] = lambda: token_service
    app.dependency_overrides[get_event_publisher] = lambda: publisher
    app.dependency_overrides[get_dispatcher] = lambda: OutboxDispatcher(session_factory, publisher, max_attempts=3)

    # No context manager: the lifespan would initialise the configured database
    yield TestClient(app)

    app.dependency_overrides.clear()
