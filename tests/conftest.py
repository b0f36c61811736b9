"""Shared fixtures for the notification service tests."""

from __future__ import annotations

from pathlib import Path
import sys

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.append(str(ROOT))

from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from amqp_double import FakeBroker
from push_double import VALID_PUSH_TOKEN, FakePushClient
from prime_notifications.config import Settings
from prime_notifications.domain.entities import User
from prime_notifications.infrastructure.broker import BrokerTransport
from prime_notifications.infrastructure.database import build_engine, initialize_database
from prime_notifications.infrastructure.notifications import NotificationEventPublisher
from prime_notifications.infrastructure.repositories import UserRepository
from prime_notifications.infrastructure.security import create_access_token


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def settings() -> Settings:
    return Settings(
        database_url="sqlite://",
        secret_key="test-secret",
        rabbitmq_reconnect_delay=0,
        rabbitmq_max_reconnect_attempts=2,
        rabbitmq_publish_timeout=5,
        rabbitmq_requeue_delay=0,
        log_level="DEBUG",
    )


@pytest.fixture
def broker() -> FakeBroker:
    return FakeBroker()


@pytest.fixture
def transport(broker: FakeBroker, settings: Settings) -> BrokerTransport:
    return BrokerTransport.from_settings(settings, connector=broker.connect)


@pytest.fixture
def publisher(transport: BrokerTransport) -> NotificationEventPublisher:
    return NotificationEventPublisher(transport)


@pytest.fixture
def session_factory(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'notifications.db'}")
    initialize_database(engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    engine.dispose()


@pytest.fixture
def session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def users(session_factory) -> dict[str, User]:
    """Create ``u1`` (with a device) and ``u2`` (without one)."""

    with session_factory() as db:
        repository = UserRepository(db)
        return {
            "u1": repository.create(
                User(id="u1", name="Ana", email="ana@example.com", push_token=VALID_PUSH_TOKEN)
            ),
            "u2": repository.create(User(id="u2", name="Luis", email="luis@example.com")),
        }


@pytest.fixture
def push_client() -> FakePushClient:
    return FakePushClient()


@pytest.fixture
def app(settings, transport, session_factory, users, push_client):
    from prime_notifications.main import create_app

    return create_app(
        settings,
        transport=transport,
        session_factory=session_factory,
        push_client=push_client,
    )


@pytest.fixture
def client(app):
    """Return a test client bound to a fresh application instance."""

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth_headers(settings):
    def build(user_id: str) -> dict[str, str]:
        token = create_access_token({"sub": user_id}, secret_key=settings.secret_key)
        return {"Authorization": f"Bearer {token}"}

    return build
