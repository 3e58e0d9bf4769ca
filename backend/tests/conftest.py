"""Shared pytest fixtures for backend tests."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Callable, Iterator

import pytest
from fastapi.testclient import TestClient
from passlib.context import CryptContext
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from app import database
from app.core import security, storage
from app.database import get_db
from app.main import app
from app.models import Base, User
from pairchat.realtime import DeliveryChannel, get_delivery_channel

security.pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


@pytest.fixture()
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture()
def test_engine() -> Iterator[Engine]:
    """Provide an in-memory SQLite engine for isolated tests."""

    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture()
def session_factory(test_engine) -> sessionmaker[Session]:
    """Return a session factory bound to the test engine."""

    return sessionmaker(bind=test_engine, future=True)


@pytest.fixture()
def db_session(session_factory) -> Iterator[Session]:
    """Yield a SQLAlchemy session for unit tests."""

    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def media_root(tmp_path, monkeypatch) -> Path:
    """Point the local media store at a temporary directory."""

    root = tmp_path / "media"
    monkeypatch.setattr(storage.settings, "media_root", root)
    return root


@pytest.fixture()
def channel() -> DeliveryChannel:
    """A delivery channel isolated from other tests."""

    return DeliveryChannel()


@pytest.fixture()
def client(session_factory, channel, media_root, monkeypatch) -> Iterator[TestClient]:
    """Yield a FastAPI TestClient with the database and channel dependencies overridden."""

    def override_get_db() -> Iterator[Session]:
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    # WebSocket authentication opens short-lived sessions outside of Depends.
    monkeypatch.setattr(database, "SessionLocal", session_factory)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_delivery_channel] = lambda: channel
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def create_user(session_factory) -> Callable[..., User]:
    """Return a factory that stores a user and returns it detached."""

    counter = {"value": 0}

    def factory(full_name: str | None = None, email: str | None = None, password: str = "secret123") -> User:
        counter["value"] += 1
        index = counter["value"]
        with session_factory(expire_on_commit=False) as session:
            user = User(
                full_name=full_name or f"User {index}",
                email=email or f"user{index}@example.com",
                hashed_password=security.get_password_hash(password),
            )
            session.add(user)
            session.commit()
            return user

    return factory


@pytest.fixture()
def token_for() -> Callable[[User], str]:
    return lambda user: security.create_access_token({"sub": user.id})


@pytest.fixture()
def auth_headers(token_for) -> Callable[[User], dict[str, str]]:
    return lambda user: {"Authorization": f"Bearer {token_for(user)}"}
