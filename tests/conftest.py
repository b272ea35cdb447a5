"""
Pytest configuration and fixtures for Akshara tests.

This module provides shared fixtures for testing database models, repositories,
and the API.
"""

import os

# Must be set before akshara.config is imported anywhere
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("LOG_FILE_ENABLED", "false")

import random
from datetime import UTC, datetime, timedelta
from typing import Generator

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from akshara.models.db import Base, Conversation, User


@pytest.fixture(scope="session")
def test_engine():
    """Create a test database engine using SQLite in-memory."""
    engine = create_engine(
        "sqlite:///:memory:",
        echo=False,
        connect_args={
            "check_same_thread": False
        },  # Allow cross-thread access for TestClient
        poolclass=StaticPool,
    )

    # pysqlite needs these for SAVEPOINT to work inside an outer transaction
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(test_engine) -> Generator[Session, None, None]:
    """
    Create a new database session for a test.

    Each test runs inside a transaction that is rolled back afterwards.
    Session commits and rollbacks only touch a savepoint, so a request that
    fails halfway does not discard the test's fixtures.
    """
    connection = test_engine.connect()
    transaction = connection.begin()
    session = sessionmaker(
        bind=connection, join_transaction_mode="create_savepoint"
    )()

    yield session

    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture
def api_client(db_session: Session):
    """Create a test client with database and assistant dependencies overridden."""
    from unittest.mock import patch

    from fastapi.testclient import TestClient

    from akshara.api.app import app
    from akshara.db.connection import get_db
    from akshara.services.assistant import (
        CannedReplyGenerator,
        CannedTranscriber,
        get_reply_generator,
        get_transcriber,
    )

    def override_get_db():
        try:
            yield db_session
            db_session.commit()
        except Exception:
            db_session.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_reply_generator] = lambda: CannedReplyGenerator(
        rng=random.Random(0)
    )
    app.dependency_overrides[get_transcriber] = lambda: CannedTranscriber(
        rng=random.Random(0)
    )

    # Disable lifespan startup checks for testing
    with patch("akshara.api.app.run_all_startup_checks"):
        client = TestClient(app)
        yield client

    app.dependency_overrides.clear()


def make_user(
    session: Session,
    username: str = "alice",
    email: str = "alice@example.com",
    password: str = "password123",
) -> User:
    user = User(username=username, email=email)
    user.set_password(password)
    session.add(user)
    session.commit()
    return user


def auth_headers_for(user: User) -> dict[str, str]:
    from akshara.api.auth import create_access_token

    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture
def sample_user(db_session: Session) -> User:
    """Create a sample user whose password is 'password123'."""
    return make_user(db_session)


@pytest.fixture
def other_user(db_session: Session) -> User:
    """Create a second user for ownership checks."""
    return make_user(db_session, username="bob", email="bob@example.com")


@pytest.fixture
def auth_headers(sample_user: User) -> dict[str, str]:
    return auth_headers_for(sample_user)


@pytest.fixture
def sample_conversation(db_session: Session, sample_user: User) -> Conversation:
    """Create a conversation with one user message and one reply, 30s apart."""
    started = datetime(2025, 1, 15, 10, 0, 0, tzinfo=UTC)
    conversation = Conversation(
        user_id=sample_user.id,
        title="Trip planning",
        tags=["travel", "Summer"],
        created_at=started,
    )
    conversation.append_message("user", "Plan a trip to Lisbon", timestamp=started)
    conversation.append_message(
        "ai",
        "Lisbon is lovely in spring.",
        timestamp=started + timedelta(seconds=30),
    )
    db_session.add(conversation)
    db_session.commit()
    return conversation
