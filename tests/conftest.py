"""Test configuration and fixtures.

Every test gets its own in-memory SQLite database (StaticPool keeps the
single connection alive for the lifetime of the engine).
"""

from typing import Generator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from dockstore_webservice.config import Settings
from dockstore_webservice.db.base import Base
from dockstore_webservice.db.models import TokenModel, UserModel
from dockstore_webservice.db.store import EntryStore

from factories import RecordingIndexNotifier


@pytest.fixture
def engine():
    from dockstore_webservice.db import models  # noqa: F401

    test_engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture
def session_factory(engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def store(db_session) -> EntryStore:
    return EntryStore(db_session)


@pytest.fixture
def settings() -> Settings:
    return Settings(elasticsearch_url=None, refresh_skip_empty_snapshots=True)


@pytest.fixture
def notifier() -> RecordingIndexNotifier:
    return RecordingIndexNotifier()


@pytest.fixture
def user(db_session) -> UserModel:
    """A user holding a GitHub token."""
    alice = UserModel(username="alice")
    alice.tokens.append(TokenModel(token_source="github.com", content="gh-token"))
    db_session.add(alice)
    db_session.commit()
    return alice


@pytest.fixture
def mallory(db_session) -> UserModel:
    """A second user holding a GitHub token and owning nothing."""
    intruder = UserModel(username="mallory")
    intruder.tokens.append(TokenModel(token_source="github.com", content="m-token"))
    db_session.add(intruder)
    db_session.commit()
    return intruder


@pytest.fixture
def persist(store):
    """Save detached entries and return them attached to the session."""

    def _persist(*entries, owner=None):
        def work():
            for entry in entries:
                store.add(entry)
                if owner is not None:
                    entry.users.append(owner)
            return entries

        store.execute(work)
        return entries[0] if len(entries) == 1 else entries

    return _persist
