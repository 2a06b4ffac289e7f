"""
Test configuration and fixtures for the short link service.
This centralizes all test setup, making individual tests clean.
"""

import os

# Must be set before the app and its settings are imported
os.environ["DATABASE_URL"] = "sqlite:///./test.db"
os.environ["LOCK_BACKEND"] = "memory"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from main import app
from shortlink_app.database.connection import Base, engine, get_db
from shortlink_app.dependencies import get_lock
from shortlink_app.locks.strategies import InMemoryLock
from shortlink_app.models.user import User
from shortlink_app.repositories.link_repository import LinkRepository
from shortlink_app.schemas.link import LinkCreate
from shortlink_app.services.link_service import LinkService
from shortlink_app.services.short_code_strategies import Base62ShortCodeStrategy
from shortlink_app.services.version_log import VersionLog

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def session_factory():
    """
    Fresh tables for each test; yields the session factory so threaded
    tests can open one session per thread.
    """
    Base.metadata.create_all(bind=engine)
    try:
        yield TestingSessionLocal
    finally:
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="function")
def lock():
    return InMemoryLock(blocking_timeout=10)


@pytest.fixture(scope="function")
def owner(db_session):
    user = User(username="alice", email="alice@example.com")
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture(scope="function")
def moderator(db_session):
    user = User(username="mod", email="mod@example.com")
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture(scope="function")
def version_log(db_session, lock):
    return VersionLog(db=db_session, links=LinkRepository(db_session), lock=lock)


@pytest.fixture(scope="function")
def link_service(db_session, version_log):
    return LinkService(
        db=db_session,
        links=version_log.links,
        versions=version_log,
        short_code_strategy=Base62ShortCodeStrategy(salt=1256, max_length=6),
    )


@pytest.fixture(scope="function")
def make_link(link_service, owner):
    """Create a link owned by `owner`; keyword arguments go to LinkCreate"""
    def _make_link(destination_url="https://a.example", **fields):
        return link_service.create_link(
            owner.id, LinkCreate(destination_url=destination_url, **fields)
        )
    return _make_link


@pytest.fixture(scope="function")
def client(db_session, lock):
    """
    Create a test client with database and lock dependencies overridden.
    This is the main fixture that API tests will use.
    """
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_lock] = lambda: lock

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
