"""
Pytest configuration and fixtures.
"""

import os
from datetime import datetime

import pytest

# Set test environment before any marketplace import reads settings
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("ADMIN_API_KEY", "test-api-key")
os.environ.setdefault("CRON_SECRET", "test-cron-secret")
os.environ.setdefault("LOG_JSON", "false")

from sqlalchemy import create_engine, update  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

# Fixed reference instant for lifecycle tests
NOW = datetime(2026, 10, 18, 12, 0, 0)


class StaticTierResolver:
    """Resolver backed by a dict; unknown users are free."""

    def __init__(self, tiers=None):
        self.tiers = dict(tiers or {})
        self.calls = []

    def resolve(self, user_id):
        self.calls.append(user_id)
        return self.tiers.get(user_id, "free")


class FailingTierResolver:
    """Resolver whose lookups always fail."""

    def resolve(self, user_id):
        raise RuntimeError("billing service unavailable")


@pytest.fixture
def engine():
    """Fresh in-memory SQLite database shared across threads."""
    from marketplace import models  # noqa: F401
    from marketplace.database import Base

    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def store(db_session):
    from marketplace.services.lifecycle import ListingStore

    return ListingStore(db_session)


@pytest.fixture
def make_listing(db_session):
    """Insert a listing and return its id. created_at/updated_at may be None."""
    from marketplace.models import Listing

    def _make(**kwargs):
        kwargs.setdefault("user_id", "user-1")
        kwargs.setdefault("status", "active")
        kwargs.setdefault("title", "1999 Pokemon Base Set Charizard")
        nulls = {key: None for key in ("created_at", "updated_at") if key in kwargs and kwargs[key] is None}
        for key in nulls:
            kwargs.pop(key)
        kwargs.setdefault("created_at", NOW)
        kwargs.setdefault("updated_at", kwargs["created_at"])

        listing = Listing(**kwargs)
        db_session.add(listing)
        db_session.commit()
        listing_id = listing.id

        if nulls:
            db_session.execute(update(Listing).where(Listing.id == listing_id).values(**nulls))
            db_session.commit()
        return listing_id

    return _make


@pytest.fixture
def make_user(db_session):
    from marketplace.models import User

    def _make(**kwargs):
        user = User(**kwargs)
        db_session.add(user)
        db_session.commit()
        return user.id

    return _make


@pytest.fixture
def resolver():
    return StaticTierResolver()


@pytest.fixture
def client(session_factory):
    """Test client whose requests use the in-memory test database."""
    from fastapi.testclient import TestClient

    from marketplace.database import get_db
    from marketplace.main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.state.tier_cache.clear()
    yield TestClient(app)
    app.dependency_overrides.clear()
