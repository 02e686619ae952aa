"""Pytest configuration and shared fixtures."""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from moderation.api.deps import get_db, get_role_policy, get_stats_cache
from moderation.api.main import app
from moderation.core.queue import (
    InMemorySubmissionStore,
    ModerationGateway,
    StatsCache,
    SubmissionKind,
)
from moderation.core.rbac import RolePolicy, get_default_roles
from moderation.db.base import Base

ADMIN_ROLE = "admin"
USER_ROLE = "user"


@pytest.fixture
def role_policy():
    """Default roles: 'admin' holds every permission, 'user' none."""
    return RolePolicy(get_default_roles(ADMIN_ROLE))


@pytest.fixture
def memory_store():
    return InMemorySubmissionStore()


@pytest.fixture
def gateway(memory_store, role_policy):
    return ModerationGateway(memory_store, role_policy)


@pytest.fixture
def seeded_store(memory_store):
    """Store with two pending submissions of every kind."""
    for kind in SubmissionKind:
        for n in range(2):
            memory_store.create(
                kind,
                owner_id=f"owner-{kind.value}-{n}",
                payload={"name": f"{kind.value.title()} {n}"},
                submission_id=f"{kind.value}-{n}",
            )
    return memory_store


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest.fixture
def engine():
    """In-memory SQLite engine shared by every session of a test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------


def _wired_client(session_factory, role_policy, stats_cache):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_role_policy] = lambda: role_policy
    app.dependency_overrides[get_stats_cache] = lambda: stats_cache
    return TestClient(app)


@pytest.fixture
def client(session_factory, role_policy):
    """Test client wired to the in-memory database, stats scanned live."""
    yield _wired_client(session_factory, role_policy, None)
    app.dependency_overrides.clear()


@pytest.fixture
def cached_client(session_factory, role_policy):
    """Test client with a long-lived stats cache enabled."""
    yield _wired_client(session_factory, role_policy, StatsCache(ttl_seconds=60))
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers():
    return {"X-Caller-Id": "admin-1", "X-Caller-Role": ADMIN_ROLE}


@pytest.fixture
def user_headers():
    return {"X-Caller-Id": "user-1", "X-Caller-Role": USER_ROLE}
