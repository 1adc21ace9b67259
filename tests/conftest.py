"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import os

# ---------------------------------------------------------------------------
# Ensure a valid JWT_SECRET is always set for test runs.
# This must happen before any import of friends.api.deps which validates
# the secret at module-load time.
# ---------------------------------------------------------------------------
_TEST_JWT_SECRET = "test-secret-for-pytest-only-" + "x" * 40  # > 32 chars
os.environ.setdefault("JWT_SECRET", _TEST_JWT_SECRET)

import pytest  # noqa: E402
from sqlalchemy import Engine, create_engine  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from friends.database.legacy import legacy_metadata  # noqa: E402
from friends.database.models import (  # noqa: E402
    Application,
    Base,
    MembershipRecord,
    User,
    UserMetadata,
)
from friends.engine.membership import MembershipRegistry  # noqa: E402
from friends.engine.tokens import TokenService  # noqa: E402
from friends.services.auth_service import AuthManager, hash_password  # noqa: E402
from friends.services.roster_provider import RosterMembershipProvider  # noqa: E402

APP_KEY = "kiosk-test-0001"
OTHER_APP_KEY = "mobile-test-0001"
INACTIVE_APP_KEY = "retired-test-0001"
PASSWORD = "correct-horse"

_bigint_sqlite_registered = False


def _register_bigint_sqlite_compat():
    """Map BigInteger → INTEGER so legacy primary keys behave on SQLite (idempotent)."""
    global _bigint_sqlite_registered
    if _bigint_sqlite_registered:
        return
    from sqlalchemy import BigInteger
    from sqlalchemy.ext.compiler import compiles

    @compiles(BigInteger, "sqlite")
    def _compile_bigint_as_integer(type_, compiler, **kw):
        return "INTEGER"

    _bigint_sqlite_registered = True


_register_bigint_sqlite_compat()


def _memory_engine() -> Engine:
    return create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )


@pytest.fixture
def db_engine() -> Engine:
    """In-memory SQLite engine with all Friends tables and three applications.

    Uses StaticPool so the TestClient threadpool shares the same database.
    """
    engine = _memory_engine()
    Base.metadata.create_all(engine)
    with Session(engine) as session:
        session.add_all([
            Application(app_key=APP_KEY, name="Test kiosk"),
            Application(app_key=OTHER_APP_KEY, name="Test mobile"),
            Application(app_key=INACTIVE_APP_KEY, name="Retired", is_active=False),
        ])
        session.commit()
    return engine


@pytest.fixture
def legacy_engine() -> Engine:
    """Separate in-memory database holding the WordPress tables."""
    engine = _memory_engine()
    legacy_metadata.create_all(engine)
    return engine


@pytest.fixture
def db_session(db_engine: Engine):
    """Provide a transactional session that rolls back after each test."""
    with Session(db_engine) as session:
        yield session
        session.rollback()


@pytest.fixture
def token_service() -> TokenService:
    return TokenService(_TEST_JWT_SECRET)


@pytest.fixture
def auth(token_service: TokenService) -> AuthManager:
    registry = MembershipRegistry()
    registry.register(RosterMembershipProvider())
    return AuthManager(token_service, registry)


def make_user(
    engine: Engine,
    *,
    email: str = "ada@example.org",
    username: str | None = None,
    barcode_id: str | None = None,
    password: str = PASSWORD,
    password_reset_required: bool = False,
    first_name: str = "Ada",
    last_name: str = "Lovelace",
) -> int:
    """Insert a member with a profile and return their id."""
    with Session(engine) as session:
        user = User(
            name=f"{first_name} {last_name}",
            email=email,
            username=username,
            barcode_id=barcode_id,
            password_hash=hash_password(password),
            password_reset_required=password_reset_required,
        )
        user.metadata_ = UserMetadata(first_name=first_name, last_name=last_name)
        session.add(user)
        session.commit()
        return user.id


def make_membership(
    engine: Engine,
    *,
    member_number: str = "M-1001",
    first_name: str = "Grace",
    last_name: str = "Hopper",
    email: str = "grace@example.org",
    level: str = "Family",
    expires_on=None,
    user_id: int | None = None,
) -> None:
    with Session(engine) as session:
        session.add(MembershipRecord(
            member_number=member_number,
            first_name=first_name,
            last_name=last_name,
            email=email,
            level=level,
            expires_on=expires_on,
            user_id=user_id,
        ))
        session.commit()


@pytest.fixture
def client(db_engine: Engine, auth: AuthManager):
    """FastAPI TestClient wired to the in-memory database.

    ``raise_server_exceptions=False`` so unexpected errors surface as 500s.
    """
    from fastapi.testclient import TestClient

    from friends.api.main import app
    # Take the callables the routes were built with; test_jwt_startup reloads deps.
    from friends.api.routes import users as users_routes

    app.dependency_overrides[users_routes.get_engine] = lambda: db_engine
    app.dependency_overrides[users_routes.get_auth_manager] = lambda: auth
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()
