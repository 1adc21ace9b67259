"""
friends.database.engine — Database Connections & Session Helper
================================================================

Two engines exist in a Friends deployment:

* the **platform** engine (``DATABASE_URL``) that owns users, metadata and
  the gamification catalogue, and
* the **legacy** engine (``LEGACY_DATABASE_URL``), a read-only connection to
  the old WordPress database, used only by the importer.

FastAPI runs the sync endpoints on its threadpool, so each request opens
its own :class:`Session` through :func:`get_session`.

Usage::

    from friends.database.engine import create_db_engine, get_session, init_db

    engine = create_db_engine()          # reads DATABASE_URL from .env
    init_db(engine)                      # CREATE TABLE IF NOT EXISTS …

    with get_session(engine) as session:
        session.add(Application(app_key="kiosk", name="Kiosk"))
"""

from __future__ import annotations

import logging
import os
from contextlib import contextmanager

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session

from friends.database.models import Base

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Engine creation
# ---------------------------------------------------------------------------
def _engine_from_env(var: str) -> Engine:
    url = os.getenv(var)
    if not url:
        raise RuntimeError(
            f"{var} is not set.  "
            "Copy .env.example → .env and set a valid database URL."
        )

    engine = create_engine(
        url,
        echo=False,        # Set True for SQL debugging
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,   # Reconnect stale connections automatically
        pool_timeout=10,      # Fail after 10s instead of hanging forever
        pool_recycle=3600,    # Recycle connections after 1 hour
    )
    logger.info("Database engine created (%s) → %s", var, engine.url.host)
    return engine


def create_db_engine() -> Engine:
    """Build the platform :class:`Engine` from ``DATABASE_URL``.

    Raises
    ------
    RuntimeError
        If ``DATABASE_URL`` is not set.
    """
    return _engine_from_env("DATABASE_URL")


def create_legacy_engine() -> Engine:
    """Build the WordPress source :class:`Engine` from ``LEGACY_DATABASE_URL``.

    Raises
    ------
    RuntimeError
        If ``LEGACY_DATABASE_URL`` is not set.
    """
    return _engine_from_env("LEGACY_DATABASE_URL")


# ---------------------------------------------------------------------------
# Schema initialization
# ---------------------------------------------------------------------------
def init_db(engine: Engine) -> None:
    """Create all tables defined in :mod:`friends.database.models`.

    Safe to call on every startup — ``CREATE TABLE IF NOT EXISTS`` under the
    hood.

    .. note::

        In production the schema is managed by Alembic (``alembic upgrade
        head``).  ``create_all`` is retained for dev/test environments.
    """
    Base.metadata.create_all(engine)
    logger.info("Database tables verified / created.")


# ---------------------------------------------------------------------------
# Session helper
# ---------------------------------------------------------------------------
@contextmanager
def get_session(engine: Engine):
    """Yield a :class:`Session` that auto-commits on success and rolls back
    on exception.

    Objects stay readable after the block exits (``expire_on_commit=False``)
    so services can hand them to serializers.

    Usage::

        with get_session(engine) as session:
            session.add(User(email="ada@example.org", password_hash=h))
            # commit happens automatically on block exit
    """
    session = Session(engine, expire_on_commit=False)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
