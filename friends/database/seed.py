"""
friends.database.seed — Application Key Seeder
===============================================

Inserts the API clients declared in ``config.yaml`` so a fresh deployment
can log users in immediately.

Idempotent — only inserts keys that don't already exist.  Applications
deactivated or renamed later are never overwritten.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from sqlalchemy import Engine, select
from sqlalchemy.orm import Session

from friends.config import ApplicationSeed
from friends.database.models import Application

logger = logging.getLogger(__name__)


def seed_applications(engine: Engine, seeds: Iterable[ApplicationSeed]) -> int:
    """Insert applications whose key is missing.  Returns the insert count."""
    session = Session(engine)
    inserted = 0
    try:
        for seed in seeds:
            existing = session.scalar(
                select(Application).where(Application.app_key == seed.key)
            )
            if existing is None:
                session.add(Application(
                    app_key=seed.key,
                    name=seed.name,
                    is_active=seed.active,
                ))
                inserted += 1
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()

    if inserted:
        logger.info("Seeded %d application(s).", inserted)
    return inserted
