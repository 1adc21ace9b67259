"""
friends.importer.__main__ — Entry point for ``python -m friends.importer``
==========================================================================

Wiring:
1. Load .env (DATABASE_URL, LEGACY_DATABASE_URL).
2. Load config.yaml (batch size).
3. Create both engines and ensure platform tables exist.
4. Import one batch of legacy users and print a summary.

Run with::

    uv run python -m friends.importer

Every row outcome is logged; the process exits 0 unless it crashes.
Run it repeatedly (e.g. from cron) until it reports 0 records.
"""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv

from friends.config import load_config
from friends.database.engine import create_db_engine, create_legacy_engine, init_db
from friends.services.import_service import import_batch

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("friends")


def main() -> None:
    """Import one batch of WordPress users."""

    # 1. Environment variables (secrets).
    load_dotenv()

    # 2. Soft configuration.
    cfg = load_config(os.getenv("FRIENDS_CONFIG", "config.yaml"))

    # 3. Databases.
    engine = create_db_engine()
    init_db(engine)
    legacy_engine = create_legacy_engine()

    # 4. Import.
    report = import_batch(engine, legacy_engine, limit=cfg.import_batch_size)
    logger.info("Sync processed %d records", report.processed)


if __name__ == "__main__":
    main()
