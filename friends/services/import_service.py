"""
friends.services.import_service — WordPress → Friends User Import
==================================================================

One-shot migration utility that copies member accounts out of the legacy
WordPress database (``wp_users`` + key/value ``wp_usermeta``) into
``users`` + ``user_metadata``.

Resumable by construction: the cursor is ``max(users.id)`` in the platform
database, legacy ids are kept, and each row commits on its own.  Running
the job again after a crash (or with no new legacy rows) picks up exactly
where the last committed row left off.

Per-row outcomes:

``invalid``    legacy row has no email — skipped
``duplicate``  email already present locally — skipped
``saved``      user + metadata written
``failed``     metadata rejected or the write failed — row rolled back

A bad legacy record never aborts the batch.

Passwords are **not** migrated.  Imported accounts get an unusable password
and ``password_reset_required = True``; members must complete the password
reset flow before their first password login.  Card login works at once.
"""

from __future__ import annotations

import enum
import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy import Connection, Engine, func, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from friends.config import DEFAULT_IMPORT_BATCH_SIZE
from friends.constants import LEGACY_METADATA_DEFAULTS
from friends.database.engine import get_session
from friends.database.legacy import wp_usermeta, wp_users
from friends.database.models import User, UserMetadata
from friends.errors import ValidationError
from friends.services.auth_service import make_unusable_password

logger = logging.getLogger(__name__)

_TRUE_STRINGS = frozenset({"1", "true", "yes", "on", "y"})

# Column limits on user_metadata checked before write
_METADATA_LIMITS: dict[str, int] = {
    "first_name": 100,
    "last_name": 100,
    "current_member_number": 64,
}


class RowStatus(enum.StrEnum):
    INVALID = "invalid"
    DUPLICATE = "duplicate"
    SAVED = "saved"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class RowOutcome:
    row_id: int
    email: str
    status: RowStatus
    detail: str | None = None


@dataclass
class ImportReport:
    """Everything one ``import_batch`` run did, row by row."""

    cursor: int
    limit: int
    outcomes: list[RowOutcome] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return len(self.outcomes)

    def count(self, status: RowStatus) -> int:
        return sum(1 for o in self.outcomes if o.status is status)

    def summary(self) -> dict:
        counts = Counter(o.status.value for o in self.outcomes)
        return {
            "cursor": self.cursor,
            "processed": self.processed,
            **{status.value: counts.get(status.value, 0) for status in RowStatus},
        }


# ---------------------------------------------------------------------------
# Coercion helpers
# ---------------------------------------------------------------------------
def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() in _TRUE_STRINGS


def _as_points(value: Any) -> int:
    text = str(value if value is not None else "").strip()
    if not text:
        return 0
    try:
        return int(float(text))
    except ValueError as exc:
        raise ValidationError(
            "Legacy points are not numeric", {"points": [f"{text!r} is not a number"]}
        ) from exc


# ---------------------------------------------------------------------------
# Reads from the legacy database
# ---------------------------------------------------------------------------
def current_cursor(session: Session) -> int:
    """Highest user id already present locally (0 for an empty table)."""
    return int(session.scalar(select(func.coalesce(func.max(User.id), 0))) or 0)


def fetch_legacy_users(conn: Connection, cursor: int, limit: int) -> list[Any]:
    return list(conn.execute(
        select(wp_users)
        .where(wp_users.c.ID > cursor)
        .order_by(wp_users.c.ID.asc())
        .limit(limit)
    ))


def fetch_legacy_metadata(conn: Connection, legacy_id: int) -> dict[str, Any]:
    """Collapse a user's ``wp_usermeta`` rows into one attribute map.

    Every key the importer reads starts from an explicit default, so a
    missing legacy row never yields ``None`` downstream.
    """
    data: dict[str, Any] = dict(LEGACY_METADATA_DEFAULTS)
    rows = conn.execute(
        select(wp_usermeta.c.meta_key, wp_usermeta.c.meta_value)
        .where(wp_usermeta.c.user_id == legacy_id)
        .order_by(wp_usermeta.c.umeta_id)
    )
    for meta_key, meta_value in rows:
        if meta_key:
            data[meta_key] = meta_value if meta_value is not None else ""
    return data


# ---------------------------------------------------------------------------
# Transform
# ---------------------------------------------------------------------------
def build_user(row: Any, data: dict[str, Any]) -> User:
    """User row for a legacy account.  Keeps the legacy id."""
    user = User(
        id=int(row.ID),
        name=row.user_nicename or "",
        email=row.user_email.strip(),
        password_hash=make_unusable_password(),
        password_reset_required=True,
        phone=str(data["home_phone"]),
        street_addr=str(data["street_address"]),
        city=str(data["city"]),
        state=str(data["state"]),
        zip=str(data["zip"]),
    )
    if isinstance(row.user_registered, datetime):
        user.created_at = row.user_registered
    return user


def build_metadata(data: dict[str, Any]) -> UserMetadata:
    return UserMetadata(
        first_name=str(data["first_name"]),
        last_name=str(data["last_name"]),
        points=_as_points(data["_badgeos_points"]),
        email_optin=_as_bool(data["email_optin"]),
        current_member=_as_bool(data["current_member"]),
        current_member_number=str(data["current_member_number"]),
    )


def validate_metadata(meta: UserMetadata) -> None:
    """The checks a profile save goes through.

    Raises
    ------
    ValidationError
        A field exceeds its column length or points are negative.
    """
    errors: dict[str, list[str]] = {}
    for name, limit in _METADATA_LIMITS.items():
        value = getattr(meta, name) or ""
        if len(value) > limit:
            errors[name] = [f"The {name} may not be greater than {limit} characters."]
    if meta.points is not None and meta.points < 0:
        errors["points"] = ["The points must be at least 0."]
    if errors:
        raise ValidationError("User metadata fails to validate", errors)


# ---------------------------------------------------------------------------
# Id sequence
# ---------------------------------------------------------------------------
def sync_user_id_sequence(session: Session) -> None:
    """Move the PostgreSQL ``users.id`` sequence past the highest imported id.

    Explicit-id inserts never advance a SERIAL sequence.  Other dialects
    allocate from ``max(id)``.
    """
    if session.get_bind().dialect.name != "postgresql":
        return
    session.execute(text(
        "SELECT setval(pg_get_serial_sequence('users', 'id'), "
        "(SELECT MAX(id) FROM users))"
    ))


# ---------------------------------------------------------------------------
# Batch
# ---------------------------------------------------------------------------
def _import_row(engine: Engine, conn: Connection, row: Any) -> RowOutcome:
    row_id = int(row.ID)
    email = (row.user_email or "").strip()

    if not email:
        logger.warning("invalid account (legacy id %d)", row_id)
        return RowOutcome(row_id, email, RowStatus.INVALID, "missing email")

    with Session(engine) as session:
        taken = session.scalar(
            select(User.id).where(func.lower(User.email) == email.lower())
        )
    if taken is not None:
        logger.warning("duplicate account: %s (legacy id %d, local id %d)", email, row_id, taken)
        return RowOutcome(row_id, email, RowStatus.DUPLICATE, f"local user {taken}")

    try:
        data = fetch_legacy_metadata(conn, row_id)
        with get_session(engine) as session:
            # User row goes in as-is; only the profile is validated
            user = build_user(row, data)
            session.add(user)
            session.flush()

            metadata = build_metadata(data)
            validate_metadata(metadata)
            user.metadata_ = metadata
            session.flush()
    except (ValidationError, SQLAlchemyError) as exc:
        logger.warning("account failed: %s (%s)", email, exc)
        return RowOutcome(row_id, email, RowStatus.FAILED, str(exc))

    logger.info("saved user: %s", email)
    return RowOutcome(row_id, email, RowStatus.SAVED)


def import_batch(
    engine: Engine,
    legacy_engine: Engine,
    *,
    limit: int = DEFAULT_IMPORT_BATCH_SIZE,
) -> ImportReport:
    """Import the next *limit* legacy users after ``max(users.id)``.

    Args:
        engine: Platform engine (write).
        legacy_engine: WordPress engine (read only).
        limit: Maximum legacy rows examined this run.

    Returns:
        An :class:`ImportReport` with one outcome per examined row.
    """
    with Session(engine) as session:
        cursor = current_cursor(session)

    report = ImportReport(cursor=cursor, limit=limit)
    with legacy_engine.connect() as conn:
        rows = fetch_legacy_users(conn, cursor, limit)
        logger.info("Importing %d legacy user(s) after id %d", len(rows), cursor)
        for row in rows:
            report.outcomes.append(_import_row(engine, conn, row))

    if report.count(RowStatus.SAVED):
        with get_session(engine) as session:
            sync_user_id_sequence(session)

    logger.info(
        "Import finished: %d saved, %d duplicate, %d invalid, %d failed",
        report.count(RowStatus.SAVED),
        report.count(RowStatus.DUPLICATE),
        report.count(RowStatus.INVALID),
        report.count(RowStatus.FAILED),
    )
    return report
