"""
friends.services.roster_provider — Membership Office Roster
============================================================

The built-in :class:`~friends.engine.membership.MembershipProvider`.
Memberships sold at the front desk land in ``membership_records`` before
the member ever creates a Friends account.  A member scanning their card
(or typing the email on file) is matched here, proves who they are with
their name or email, and the record is bound to the account they create.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from datetime import date
from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from friends.constants import MEMBERSHIP_CLASSNAME_KEY
from friends.database.models import MembershipRecord, User, UserMetadata

logger = logging.getLogger(__name__)


def _same(a: Any, b: Any) -> bool:
    return bool(a) and bool(b) and str(a).strip().casefold() == str(b).strip().casefold()


class RosterMembershipProvider:
    plugin_id = "roster"

    def __init__(self, today: Callable[[], date] | None = None) -> None:
        # Injectable clock for expiry checks
        self._today = today or date.today

    def _record(self, session: Session, member_number: Any) -> MembershipRecord | None:
        if not member_number:
            return None
        return session.scalar(
            select(MembershipRecord).where(
                MembershipRecord.member_number == str(member_number)
            )
        )

    def _is_open(self, record: MembershipRecord) -> bool:
        if record.user_id is not None:
            return False
        return record.expires_on is None or record.expires_on >= self._today()

    def find_membership(self, session: Session, login: str) -> dict[str, Any] | None:
        login = (login or "").strip()
        if not login:
            return None
        record = session.scalar(
            select(MembershipRecord).where(
                or_(
                    MembershipRecord.member_number == login,
                    func.lower(MembershipRecord.email) == login.lower(),
                )
            )
        )
        if record is None or not self._is_open(record):
            return None
        return {
            MEMBERSHIP_CLASSNAME_KEY: "MembershipRecord",
            "member_number": record.member_number,
            "first_name": record.first_name,
            "last_name": record.last_name,
            "email": record.email,
            "level": record.level,
            "expires_on": record.expires_on.isoformat() if record.expires_on else None,
        }

    def verify(
        self,
        session: Session,
        membership: Mapping[str, Any],
        hints: Mapping[str, Any],
    ) -> bool:
        record = self._record(session, membership.get("member_number"))
        if record is None or not self._is_open(record):
            return False

        if _same(hints.get("email"), record.email):
            return True
        if _same(hints.get("first_name"), record.first_name) and _same(
            hints.get("last_name"), record.last_name
        ):
            return True
        logger.debug("Roster hints did not match membership %s", record.member_number)
        return False

    def save(self, session: Session, user: User, membership: Mapping[str, Any]) -> None:
        number = membership.get("member_number")
        record = self._record(session, number)
        if record is None:
            raise LookupError(f"Membership {number!r} no longer exists")
        if record.user_id is not None and record.user_id != user.id:
            raise ValueError(f"Membership {number!r} is already bound to another member")

        record.user_id = user.id
        meta = user.metadata_
        if meta is None:
            meta = UserMetadata(user_id=user.id)
            user.metadata_ = meta
        meta.current_member = True
        meta.current_member_number = record.member_number
        session.flush()
