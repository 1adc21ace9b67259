"""
friends.engine.membership — Membership Provider Registry
=========================================================

A membership is owned by an external system (the membership office's
roster, a partner CRM, ...).  Each system is wrapped by a
:class:`MembershipProvider` identified by a ``plugin_id`` string; tokens
carry that id so later steps of the flow reach the same provider.

Providers are registered once at process start::

    registry = MembershipRegistry()
    registry.register(RosterMembershipProvider())

    provider = registry.get("roster")
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from friends.constants import MEMBERSHIP_CLASSNAME_KEY

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

    from friends.database.models import User

logger = logging.getLogger(__name__)


@runtime_checkable
class MembershipProvider(Protocol):
    """Capabilities the account flows need from a membership system."""

    plugin_id: str

    def find_membership(self, session: Session, login: str) -> dict[str, Any] | None:
        """Return a membership snapshot for *login*, or ``None``.

        The snapshot should carry ``first_name``, ``last_name`` and
        ``email`` keys; they are returned to the client as hints.
        """
        ...

    def verify(
        self,
        session: Session,
        membership: Mapping[str, Any],
        hints: Mapping[str, Any],
    ) -> bool:
        """Whether the submitted identity *hints* match *membership*."""
        ...

    def save(self, session: Session, user: User, membership: Mapping[str, Any]) -> None:
        """Bind *membership* to the newly registered *user*."""
        ...


class MembershipRegistry:
    """Maps ``plugin_id`` → provider.  Lookup order follows registration."""

    def __init__(self) -> None:
        self._providers: dict[str, MembershipProvider] = {}

    def register(self, provider: MembershipProvider) -> None:
        if provider.plugin_id in self._providers:
            raise ValueError(f"Membership provider {provider.plugin_id!r} already registered")
        self._providers[provider.plugin_id] = provider
        logger.info("Registered membership provider %r", provider.plugin_id)

    def get(self, plugin_id: str) -> MembershipProvider | None:
        return self._providers.get(plugin_id)

    def providers(self) -> list[MembershipProvider]:
        return list(self._providers.values())

    def __contains__(self, plugin_id: object) -> bool:
        return plugin_id in self._providers

    def __len__(self) -> int:
        return len(self._providers)


def public_membership(membership: Mapping[str, Any]) -> dict[str, Any]:
    """Copy of *membership* without the provider's internal type marker."""
    output = dict(membership)
    output.pop(MEMBERSHIP_CLASSNAME_KEY, None)
    return output


def _mask(value: Any) -> str | None:
    if not value:
        return None
    text = str(value)
    return text[0] + "*" * (len(text) - 1)


def _mask_email(value: Any) -> str | None:
    if not value or "@" not in str(value):
        return _mask(value)
    local, _, domain = str(value).partition("@")
    return f"{_mask(local)}@{domain}"


def membership_hints(membership: Mapping[str, Any]) -> dict[str, Any]:
    """Masked identity fields a client may show while asking for verification.

    Only the first character of each value is revealed; the member still
    has to type the full name or email to pass verification.
    """
    return {
        "first_name": _mask(membership.get("first_name")),
        "last_name": _mask(membership.get("last_name")),
        "email": _mask_email(membership.get("email")),
    }
