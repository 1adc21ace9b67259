"""
friends.engine.tokens — Typed, Purpose-Bound Tokens
====================================================

Every token the platform hands out is a signed JWT scoped to one
application key (``aud``) and one **purpose**:

``login``
    Proves a member authenticated through a given application.
``verify``
    Issued when a login matched a membership held outside the platform.
    Carries ``{pluginId, membership}`` so the client can prove who it is.
``membership``
    Issued once that membership was verified.  Presented at registration to
    bind the membership to the new account.

On the Python side a token is one of three frozen dataclasses
(:class:`LoginToken`, :class:`VerifyToken`, :class:`MembershipToken`).
:meth:`TokenService.decode` takes the class it expects, so a purpose
mismatch is rejected before any caller sees the claims.

No DB I/O in this module.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any, ClassVar, TypeVar

import jwt
from jwt.exceptions import InvalidTokenError

from friends.errors import AuthError

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"


class TokenPurpose(enum.StrEnum):
    """The single operation a token authorizes."""
    LOGIN = "login"
    VERIFY = "verify"
    MEMBERSHIP = "membership"


DEFAULT_TTLS: dict[TokenPurpose, timedelta] = {
    TokenPurpose.LOGIN: timedelta(hours=12),
    TokenPurpose.VERIFY: timedelta(minutes=30),
    TokenPurpose.MEMBERSHIP: timedelta(minutes=60),
}


class TokenError(AuthError):
    """Token is malformed, tampered, expired, for another app or purpose."""


# ---------------------------------------------------------------------------
# Token variants
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class MembershipContext:
    """Which provider owns a membership, and the provider's snapshot of it."""

    plugin_id: str
    membership: dict[str, Any] = field(default_factory=dict)

    def to_claim(self) -> dict[str, Any]:
        return {"pluginId": self.plugin_id, "membership": dict(self.membership)}

    @classmethod
    def from_claim(cls, raw: Any) -> MembershipContext:
        if not isinstance(raw, dict) or not raw.get("pluginId"):
            raise TokenError("Token context is missing a membership provider")
        membership = raw.get("membership") or {}
        if not isinstance(membership, dict):
            raise TokenError("Token membership snapshot is malformed")
        return cls(plugin_id=str(raw["pluginId"]), membership=membership)


@dataclass(frozen=True, slots=True)
class LoginToken:
    app_key: str
    user_id: int

    purpose: ClassVar[TokenPurpose] = TokenPurpose.LOGIN


@dataclass(frozen=True, slots=True)
class VerifyToken:
    app_key: str
    context: MembershipContext

    purpose: ClassVar[TokenPurpose] = TokenPurpose.VERIFY


@dataclass(frozen=True, slots=True)
class MembershipToken:
    app_key: str
    context: MembershipContext

    purpose: ClassVar[TokenPurpose] = TokenPurpose.MEMBERSHIP


Token = LoginToken | VerifyToken | MembershipToken
T = TypeVar("T", LoginToken, VerifyToken, MembershipToken)


# ---------------------------------------------------------------------------
# Encoding / decoding
# ---------------------------------------------------------------------------
class TokenService:
    """Sign and verify purpose-bound tokens with a shared HMAC secret."""

    def __init__(
        self,
        secret: str,
        *,
        ttls: dict[TokenPurpose, timedelta] | None = None,
        algorithm: str = JWT_ALGORITHM,
    ) -> None:
        self._secret = secret
        self._algorithm = algorithm
        self.ttls = {**DEFAULT_TTLS, **(ttls or {})}

    def issue(self, token: Token, *, now: datetime | None = None) -> str:
        """Encode *token* as a signed JWT."""
        issued_at = now or datetime.now(UTC)
        payload: dict[str, Any] = {
            "aud": token.app_key,
            "purpose": token.purpose.value,
            "iat": issued_at,
            "exp": issued_at + self.ttls[token.purpose],
        }
        if isinstance(token, LoginToken):
            payload["sub"] = str(token.user_id)
            payload["context"] = {}
        else:
            payload["context"] = token.context.to_claim()
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def decode(self, raw: str, expected: type[T], *, audience: str | None = None) -> T:
        """Verify *raw* and return it as an *expected* token.

        When *audience* is given the ``aud`` claim must equal it; otherwise
        the caller is responsible for checking ``app_key``.

        Raises
        ------
        TokenError
            Bad signature, expired, wrong audience, wrong purpose or
            missing claims.
        """
        try:
            payload = jwt.decode(
                raw,
                self._secret,
                algorithms=[self._algorithm],
                audience=audience,
                options={
                    "require": ["aud", "exp", "iat", "purpose"],
                    "verify_aud": audience is not None,
                },
            )
        except InvalidTokenError as exc:
            logger.info("Rejected %s token: %s", expected.purpose.value, exc)
            raise TokenError("Invalid or expired token") from exc

        if payload.get("purpose") != expected.purpose.value:
            logger.info(
                "Rejected token: expected purpose %r, got %r",
                expected.purpose.value, payload.get("purpose"),
            )
            raise TokenError("Token cannot be used for this operation")

        app_key = payload["aud"]
        if not isinstance(app_key, str):
            raise TokenError("Token audience is malformed")

        if expected is LoginToken:
            try:
                return LoginToken(app_key=app_key, user_id=int(payload["sub"]))
            except (KeyError, TypeError, ValueError) as exc:
                raise TokenError("Token subject is malformed") from exc

        context = MembershipContext.from_claim(payload.get("context"))
        return expected(app_key=app_key, context=context)
