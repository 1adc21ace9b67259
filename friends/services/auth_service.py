"""
friends.services.auth_service — AuthManager
============================================

Everything that decides *who* is calling:

* application keys (unknown or inactive keys fail closed),
* credential attempts — password login and password-less card login,
* token issue / decode through :class:`~friends.engine.tokens.TokenService`,
* dispatch to membership providers by ``plugin_id``,
* the raw user + profile insert used by registration.

Request shaping and response composition live in
:mod:`friends.services.user_service`; this module never sees HTTP.
"""

from __future__ import annotations

import logging
import secrets
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload
from werkzeug.security import check_password_hash, generate_password_hash

from friends.constants import UNUSABLE_PASSWORD_PREFIX
from friends.database.models import Application, User, UserMetadata
from friends.engine.membership import MembershipRegistry, membership_hints
from friends.engine.tokens import (
    LoginToken,
    MembershipContext,
    T,
    Token,
    TokenService,
    VerifyToken,
)
from friends.errors import AuthError, ValidationError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Passwords
# ---------------------------------------------------------------------------
def hash_password(password: str) -> str:
    return generate_password_hash(password)


def make_unusable_password() -> str:
    """A hash no password can ever match.

    Used for imported accounts whose legacy password cannot be carried over;
    those members must go through the password reset flow first.
    """
    return UNUSABLE_PASSWORD_PREFIX + secrets.token_hex(16)


def verify_password(password: str, password_hash: str | None) -> bool:
    if not password_hash or password_hash.startswith(UNUSABLE_PASSWORD_PREFIX):
        return False
    return check_password_hash(password_hash, password)


# ---------------------------------------------------------------------------
# Value objects
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class Credentials:
    """One login attempt.  Never persisted."""

    login: str
    app_key: str
    password: str | None = None
    no_password: bool = False


@dataclass
class AuthResult:
    """A resolved member and their ``login`` token."""

    user: User
    token: str


@dataclass
class PendingVerification:
    """Login matched an external membership but no member account."""

    plugin_id: str
    verification_token: str
    hints: dict[str, Any] = field(default_factory=dict)
    message: str = (
        "This user has a membership outside of the Friends platform. "
        "Please verify this user in order to create a Friends profile."
    )


# ---------------------------------------------------------------------------
# AuthManager
# ---------------------------------------------------------------------------
class AuthManager:
    """Application, credential, token and membership-provider operations."""

    def __init__(self, tokens: TokenService, registry: MembershipRegistry) -> None:
        self.tokens = tokens
        self.registry = registry

    # -- applications -------------------------------------------------------

    def get_application(self, session: Session, app_key: str | None) -> Application:
        """Return the active application for *app_key*.

        Raises
        ------
        AuthError
            Key missing, unknown or inactive.
        """
        if not app_key:
            raise AuthError("Application key is required")
        app = session.scalar(select(Application).where(Application.app_key == app_key))
        if app is None or not app.is_active:
            logger.warning("Rejected unknown or inactive application key")
            raise AuthError("Invalid or inactive application key")
        return app

    def is_application_key_valid(self, session: Session, app_key: str | None) -> None:
        self.get_application(session, app_key)

    # -- tokens -------------------------------------------------------------

    def create_token(self, token: Token) -> str:
        return self.tokens.issue(token)

    def decode_token(self, raw: str, expected: type[T], *, audience: str | None = None) -> T:
        return self.tokens.decode(raw, expected, audience=audience)

    # -- users --------------------------------------------------------------

    def find_user(self, session: Session, login: str, *, card_only: bool = False) -> User | None:
        """Resolve *login* to a member.

        Password logins match email (case-insensitive), then username, then
        card barcode.  Card logins match only the card barcode.
        """
        query = select(User).options(selectinload(User.metadata_))
        if card_only:
            return session.scalar(query.where(User.barcode_id == login))

        user = session.scalar(query.where(func.lower(User.email) == login.lower()))
        if user is None:
            user = session.scalar(query.where(User.username == login))
        if user is None:
            user = session.scalar(query.where(User.barcode_id == login))
        return user

    def get_user(self, session: Session, user_id: int) -> User | None:
        return session.scalar(
            select(User).options(selectinload(User.metadata_)).where(User.id == user_id)
        )

    def attempt(
        self, session: Session, credentials: Credentials
    ) -> AuthResult | PendingVerification | None:
        """Try *credentials*.

        Returns an :class:`AuthResult` for a member, a
        :class:`PendingVerification` when only an external membership
        matched, or ``None`` when nothing matched.

        Raises
        ------
        ValidationError
            Login (or password, for password logins) missing.
        AuthError
            Bad application key, wrong password, or the account must reset
            its password first.
        """
        errors: dict[str, list[str]] = {}
        if not credentials.login:
            errors["login"] = ["The login field is required."]
        if not credentials.no_password and not credentials.password:
            errors["password"] = ["The password field is required."]
        if errors:
            raise ValidationError("Invalid credential details", errors)

        app = self.get_application(session, credentials.app_key)

        user = self.find_user(session, credentials.login, card_only=credentials.no_password)
        if user is not None:
            if not credentials.no_password:
                if user.password_reset_required:
                    raise AuthError("Password reset required for this account")
                if not verify_password(credentials.password or "", user.password_hash):
                    logger.info("Password mismatch for user %d", user.id)
                    raise AuthError("Invalid login credentials")
            token = self.create_token(LoginToken(app_key=app.app_key, user_id=user.id))
            logger.info("User %d logged in via %r", user.id, app.name)
            return AuthResult(user=user, token=token)

        for provider in self.registry.providers():
            membership = provider.find_membership(session, credentials.login)
            if membership is None:
                continue
            context = MembershipContext(plugin_id=provider.plugin_id, membership=membership)
            token = self.create_token(VerifyToken(app_key=app.app_key, context=context))
            logger.info("Login matched external membership (%s)", provider.plugin_id)
            return PendingVerification(
                plugin_id=provider.plugin_id,
                verification_token=token,
                hints=membership_hints(membership),
            )

        return None

    def register(self, session: Session, data: Mapping[str, Any]) -> User:
        """Insert a member and their profile.  Caller owns the transaction.

        *data* is already validated and normalized by the caller.

        Raises
        ------
        ValidationError
            Email, username or card barcode already taken.
        """
        errors: dict[str, list[str]] = {}
        email = data["email"]
        if session.scalar(select(User.id).where(func.lower(User.email) == email.lower())):
            errors["email"] = ["The email has already been taken."]
        username = data.get("username")
        if username and session.scalar(select(User.id).where(User.username == username)):
            errors["username"] = ["The username has already been taken."]
        if errors:
            raise ValidationError("User data fails to validate", errors)

        first_name = data.get("first_name", "")
        last_name = data.get("last_name", "")
        user = User(
            name=data.get("name") or f"{first_name} {last_name}".strip(),
            email=email,
            username=username,
            password_hash=hash_password(data["password"]),
            phone=data.get("phone", ""),
            street_addr=data.get("street_addr", ""),
            city=data.get("city", ""),
            state=data.get("state", ""),
            zip=data.get("zip", ""),
        )
        user.metadata_ = UserMetadata(
            first_name=first_name,
            last_name=last_name,
            birth_date=data.get("birth_date"),
            email_optin=bool(data.get("email_optin", False)),
            gender=data.get("gender"),
            race=data.get("race"),
            household_income=data.get("household_income"),
            household_size=data.get("household_size"),
            education=data.get("education"),
        )
        session.add(user)
        session.flush()
        logger.info("Registered user %d", user.id)
        return user

    # -- membership providers ----------------------------------------------

    def verify_membership(
        self,
        session: Session,
        plugin_id: str,
        membership: Mapping[str, Any],
        hints: Mapping[str, Any],
    ) -> bool:
        provider = self.registry.get(plugin_id)
        if provider is None:
            logger.warning("No membership provider registered for %r", plugin_id)
            return False
        return bool(provider.verify(session, membership, hints))

    def save_membership(
        self,
        session: Session,
        plugin_id: str,
        user: User,
        membership: Mapping[str, Any],
    ) -> None:
        provider = self.registry.get(plugin_id)
        if provider is None:
            raise LookupError(f"No membership provider registered for {plugin_id!r}")
        provider.save(session, user, membership)
        logger.info("Bound %s membership to user %d", plugin_id, user.id)
