"""
friends.services.user_service — Member Account Flows
=====================================================

Shared service module behind the ``/users`` routes.  Every public function
takes the platform engine and, where tokens are involved, the
:class:`~friends.services.auth_service.AuthManager`.

Flows:

1. **authenticate** — password or card login → member + ``login`` token,
   or masked membership hints + ``verify`` token.
2. **verify_membership** — ``verify`` token + identity hints → membership
   snapshot + ``membership`` token.
3. **register** — new member, optional ``membership`` token bound after
   the account exists, then logged in.
4. **update_user** — partial profile update.

Validation and auth failures surface as :mod:`friends.errors` types;
anything else propagates.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any

from sqlalchemy import Engine, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from friends.constants import (
    BOOKMARK_TYPES,
    DEFAULT_PROFILE_FIELDS,
    METADATA_ATTRS,
    PROFILE_OPTIONS,
    USER_ATTRS,
)
from friends.database.engine import get_session
from friends.database.models import (
    Activity,
    Badge,
    Bookmark,
    Reward,
    User,
    UserMetadata,
    user_activities,
    user_badges,
    user_rewards,
)
from friends.engine.membership import public_membership
from friends.engine.tokens import MembershipContext, MembershipToken, TokenError, VerifyToken
from friends.errors import AuthError, FriendsError, NotFoundError, ValidationError
from friends.schemas import (
    CardLoginRequest,
    LoginRequest,
    RegisterRequest,
    UpdateUserRequest,
    VerifyMembershipRequest,
)
from friends.services.auth_service import (
    AuthManager,
    AuthResult,
    Credentials,
    PendingVerification,
    hash_password,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------
@dataclass
class VerifiedMembership:
    membership: dict[str, Any]
    membership_token: str


@dataclass
class MembershipBinding:
    """Outcome of binding a verified membership after registration."""

    requested: bool = False
    bound: bool = False
    plugin_id: str | None = None
    error: str | None = None


@dataclass
class RegistrationResult:
    """A created member, their ``login`` token, and the binding outcome.

    The member exists even when ``membership.bound`` is False.
    """

    user: User
    token: str
    membership: MembershipBinding


# ---------------------------------------------------------------------------
# Field rule helpers
# ---------------------------------------------------------------------------
def _required_with(values: dict[str, Any], messages: dict[str, list[str]]) -> None:
    """Each present field requires every other field in *values*."""
    present = [k for k, v in values.items() if v]
    if not present or len(present) == len(values):
        return
    for key, value in values.items():
        if not value:
            others = ", ".join(k for k in values if k != key)
            messages.setdefault(key, []).append(
                f"The {key} field is required when {others} is present."
            )


def _birth_date(payload: RegisterRequest | UpdateUserRequest) -> date | None:
    parts = {
        "birthday_year": payload.birthday_year,
        "birthday_month": payload.birthday_month,
        "birthday_day": payload.birthday_day,
    }
    messages: dict[str, list[str]] = {}
    _required_with(parts, messages)
    if messages:
        raise ValidationError("Birthday is incomplete", messages)
    if not payload.birthday_year:
        return None
    try:
        return date(
            int(payload.birthday_year),
            int(payload.birthday_month),
            int(payload.birthday_day),
        )
    except (ValueError, OverflowError) as exc:
        raise ValidationError(
            "Birthday is invalid", {"birthday": ["The birthday is not a valid date."]}
        ) from exc


def _taken_field(exc: IntegrityError) -> str | None:
    """Which member-facing unique field a constraint violation hit, if any.

    Other violations (primary key, foreign keys) are not the client's fault.
    """
    message = str(exc.orig).lower()
    for field in ("email", "username", "barcode_id"):
        if field in message:
            return field
    return None


def _check_password_confirmation(password: str | None, confirmation: str | None) -> None:
    if password and confirmation is not None and password != confirmation:
        raise ValidationError(
            "Password confirmation does not match",
            {"password": ["The password confirmation does not match."]},
        )


# ---------------------------------------------------------------------------
# 1. Authentication
# ---------------------------------------------------------------------------
def authenticate(
    engine: Engine, auth: AuthManager, credentials: Credentials
) -> AuthResult | PendingVerification:
    """Resolve *credentials* to a member or to an external membership.

    Raises
    ------
    ValidationError, AuthError
        See :meth:`AuthManager.attempt`.
    NotFoundError
        Nothing matched the login.
    """
    with get_session(engine) as session:
        outcome = auth.attempt(session, credentials)
    if outcome is None:
        raise NotFoundError("User not found")
    return outcome


def login(engine: Engine, auth: AuthManager, payload: LoginRequest):
    return authenticate(engine, auth, Credentials(
        login=payload.identifier,
        password=payload.password,
        app_key=payload.app_key,
    ))


def login_by_card(engine: Engine, auth: AuthManager, payload: CardLoginRequest):
    return authenticate(engine, auth, Credentials(
        login=payload.barcode,
        app_key=payload.app_key,
        no_password=True,
    ))


# ---------------------------------------------------------------------------
# 2. Membership verification
# ---------------------------------------------------------------------------
def verify_membership(
    engine: Engine, auth: AuthManager, payload: VerifyMembershipRequest
) -> VerifiedMembership:
    """Check identity hints against the membership carried by a ``verify`` token.

    The token audience must equal ``app_key`` and that key must belong to
    an active application *before* the provider is consulted.

    Raises
    ------
    ValidationError
        Neither a full name nor an email was supplied.
    AuthError
        Bad token, audience mismatch, inactive application, unknown
        provider, or the provider rejected the hints.
    """
    messages: dict[str, list[str]] = {}
    _required_with(
        {"first_name": payload.first_name, "last_name": payload.last_name}, messages
    )
    if not (payload.first_name or payload.last_name or payload.email):
        messages["email"] = [
            "The email field is required when first_name or last_name is not present."
        ]
    if messages:
        raise ValidationError("Invalid payload", messages)

    token = auth.decode_token(payload.verification_token, VerifyToken)
    if token.app_key != payload.app_key:
        logger.warning("Verification token presented by a different application")
        raise AuthError("Membership verification failed")

    context = token.context
    hints = {
        "first_name": payload.first_name,
        "last_name": payload.last_name,
        "email": payload.email,
    }
    with get_session(engine) as session:
        app = auth.get_application(session, payload.app_key)
        verified = auth.verify_membership(
            session, context.plugin_id, context.membership, hints
        )

    if not verified:
        logger.info("Membership verification failed (%s)", context.plugin_id)
        raise AuthError("Membership verification failed")

    membership_token = auth.create_token(
        MembershipToken(app_key=app.app_key, context=context)
    )
    return VerifiedMembership(
        membership=public_membership(context.membership),
        membership_token=membership_token,
    )


# ---------------------------------------------------------------------------
# 3. Registration
# ---------------------------------------------------------------------------
def _bind_membership(
    engine: Engine, auth: AuthManager, user_id: int, context: MembershipContext
) -> MembershipBinding:
    binding = MembershipBinding(requested=True, plugin_id=context.plugin_id)
    try:
        with get_session(engine) as session:
            user = auth.get_user(session, user_id)
            auth.save_membership(session, context.plugin_id, user, context.membership)
    except Exception as exc:
        # Binding runs after the account is committed; report, don't undo.
        logger.exception("Could not bind %s membership to user %d", context.plugin_id, user_id)
        binding.error = str(exc) or exc.__class__.__name__
        return binding
    binding.bound = True
    return binding


def register(engine: Engine, auth: AuthManager, payload: RegisterRequest) -> RegistrationResult:
    """Create a member, bind a verified membership, and log them in.

    Nothing is written unless the application key, birthday and
    membership token all check out.

    Raises
    ------
    AuthError
        Unknown or inactive application key.
    ValidationError
        Bad field data, taken email/username, or a membership token that
        is invalid or was issued to another application.
    """
    with get_session(engine) as session:
        auth.is_application_key_valid(session, payload.app_key)

    _check_password_confirmation(payload.password, payload.password_confirmation)
    birth_date = _birth_date(payload)

    context: MembershipContext | None = None
    if payload.membership_token:
        try:
            token = auth.decode_token(
                payload.membership_token, MembershipToken, audience=payload.app_key
            )
        except TokenError as exc:
            raise ValidationError(
                "Invalid membership token", {"membership_token": [exc.message]}
            ) from exc
        context = token.context

    data: dict[str, Any] = payload.model_dump(exclude_none=True)
    for name in DEFAULT_PROFILE_FIELDS:
        data[name] = data.get(name) or ""
    data["birth_date"] = birth_date

    try:
        with get_session(engine) as session:
            user_id = auth.register(session, data).id
    except IntegrityError as exc:
        field = _taken_field(exc)
        if field is None:
            raise
        raise ValidationError("User data fails to validate", {
            field: [f"The {field} has already been taken."],
        }) from exc

    binding = MembershipBinding()
    if context is not None:
        binding = _bind_membership(engine, auth, user_id, context)

    result = authenticate(engine, auth, Credentials(
        login=payload.email,
        password=payload.password,
        app_key=payload.app_key,
    ))
    if not isinstance(result, AuthResult):
        raise RuntimeError(f"Registered user {user_id} could not be authenticated")
    return RegistrationResult(user=result.user, token=result.token, membership=binding)


# ---------------------------------------------------------------------------
# 4. Profile update
# ---------------------------------------------------------------------------
def update_user(engine: Engine, user_id: int, payload: UpdateUserRequest) -> User:
    """Apply the fields present in *payload* to the member and their profile.

    Raises
    ------
    NotFoundError
        No such member.
    ValidationError
        Bad field data or an email already used by another member.
    """
    _check_password_confirmation(payload.password, payload.password_confirmation)
    birth_date = _birth_date(payload)
    data = payload.model_dump(exclude_unset=True, exclude_none=True)

    try:
        with get_session(engine) as session:
            user = session.scalar(
                select(User).options(selectinload(User.metadata_)).where(User.id == user_id)
            )
            if user is None:
                raise NotFoundError("User not found")

            meta = user.metadata_
            if meta is None:
                meta = UserMetadata()
                user.metadata_ = meta

            email = data.get("email")
            if email and session.scalar(
                select(User.id).where(func.lower(User.email) == email.lower(), User.id != user.id)
            ):
                raise ValidationError(
                    "User data fails to validate",
                    {"email": ["The email has already been taken."]},
                )

            first_name = data.get("first_name")
            last_name = data.get("last_name")
            if first_name or last_name:
                data["name"] = f"{first_name or meta.first_name} {last_name or meta.last_name}".strip()
            if birth_date is not None:
                data["birth_date"] = birth_date

            for key in USER_ATTRS:
                if key in data:
                    setattr(user, key, data[key])
            if data.get("password"):
                user.password_hash = hash_password(data["password"])
                user.password_reset_required = False
            for key in METADATA_ATTRS:
                if key in data:
                    setattr(meta, key, data[key])
            session.flush()
    except IntegrityError as exc:
        if _taken_field(exc) != "email":
            raise
        raise ValidationError("User data fails to validate", {
            "email": ["The email has already been taken."],
        }) from exc

    logger.info("Updated user %d (%s)", user_id, ", ".join(sorted(data)) or "no fields")
    return user


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def get_user(engine: Engine, user_id: int) -> User:
    with Session(engine, expire_on_commit=False) as session:
        user = session.scalar(
            select(User).options(selectinload(User.metadata_)).where(User.id == user_id)
        )
    if user is None:
        raise NotFoundError("User not found")
    return user


def list_users(engine: Engine, *, page: int = 1, page_size: int = 20) -> tuple[int, list[User]]:
    offset = (page - 1) * page_size
    with Session(engine) as session:
        total = session.scalar(select(func.count()).select_from(User)) or 0
        users = session.scalars(
            select(User).order_by(User.id).offset(offset).limit(page_size)
        ).all()
    return total, list(users)


_RELATIONS = {
    "badges": (Badge, user_badges, "badge_id"),
    "activities": (Activity, user_activities, "activity_id"),
    "rewards": (Reward, user_rewards, "reward_id"),
}

_BOOKMARK_MODELS = {"badge": Badge, "activity": Activity, "reward": Reward}


def user_relation(
    engine: Engine,
    user_id: int,
    relation: str,
    *,
    page: int = 1,
    page_size: int = 20,
) -> tuple[int, list[Badge | Activity | Reward]]:
    """Page through the badges, activities or rewards attached to a member."""
    target, pivot, column = _RELATIONS[relation]
    offset = (page - 1) * page_size
    with Session(engine) as session:
        if session.get(User, user_id) is None:
            raise NotFoundError("User not found")
        base = (
            select(target)
            .join(pivot, pivot.c[column] == target.id)
            .where(pivot.c.user_id == user_id)
        )
        total = session.scalar(select(func.count()).select_from(base.subquery())) or 0
        items = session.scalars(base.order_by(target.id).offset(offset).limit(page_size)).all()
    return total, list(items)


def user_bookmarks(
    engine: Engine,
    user_id: int,
    bookmark_type: str,
    *,
    page: int = 1,
    page_size: int = 20,
) -> tuple[int, list[Badge | Activity | Reward]]:
    """Page through the items of one type a member bookmarked."""
    object_type = BOOKMARK_TYPES.get(bookmark_type)
    if object_type is None:
        options = ", ".join(BOOKMARK_TYPES)
        raise FriendsError(f"{bookmark_type} is not a valid option. Options are {options}")
    model = _BOOKMARK_MODELS[object_type]
    offset = (page - 1) * page_size
    with Session(engine) as session:
        if session.get(User, user_id) is None:
            raise NotFoundError("User not found")
        base = (
            select(model)
            .join(Bookmark, Bookmark.object_id == model.id)
            .where(Bookmark.user_id == user_id, Bookmark.object_type == object_type)
        )
        total = session.scalar(select(func.count()).select_from(base.subquery())) or 0
        items = session.scalars(base.order_by(Bookmark.created_at, model.id).offset(offset).limit(page_size)).all()
    return total, list(items)


def profile_options(field: str | None = None) -> dict[str, list[str]]:
    if field is None:
        return dict(PROFILE_OPTIONS)
    key = field.strip().lower()
    if key not in PROFILE_OPTIONS:
        valid = ", ".join(PROFILE_OPTIONS)
        raise FriendsError(f"Valid fields are: [ {valid} ]")
    return {field: PROFILE_OPTIONS[key]}
