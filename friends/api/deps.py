"""
friends.api.deps — FastAPI dependency injection
=================================================
"""

from __future__ import annotations

import os
from datetime import timedelta
from functools import lru_cache
from typing import Annotated

from fastapi import Depends, Header
from sqlalchemy import Engine
from sqlalchemy.orm import Session

from friends.config import FriendsConfig, load_config
from friends.database.engine import create_db_engine
from friends.engine.membership import MembershipRegistry
from friends.engine.tokens import LoginToken, TokenPurpose, TokenService
from friends.errors import AuthError
from friends.services.auth_service import AuthManager
from friends.services.roster_provider import RosterMembershipProvider

_WEAK_SECRETS = frozenset({
    "friends-dev-secret-change-me",
    "change-me",
    "secret",
    "dev",
    "",
})

_MIN_SECRET_LENGTH = 32


def _load_jwt_secret() -> str:
    """Load and validate JWT_SECRET from the environment.

    Raises RuntimeError at import time if the secret is missing, blank,
    too short (< 32 chars), or a known weak default.
    """
    secret = os.getenv("JWT_SECRET", "")
    if not secret:
        raise RuntimeError(
            "JWT_SECRET environment variable is not set. "
            "Generate one with: python -c \"import secrets; print(secrets.token_urlsafe(64))\""
        )
    if secret in _WEAK_SECRETS:
        raise RuntimeError(
            f"JWT_SECRET is set to a known weak default ('{secret}'). "
            "Please set a strong, unique secret."
        )
    if len(secret) < _MIN_SECRET_LENGTH:
        raise RuntimeError(
            f"JWT_SECRET is too short ({len(secret)} chars). "
            f"Minimum length is {_MIN_SECRET_LENGTH} characters."
        )
    return secret


JWT_SECRET: str = _load_jwt_secret()


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return create_db_engine()


@lru_cache(maxsize=1)
def get_config() -> FriendsConfig:
    return load_config(os.getenv("FRIENDS_CONFIG", "config.yaml"))


def build_registry() -> MembershipRegistry:
    """Membership providers available to this process."""
    registry = MembershipRegistry()
    registry.register(RosterMembershipProvider())
    return registry


def build_auth_manager(cfg: FriendsConfig, secret: str = JWT_SECRET) -> AuthManager:
    tokens = TokenService(secret, ttls={
        TokenPurpose.LOGIN: timedelta(hours=cfg.login_token_ttl_hours),
        TokenPurpose.VERIFY: timedelta(minutes=cfg.verify_token_ttl_minutes),
        TokenPurpose.MEMBERSHIP: timedelta(minutes=cfg.membership_token_ttl_minutes),
    })
    return AuthManager(tokens, build_registry())


@lru_cache(maxsize=1)
def get_auth_manager() -> AuthManager:
    return build_auth_manager(get_config())


def get_current_login(
    authorization: Annotated[str | None, Header()] = None,
    auth: AuthManager = Depends(get_auth_manager),
    engine: Engine = Depends(get_engine),
) -> LoginToken:
    """Validate a ``login`` bearer token and the application it was issued to.

    Raises 401 if the token is missing or invalid, or its application is
    unknown or inactive.
    """
    if not authorization or not authorization.startswith("Bearer "):
        raise AuthError("Missing token")
    login = auth.decode_token(authorization.split(" ", 1)[1], LoginToken)
    with Session(engine) as session:
        auth.is_application_key_valid(session, login.app_key)
    return login
