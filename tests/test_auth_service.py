"""
tests/test_auth_service.py — AuthManager Tests
===============================================
Application keys, password and card login, external membership lookup,
and the raw registration insert.
"""

from __future__ import annotations

import pytest
from conftest import APP_KEY, INACTIVE_APP_KEY, PASSWORD, make_membership, make_user

from friends.engine.membership import MembershipRegistry, membership_hints, public_membership
from friends.engine.tokens import LoginToken, VerifyToken
from friends.errors import AuthError, ValidationError
from friends.services.auth_service import (
    AuthResult,
    Credentials,
    PendingVerification,
    hash_password,
    make_unusable_password,
    verify_password,
)
from friends.services.roster_provider import RosterMembershipProvider


# ===========================================================================
# Passwords
# ===========================================================================
class TestPasswords:
    def test_hash_and_verify(self):
        h = hash_password("s3cret!")
        assert verify_password("s3cret!", h)
        assert not verify_password("wrong", h)

    def test_unusable_password_never_matches(self):
        h = make_unusable_password()
        assert h.startswith("!")
        assert not verify_password("", h)
        assert not verify_password(h, h)

    def test_missing_hash(self):
        assert not verify_password("anything", None)


# ===========================================================================
# Applications
# ===========================================================================
class TestApplications:
    def test_active_key(self, auth, db_session):
        assert auth.get_application(db_session, APP_KEY).app_key == APP_KEY

    @pytest.mark.parametrize("key", [None, "", "no-such-key", INACTIVE_APP_KEY])
    def test_rejected_keys(self, auth, db_session, key):
        with pytest.raises(AuthError):
            auth.is_application_key_valid(db_session, key)


# ===========================================================================
# attempt()
# ===========================================================================
class TestAttempt:
    def test_password_login_by_email(self, auth, db_engine, db_session):
        uid = make_user(db_engine, email="Ada@Example.org")
        result = auth.attempt(db_session, Credentials(
            login="ada@example.org", password=PASSWORD, app_key=APP_KEY,
        ))
        assert isinstance(result, AuthResult)
        assert result.user.id == uid
        token = auth.decode_token(result.token, LoginToken, audience=APP_KEY)
        assert token.user_id == uid

    def test_password_login_by_username(self, auth, db_engine, db_session):
        uid = make_user(db_engine, username="ada")
        result = auth.attempt(db_session, Credentials(
            login="ada", password=PASSWORD, app_key=APP_KEY,
        ))
        assert result.user.id == uid

    def test_wrong_password(self, auth, db_engine, db_session):
        make_user(db_engine)
        with pytest.raises(AuthError):
            auth.attempt(db_session, Credentials(
                login="ada@example.org", password="nope-nope", app_key=APP_KEY,
            ))

    def test_password_reset_required(self, auth, db_engine, db_session):
        make_user(db_engine, password_reset_required=True)
        with pytest.raises(AuthError, match="reset"):
            auth.attempt(db_session, Credentials(
                login="ada@example.org", password=PASSWORD, app_key=APP_KEY,
            ))

    def test_missing_password(self, auth, db_session):
        with pytest.raises(ValidationError) as exc_info:
            auth.attempt(db_session, Credentials(login="ada@example.org", app_key=APP_KEY))
        assert "password" in exc_info.value.errors

    def test_missing_login(self, auth, db_session):
        with pytest.raises(ValidationError) as exc_info:
            auth.attempt(db_session, Credentials(login="", password="x", app_key=APP_KEY))
        assert "login" in exc_info.value.errors

    def test_inactive_application(self, auth, db_engine, db_session):
        make_user(db_engine)
        with pytest.raises(AuthError):
            auth.attempt(db_session, Credentials(
                login="ada@example.org", password=PASSWORD, app_key=INACTIVE_APP_KEY,
            ))

    def test_card_login_skips_password(self, auth, db_engine, db_session):
        uid = make_user(db_engine, barcode_id="CARD-77")
        result = auth.attempt(db_session, Credentials(
            login="CARD-77", app_key=APP_KEY, no_password=True,
        ))
        assert isinstance(result, AuthResult)
        assert result.user.id == uid

    def test_card_login_ignores_email(self, auth, db_engine, db_session):
        make_user(db_engine, barcode_id="CARD-77")
        result = auth.attempt(db_session, Credentials(
            login="ada@example.org", app_key=APP_KEY, no_password=True,
        ))
        assert result is None

    def test_card_login_works_for_imported_account(self, auth, db_engine, db_session):
        make_user(db_engine, barcode_id="CARD-9", password_reset_required=True)
        result = auth.attempt(db_session, Credentials(
            login="CARD-9", app_key=APP_KEY, no_password=True,
        ))
        assert isinstance(result, AuthResult)

    def test_external_membership(self, auth, db_engine, db_session):
        make_membership(db_engine)
        result = auth.attempt(db_session, Credentials(
            login="M-1001", app_key=APP_KEY, no_password=True,
        ))
        assert isinstance(result, PendingVerification)
        assert result.plugin_id == "roster"
        assert result.hints == {"first_name": "G****", "last_name": "H*****", "email": "g****@example.org"}
        token = auth.decode_token(result.verification_token, VerifyToken, audience=APP_KEY)
        assert token.context.membership["member_number"] == "M-1001"

    def test_nothing_matched(self, auth, db_session):
        assert auth.attempt(db_session, Credentials(
            login="ghost@example.org", password="whatever", app_key=APP_KEY,
        )) is None


# ===========================================================================
# register()
# ===========================================================================
class TestRegisterInsert:
    def test_creates_user_and_profile(self, auth, db_session):
        user = auth.register(db_session, {
            "email": "new@example.org",
            "password": "secret1",
            "first_name": "New",
            "last_name": "Member",
        })
        assert user.id is not None
        assert user.name == "New Member"
        assert user.metadata_.first_name == "New"
        assert verify_password("secret1", user.password_hash)

    def test_duplicate_email(self, auth, db_engine, db_session):
        make_user(db_engine)
        with pytest.raises(ValidationError) as exc_info:
            auth.register(db_session, {"email": "ADA@example.org", "password": "secret1"})
        assert "email" in exc_info.value.errors

    def test_duplicate_username(self, auth, db_engine, db_session):
        make_user(db_engine, username="ada")
        with pytest.raises(ValidationError) as exc_info:
            auth.register(db_session, {
                "email": "other@example.org", "password": "secret1", "username": "ada",
            })
        assert "username" in exc_info.value.errors


# ===========================================================================
# Membership registry helpers
# ===========================================================================
class TestRegistry:
    def test_duplicate_plugin_id(self):
        registry = MembershipRegistry()
        registry.register(RosterMembershipProvider())
        with pytest.raises(ValueError):
            registry.register(RosterMembershipProvider())

    def test_lookup(self):
        registry = MembershipRegistry()
        registry.register(RosterMembershipProvider())
        assert "roster" in registry
        assert len(registry) == 1
        assert registry.get("crm") is None

    def test_unknown_provider_does_not_verify(self, auth, db_session):
        assert auth.verify_membership(db_session, "crm", {}, {}) is False

    def test_unknown_provider_cannot_save(self, auth, db_session):
        with pytest.raises(LookupError):
            auth.save_membership(db_session, "crm", None, {})

    def test_public_membership_strips_classname(self):
        assert public_membership({"classname": "X", "level": "Gold"}) == {"level": "Gold"}

    def test_hints_handle_missing_values(self):
        assert membership_hints({}) == {"first_name": None, "last_name": None, "email": None}
