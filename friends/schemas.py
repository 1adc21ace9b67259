"""
friends.schemas — Request payloads
===================================

Pydantic models shared by the REST routes and the service layer.  Field
types and lengths are checked here; rules that span several fields
(``required_with`` style) are enforced by the services so they can report
the offending field by name.
"""

from __future__ import annotations

import re

from pydantic import BaseModel, ConfigDict, Field, field_validator

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _check_email(value: str | None) -> str | None:
    if value is None:
        return value
    value = value.strip()
    if not _EMAIL_RE.match(value):
        raise ValueError("The email must be a valid email address.")
    return value


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore")


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------
class LoginRequest(_Payload):
    """``login`` may also arrive as ``username`` or ``email``."""

    login: str | None = None
    username: str | None = None
    email: str | None = None
    password: str | None = None
    app_key: str = Field(min_length=1)

    @property
    def identifier(self) -> str:
        return self.login or self.username or self.email or ""


class CardLoginRequest(_Payload):
    barcode: str = Field(min_length=1)
    app_key: str = Field(min_length=1)


# ---------------------------------------------------------------------------
# Membership verification
# ---------------------------------------------------------------------------
class VerifyMembershipRequest(_Payload):
    app_key: str = Field(min_length=1)
    verification_token: str = Field(min_length=1)
    first_name: str | None = Field(default=None, min_length=2)
    last_name: str | None = Field(default=None, min_length=2)
    email: str | None = Field(default=None, min_length=2, max_length=64)

    @field_validator("email")
    @classmethod
    def valid_email(cls, value):
        return _check_email(value)


# ---------------------------------------------------------------------------
# Registration / profile update
# ---------------------------------------------------------------------------
class _Profile(_Payload):
    first_name: str | None = Field(default=None, min_length=2)
    last_name: str | None = Field(default=None, min_length=2)
    phone: str | None = None
    street_addr: str | None = None
    city: str | None = None
    state: str | None = None
    zip: str | None = None
    birthday_year: str | None = Field(default=None, min_length=4)
    birthday_month: str | None = Field(default=None, min_length=2)
    birthday_day: str | None = Field(default=None, min_length=2)
    email_optin: bool | None = None
    gender: str | None = None
    race: str | None = None
    household_income: str | None = None
    household_size: str | None = None
    education: str | None = None

    @field_validator("birthday_year", "birthday_month", "birthday_day", mode="before")
    @classmethod
    def alpha_num(cls, value):
        if value is None:
            return value
        value = str(value).strip()
        if not value.isalnum():
            raise ValueError("The field may only contain letters and numbers.")
        return value


class RegisterRequest(_Profile):
    app_key: str = Field(min_length=1)
    email: str = Field(min_length=2, max_length=64)
    password: str = Field(min_length=6)
    password_confirmation: str | None = None
    username: str | None = None
    membership_token: str | None = None

    @field_validator("email")
    @classmethod
    def valid_email(cls, value):
        return _check_email(value)


class UpdateUserRequest(_Profile):
    email: str | None = Field(default=None, min_length=2, max_length=64)
    password: str | None = Field(default=None, min_length=6)
    password_confirmation: str | None = Field(default=None, min_length=6)

    @field_validator("email")
    @classmethod
    def valid_email(cls, value):
        return _check_email(value)
