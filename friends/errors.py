"""
friends.errors — Typed failures for the account flows
======================================================

Error hierarchy:

- ``FriendsError``: expected, client-facing failure with a safe message
  - ``ValidationError`` (422): field-level, client-fixable
  - ``AuthError`` (401): bad credentials, bad/expired/wrong-purpose token,
    unknown or inactive application key
  - ``PermissionDeniedError`` (403)
  - ``NotFoundError`` (404)

Anything that is not a ``FriendsError`` is unexpected and propagates to the
framework's 500 handler untouched.
"""

from __future__ import annotations


class FriendsError(Exception):
    """Base class for expected failures.  Messages are safe to expose."""

    status_code = 400

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict:
        return {"message": self.message, "status_code": self.status_code}


class ValidationError(FriendsError):
    """Request data failed validation.

    ``errors`` maps field name → list of messages.
    """

    status_code = 422

    def __init__(self, message: str, errors: dict[str, list[str]] | None = None):
        super().__init__(message)
        self.errors = errors or {}

    def to_dict(self) -> dict:
        data = super().to_dict()
        if self.errors:
            data["errors"] = self.errors
        return data


class AuthError(FriendsError):
    status_code = 401


class PermissionDeniedError(FriendsError):
    status_code = 403


class NotFoundError(FriendsError):
    status_code = 404
