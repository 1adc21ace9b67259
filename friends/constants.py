"""
friends.constants — Shared Constants
=====================================

Single source of truth for profile field defaults, legacy metadata keys and
the option lists exposed by ``GET /users/profile-options``.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------
# Clients may register with only email + password; these profile fields are
# filled with "" so downstream validation never trips on absence.
DEFAULT_PROFILE_FIELDS: tuple[str, ...] = (
    "first_name", "last_name", "phone", "street_addr", "city", "state", "zip",
)

USER_ATTRS: tuple[str, ...] = (
    "name", "email", "street_addr", "city", "state", "zip", "phone",
)

METADATA_ATTRS: tuple[str, ...] = (
    "first_name", "last_name", "birth_date", "email_optin",
    "gender", "race", "household_income", "household_size", "education",
)

# Internal type marker some providers leave in membership snapshots.
MEMBERSHIP_CLASSNAME_KEY = "classname"

# Prefix marking a password hash that can never verify.
UNUSABLE_PASSWORD_PREFIX = "!"

# ---------------------------------------------------------------------------
# Legacy WordPress import
# ---------------------------------------------------------------------------
LEGACY_METADATA_DEFAULTS: dict[str, str | bool] = {
    "home_phone": "",
    "street_address": "",
    "city": "",
    "state": "",
    "zip": "",
    "first_name": "",
    "last_name": "",
    "_badgeos_points": "",
    "email_optin": False,
    "current_member": False,
    "current_member_number": "",
}

# ---------------------------------------------------------------------------
# Profile option lists
# ---------------------------------------------------------------------------
PROFILE_OPTIONS: dict[str, list[str]] = {
    "gender": ["Male", "Female", "Non Binary/Other"],
    "race": [
        "White",
        "Hispanic",
        "Black or African American",
        "American Indian or Alaska Native",
        "Asian",
        "Native Hawaiian or Other Pacific Islander",
        "Two or more races",
        "Other",
    ],
    "household_income": [
        "Less then $25,000",
        "$25,000 - $50,000",
        "$50,000 - $75,000",
        "$75,000 - $150,000",
        "$150,000 - $500,000",
        "$500,000 or more",
    ],
    "household_size": ["1", "2", "3", "4", "5", "6", "7", "8", "9", "10+"],
    "education": [
        "K-12",
        "High School/GED",
        "Some College",
        "Vocational or Trade School",
        "Bachelors Degree",
        "Masters Degree",
        "PhD",
    ],
}

# Bookmark type slug → bookmarked object type
BOOKMARK_TYPES: dict[str, str] = {
    "rewards": "reward",
    "badges": "badge",
    "activities": "activity",
}
