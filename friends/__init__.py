"""
Friends — A Loyalty & Membership Platform Backend
==================================================
Members earn badges, complete activities and redeem rewards.  This package
holds the account side of the platform: application-scoped login, card
login, verification of memberships that live in external systems,
registration with deferred membership binding, and the one-shot import of
legacy WordPress accounts.

Package layout::

    friends/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Token purposes, profile defaults, option lists
    ├── errors.py          # ValidationError / AuthError / NotFoundError
    ├── schemas.py         # Pydantic request payloads
    ├── database/
    │   ├── engine.py      # SQLAlchemy engines + session helper
    │   ├── models.py      # All ORM models
    │   ├── legacy.py      # Read-only WordPress table definitions
    │   └── seed.py        # Application key seeder
    ├── engine/
    │   ├── tokens.py      # Typed, purpose-bound JWTs
    │   └── membership.py  # Membership provider protocol + registry
    ├── services/
    │   ├── auth_service.py    # AuthManager: apps, credentials, tokens
    │   ├── user_service.py    # Login / verify / register / update flows
    │   ├── roster_provider.py # Built-in membership provider
    │   └── import_service.py  # WordPress → Friends user import
    ├── importer/
    │   └── __main__.py    # ``python -m friends.importer``
    └── api/
        ├── main.py        # FastAPI app
        ├── deps.py        # Dependency injection
        └── routes/        # REST endpoints
"""

__version__ = "0.1.0"
