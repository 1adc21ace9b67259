"""
friends.config — YAML Configuration Loader
===========================================

Reads ``config.yaml`` for infrastructure settings: token lifetimes, the
legacy import batch size and the application keys seeded at startup.
Secrets (``JWT_SECRET``, database URLs) come from the environment instead.

Usage::

    from friends.config import load_config

    cfg = load_config()              # reads ./config.yaml by default
    print(cfg.platform_name)         # "DMA Friends"
    print(cfg.import_batch_size)     # 1000
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import yaml

DEFAULT_IMPORT_BATCH_SIZE = 1000


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class ApplicationSeed:
    """An API client declared in ``config.yaml``."""

    key: str
    name: str
    active: bool = True


@dataclass(frozen=True, slots=True)
class FriendsConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Identity
    platform_name: str

    # API
    api_port: int = 8000

    # Token lifetimes
    login_token_ttl_hours: int = 12
    verify_token_ttl_minutes: int = 30
    membership_token_ttl_minutes: int = 60

    # Legacy import
    import_batch_size: int = DEFAULT_IMPORT_BATCH_SIZE

    # API clients seeded on startup
    applications: tuple[ApplicationSeed, ...] = field(default_factory=tuple)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> FriendsConfig:
    """Read *path* and return a :class:`FriendsConfig` instance.

    Parameters
    ----------
    path:
        Filesystem path to the YAML configuration file.
        Defaults to ``config.yaml`` in the current working directory.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    applications = tuple(
        ApplicationSeed(
            key=str(app["key"]),
            name=str(app.get("name") or app["key"]),
            active=bool(app.get("active", True)),
        )
        for app in raw.get("applications") or []
    )

    return FriendsConfig(
        platform_name=raw["platform_name"],
        api_port=int(raw.get("api_port", 8000)),
        login_token_ttl_hours=int(raw.get("login_token_ttl_hours", 12)),
        verify_token_ttl_minutes=int(raw.get("verify_token_ttl_minutes", 30)),
        membership_token_ttl_minutes=int(raw.get("membership_token_ttl_minutes", 60)),
        import_batch_size=int(
            raw.get("import_batch_size", DEFAULT_IMPORT_BATCH_SIZE)
        ),
        applications=applications,
    )
