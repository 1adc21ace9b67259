"""
tests/test_config.py — YAML Configuration Loader
=================================================
"""

from __future__ import annotations

from datetime import timedelta

import pytest

from friends.api.deps import build_auth_manager
from friends.config import DEFAULT_IMPORT_BATCH_SIZE, ApplicationSeed, load_config
from friends.database.seed import seed_applications
from friends.engine.tokens import TokenPurpose


def _write(tmp_path, text: str):
    path = tmp_path / "config.yaml"
    path.write_text(text, encoding="utf-8")
    return path


class TestLoadConfig:
    def test_full_file(self, tmp_path):
        cfg = load_config(_write(tmp_path, """
platform_name: "DMA Friends"
api_port: 9000
login_token_ttl_hours: 4
verify_token_ttl_minutes: 5
membership_token_ttl_minutes: 15
import_batch_size: 250
applications:
  - key: kiosk-1
    name: Lobby kiosk
  - key: old-app
    active: false
"""))
        assert cfg.platform_name == "DMA Friends"
        assert cfg.api_port == 9000
        assert cfg.login_token_ttl_hours == 4
        assert cfg.import_batch_size == 250
        assert cfg.applications == (
            ApplicationSeed(key="kiosk-1", name="Lobby kiosk"),
            ApplicationSeed(key="old-app", name="old-app", active=False),
        )

    def test_defaults(self, tmp_path):
        cfg = load_config(_write(tmp_path, 'platform_name: "Friends"\n'))
        assert cfg.login_token_ttl_hours == 12
        assert cfg.verify_token_ttl_minutes == 30
        assert cfg.membership_token_ttl_minutes == 60
        assert cfg.import_batch_size == DEFAULT_IMPORT_BATCH_SIZE
        assert cfg.applications == ()

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError, match="config.yaml.example"):
            load_config(tmp_path / "nope.yaml")

    def test_missing_platform_name(self, tmp_path):
        with pytest.raises(KeyError):
            load_config(_write(tmp_path, "api_port: 8000\n"))

    def test_config_is_frozen(self, tmp_path):
        cfg = load_config(_write(tmp_path, 'platform_name: "Friends"\n'))
        with pytest.raises(AttributeError):
            cfg.platform_name = "Other"


class TestWiring:
    def test_token_lifetimes_follow_config(self, tmp_path):
        cfg = load_config(_write(tmp_path, """
platform_name: "Friends"
login_token_ttl_hours: 2
verify_token_ttl_minutes: 3
"""))
        auth = build_auth_manager(cfg, "wiring-test-secret-" + "q" * 40)
        assert auth.tokens.ttls[TokenPurpose.LOGIN] == timedelta(hours=2)
        assert auth.tokens.ttls[TokenPurpose.VERIFY] == timedelta(minutes=3)
        assert auth.tokens.ttls[TokenPurpose.MEMBERSHIP] == timedelta(minutes=60)
        assert "roster" in auth.registry

    def test_seed_is_idempotent(self, db_engine):
        seeds = [ApplicationSeed(key="new-app", name="New"), ApplicationSeed(key="kiosk-test-0001", name="Renamed")]
        assert seed_applications(db_engine, seeds) == 1
        assert seed_applications(db_engine, seeds) == 0
