"""Tests for settings and the YAML policy file."""
from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError as PydanticValidationError

from cinema.security.config import default_policy_config, load_policy_config
from cinema.settings import Settings


def test_bundled_policy_file_loads():
    path = Path(__file__).resolve().parents[2] / "config" / "policy.yaml"

    config = load_policy_config(path)

    assert config.auth.bearer_prefix == "Bearer"
    assert config.policy.fail_open_on_unknown_for_create is True
    assert config.policy.my_screenings_visibility == "all_users"
    assert config.policy.max_page_size == 200


def test_policy_overrides(tmp_path):
    path = tmp_path / "policy.yaml"
    path.write_text(
        "cinema:\n"
        "  auth:\n"
        "    authorization_header: X-User\n"
        "  policy:\n"
        "    review_visibility: staff_only\n"
        "    max_page_size: 25\n",
        encoding="utf-8",
    )

    config = load_policy_config(path)

    assert config.auth.authorization_header == "X-User"
    assert config.policy.review_visibility == "staff_only"
    assert config.policy.max_page_size == 25
    assert config.policy.my_screenings_visibility == "all_users"


def test_policy_requires_top_level_key(tmp_path):
    path = tmp_path / "policy.yaml"
    path.write_text("security:\n  auth: {}\n", encoding="utf-8")

    with pytest.raises(ValueError, match="Missing top-level 'cinema' key"):
        load_policy_config(path)


def test_policy_rejects_unknown_visibility(tmp_path):
    path = tmp_path / "policy.yaml"
    path.write_text("cinema:\n  policy:\n    review_visibility: everyone\n", encoding="utf-8")

    with pytest.raises(PydanticValidationError):
        load_policy_config(path)


def test_default_policy_config():
    config = default_policy_config()

    assert config.auth.authorization_header == "Authorization"
    assert config.policy.review_visibility == "all_users"


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("CINEMA_DB_URL", "sqlite:///:memory:")
    monkeypatch.setenv("CINEMA_LOG_LEVEL", "DEBUG")

    settings = Settings()

    assert settings.resolved_db_url() == "sqlite:///:memory:"
    assert settings.log_level == "DEBUG"
    assert settings.resolved_policy_config_path().name == "policy.yaml"
