"""Tests for environment-driven settings."""

from __future__ import annotations

from assessment_app.config.settings import Settings
from assessment_app.core.models import Role


def test_defaults():
    settings = Settings(_env_file=None)

    assert settings.api_prefix == "/api"
    assert settings.pass_percentage == 70.0
    assert settings.enforce_deadlines is True
    assert settings.api_tokens == {}


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("ASSESSMENT_PORT", "9100")
    monkeypatch.setenv("ASSESSMENT_ENFORCE_DEADLINES", "false")
    monkeypatch.setenv("ASSESSMENT_API_TOKENS", '{"abc": {"user_id": 5, "role": "teacher"}}')

    settings = Settings(_env_file=None)

    assert settings.port == 9100
    assert settings.enforce_deadlines is False
    assert settings.api_tokens["abc"].role is Role.TEACHER
