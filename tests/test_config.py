"""Tests for WorkerConfig."""

import pytest
from pydantic import ValidationError

from demo_worker.config import TEXT_PROVIDER_NAMES, WorkerConfig, get_config, set_config


def test_defaults():
    config = WorkerConfig()

    assert config.text_provider_order == list(TEXT_PROVIDER_NAMES)
    assert config.storage_backend == "supabase"
    assert config.storage_bucket == "demo-assets"
    assert config.avatar_poll_interval == 10.0
    assert config.avatar_max_poll_attempts == 30
    assert not config.avatar_enabled


def test_from_env(monkeypatch):
    for name in ("OPENAI_API_KEY", "ANTHROPIC_API_KEY", "GOOGLE_GEMINI_API_KEY"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("SUPABASE_URL", "https://sb.test")
    monkeypatch.setenv("GEMINI_API_KEY", "g-key")
    monkeypatch.setenv("TEXT_PROVIDER_ORDER", "gemini, openai")
    monkeypatch.setenv("TAVUS_API_KEY", "tv-key")
    monkeypatch.setenv("AVATAR_MAX_POLL_ATTEMPTS", "5")
    monkeypatch.setenv("STORAGE_BACKEND", "R2")

    config = WorkerConfig.from_env()

    assert config.supabase_url == "https://sb.test"
    assert config.gemini_api_key == "g-key"
    assert config.text_provider_order == ["gemini", "openai"]
    assert config.configured_text_providers == ["gemini"]
    assert config.avatar_enabled
    assert config.avatar_max_poll_attempts == 5
    assert config.storage_backend == "r2"


def test_google_key_takes_precedence(monkeypatch):
    monkeypatch.setenv("GOOGLE_GEMINI_API_KEY", "google")
    monkeypatch.setenv("GEMINI_API_KEY", "plain")

    assert WorkerConfig.from_env().gemini_api_key == "google"


@pytest.mark.parametrize("field, value", [
    ("avatar_poll_interval", 0),
    ("avatar_max_poll_attempts", 0),
    ("run_lock_ttl", 0),
    ("storage_backend", "ftp"),
    ("text_provider_order", ["openai", "mistral"]),
])
def test_invalid_values(field, value):
    with pytest.raises(ValidationError):
        WorkerConfig(**{field: value})


def test_lock_must_outlive_avatar_polling():
    with pytest.raises(ValidationError, match="run_lock_ttl"):
        WorkerConfig(avatar_max_poll_attempts=120, avatar_poll_interval=10, run_lock_ttl=900)


def test_long_poll_budget_with_longer_lock():
    config = WorkerConfig(avatar_max_poll_attempts=120, avatar_poll_interval=10, run_lock_ttl=1800)

    assert config.avatar_poll_budget == 1200


def test_configured_providers_follow_order():
    config = WorkerConfig(
        text_provider_order=["anthropic", "gemini", "openai"],
        openai_api_key="o",
        anthropic_api_key="a",
    )

    assert config.configured_text_providers == ["anthropic", "openai"]


def test_get_config_is_cached():
    custom = WorkerConfig(environment="staging")
    set_config(custom)

    assert get_config() is custom
    assert not get_config().is_development
