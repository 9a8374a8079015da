"""Tests for settings parsing and validation."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from chatbridge.config import Settings, get_settings


def test_defaults(monkeypatch) -> None:
    for name in ("DATABASE_URL", "MODELS_CACHE_PATH", "ENCRYPTION_KEY", "MODE", "UPSTREAM_MAX_RETRIES"):
        monkeypatch.delenv(name, raising=False)
    settings = Settings(_env_file=None)

    assert settings.port == 3000
    assert settings.mode == "auto"
    assert settings.ollama_local_url == "http://localhost:11434"
    assert settings.ollama_cloud_url == "https://ollama.com/api"
    assert settings.upstream_timeout_seconds == 300
    assert settings.upstream_max_retries == 1
    assert settings.database_url.startswith("sqlite:///")
    assert settings.database_url.endswith("chats.db")
    assert settings.auth_required is False
    assert settings.encryption_key is None


def test_environment_overrides_are_isolated_per_test(tmp_path) -> None:
    settings = get_settings()
    assert settings.database_url == f"sqlite:///{tmp_path / 'chats.db'}"
    assert settings.models_cache_path == str(tmp_path / "models_cache.json")
    assert get_settings() is settings


def test_mode_is_normalized() -> None:
    assert Settings(mode=" Cloud ").mode == "cloud"
    assert Settings(mode="LOCAL").mode == "local"


@pytest.mark.parametrize(
    "overrides",
    [
        {"mode": "hybrid"},
        {"log_level": "chatty"},
        {"environment": "qa"},
        {"upstream_timeout_seconds": 0},
        {"upstream_connect_timeout_seconds": -1},
    ],
)
def test_invalid_values_rejected(overrides) -> None:
    with pytest.raises(ValidationError):
        Settings(**overrides)


def test_derived_properties() -> None:
    settings = Settings(
        app_password="pw",
        cors_origins="http://a.test, http://b.test,,",
        environment="Production",
        log_level="debug",
    )
    assert settings.auth_required is True
    assert settings.cors_origins_list == ["http://a.test", "http://b.test"]
    assert settings.is_production is True
    assert settings.log_level == "DEBUG"
