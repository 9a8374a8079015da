"""Shared fixtures: isolated settings, a migrated temp database, app clients."""

from __future__ import annotations

from collections.abc import Callable, Iterator

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from chatbridge.config import Settings, get_settings
from chatbridge.db import dispose_engine, get_session_factory, reset_session_factory, run_migrations
from chatbridge.providers import BackendMode, BackendSelector
from chatbridge.security import get_cipher
from fakes import FakeOllama

TEST_ENCRYPTION_KEY = "test-encryption-key"


def _reset_caches() -> None:
    get_settings.cache_clear()
    get_cipher.cache_clear()
    dispose_engine()
    reset_session_factory()


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch) -> Iterator[None]:
    """Point every test at its own database and models cache."""
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'chats.db'}")
    monkeypatch.setenv("MODELS_CACHE_PATH", str(tmp_path / "models_cache.json"))
    monkeypatch.setenv("ENCRYPTION_KEY", TEST_ENCRYPTION_KEY)
    monkeypatch.setenv("ENVIRONMENT", "development")
    monkeypatch.setenv("MODE", "auto")
    monkeypatch.setenv("UPSTREAM_MAX_RETRIES", "0")
    monkeypatch.delenv("APP_PASSWORD", raising=False)
    monkeypatch.delenv("OLLAMA_API_KEY", raising=False)
    _reset_caches()
    yield
    _reset_caches()


@pytest.fixture
def migrated_db() -> str:
    url = get_settings().database_url
    run_migrations(url)
    return url


@pytest.fixture
def db_session(migrated_db) -> Iterator[Session]:
    session = get_session_factory()()
    yield session
    session.close()


@pytest.fixture
def make_selector() -> Callable[..., BackendSelector]:
    """Build a selector whose endpoints talk to the given fake servers."""

    def _make(
        local: FakeOllama | None = None,
        cloud: FakeOllama | None = None,
        mode: BackendMode | None = BackendMode.LOCAL,
        settings: Settings | None = None,
    ) -> BackendSelector:
        overrides: dict[str, httpx.AsyncBaseTransport] = {}
        if local is not None:
            overrides["local"] = local.transport
        if cloud is not None:
            overrides["cloud"] = cloud.transport
        return BackendSelector(
            settings or get_settings(), mode=mode, transport_overrides=overrides
        )

    return _make


@pytest.fixture
def make_client(make_selector) -> Iterator[Callable[..., TestClient]]:
    """Start the app with an injected selector; the lifespan runs migrations."""
    clients: list[TestClient] = []

    def _make(selector: BackendSelector | None = None) -> TestClient:
        from chatbridge.main import create_app

        app = create_app()
        app.state.backends = selector or make_selector(local=FakeOllama())
        client = TestClient(app)
        client.__enter__()
        clients.append(client)
        return client

    yield _make
    for client in clients:
        client.__exit__(None, None, None)
