"""Backend selection between the local Ollama daemon and the cloud API."""

from __future__ import annotations

from typing import Any

import httpx

from chatbridge.config import Settings
from chatbridge.core import AppError, ProviderError, ProviderUnavailableError, get_logger
from chatbridge.providers.base import BackendMode
from chatbridge.providers.models_cache import ModelsCache
from chatbridge.providers.ollama import OllamaEndpoint

logger = get_logger(__name__)


class BackendSelector:
    """
    Owns both Ollama endpoints and the current backend mode.

    One instance lives on ``app.state`` and is handed to the relay, which
    asks ``get_backend_mode()`` per request. The mode is set by ``detect()``
    at startup, or passed in directly.
    """

    def __init__(
        self,
        settings: Settings,
        mode: BackendMode | None = None,
        transport_overrides: dict[str, httpx.AsyncBaseTransport] | None = None,
    ):
        self.settings = settings
        self._mode = mode or BackendMode.NONE
        overrides = transport_overrides or {}
        self.local = OllamaEndpoint(
            "local",
            settings.ollama_local_url,
            chat_path="/api/chat",
            tags_path="/api/tags",
            timeout=settings.upstream_timeout_seconds,
            connect_timeout=settings.upstream_connect_timeout_seconds,
            max_retries=settings.upstream_max_retries,
            transport=overrides.get("local"),
        )
        self.cloud = OllamaEndpoint(
            "cloud",
            settings.ollama_cloud_url,
            chat_path="/chat",
            tags_path="/tags",
            timeout=settings.upstream_timeout_seconds,
            connect_timeout=settings.upstream_connect_timeout_seconds,
            max_retries=settings.upstream_max_retries,
            api_key=settings.ollama_api_key,
            transport=overrides.get("cloud"),
        )
        self.models_cache = ModelsCache(settings.models_cache_path)

    def get_backend_mode(self) -> BackendMode:
        return self._mode

    def endpoint_for(self, mode: BackendMode) -> OllamaEndpoint:
        """Resolve the endpoint for ``mode`` or raise if no backend is connected."""
        if mode == BackendMode.LOCAL:
            return self.local
        if mode == BackendMode.CLOUD:
            return self.cloud
        raise ProviderUnavailableError("No Ollama connection")

    async def detect(self) -> BackendMode:
        """
        Pick the backend mode once at startup.

        A forced cloud mode skips probing. Otherwise the local daemon is
        checked; if it answers, its models are cached and local mode is used.
        If it does not, forced local mode ends up disconnected and auto mode
        falls back to the cloud.
        """
        forced = self.settings.mode

        if forced == "cloud":
            self._mode = BackendMode.CLOUD
            logger.info("Mode set to CLOUD (forced)")
            return self._mode

        try:
            models = await self.local.list_models()
        except AppError as exc:
            if forced == "local":
                self._mode = BackendMode.NONE
                logger.error(
                    "Local mode forced but Ollama not running",
                    data={"error": exc.message},
                )
            else:
                self._mode = BackendMode.CLOUD
                logger.info(
                    "Local Ollama not found. Mode: CLOUD (fallback)",
                    data={"api_key_configured": bool(self.settings.ollama_api_key)},
                )
            return self._mode

        self._mode = BackendMode.LOCAL
        logger.info("Local Ollama detected. Mode: LOCAL")
        self.models_cache.save(models)
        return self._mode

    async def list_models(self) -> dict[str, list[dict[str, Any]]]:
        """
        List models for the model picker.

        Cloud and disconnected modes serve the cache. Local mode fetches live
        and refreshes the cache, falling back to a non-empty cache on failure.
        """
        if self._mode != BackendMode.LOCAL:
            return self.models_cache.load()

        try:
            models = await self.local.list_models()
        except AppError as exc:
            logger.error("Model fetch error", data={"error": exc.message})
            cached = self.models_cache.load()
            if cached["models"]:
                return cached
            raise ProviderError("Failed to list models") from exc

        self.models_cache.save(models)
        return {"models": models}

    async def aclose(self) -> None:
        """Close both endpoint clients."""
        for endpoint in (self.local, self.cloud):
            try:
                await endpoint.aclose()
            except Exception:  # pragma: no cover
                logger.warning("Error closing endpoint client", data={"endpoint": endpoint.name})
