"""Ollama native API endpoint adapter."""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

import httpx

from chatbridge.core import AppError, ProviderError, ProviderUnavailableError, get_logger
from chatbridge.providers.base import UpstreamChatRequest
from chatbridge.providers.http_client import (
    create_http_client,
    parse_json,
    raise_for_status,
    send_with_retries,
)

logger = get_logger(__name__)


class OllamaEndpoint:
    """
    One reachable Ollama API (a local daemon or the hosted cloud API).

    The chat stream is returned as raw byte chunks; framing is left to
    ``iter_ndjson`` so the relay can re-emit objects untouched.
    """

    def __init__(
        self,
        name: str,
        base_url: str,
        *,
        chat_path: str,
        tags_path: str,
        timeout: float,
        connect_timeout: float,
        max_retries: int,
        api_key: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.name = name
        self.base_url = base_url
        self.chat_path = chat_path
        self.tags_path = tags_path
        self.max_retries = max_retries
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self.client = create_http_client(
            base_url=base_url,
            timeout_seconds=timeout,
            connect_timeout_seconds=connect_timeout,
            headers=headers,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self.client.aclose()

    async def healthcheck(self) -> bool:
        """Return True if the tags endpoint answers successfully."""
        try:
            await self.list_models()
            return True
        except AppError as exc:
            logger.info(
                "Ollama healthcheck failed",
                data={"endpoint": self.name, "error": exc.message},
            )
            return False

    async def list_models(self) -> list[dict[str, Any]]:
        """Return the raw ``models`` entries from the tags endpoint."""
        response = await send_with_retries(
            self.client, "GET", self.tags_path, max_retries=self.max_retries
        )
        await raise_for_status(response)
        payload = parse_json(response)

        models = payload.get("models") if isinstance(payload, dict) else None
        if not isinstance(models, list):
            raise ProviderError(
                "Ollama API Error: invalid tags response", details={"body": str(payload)[:300]}
            )
        return models

    async def stream_chat(self, request: UpstreamChatRequest) -> AsyncIterator[bytes]:
        """
        Open a streaming chat call and yield raw body chunks.

        The upstream response is closed when the iterator finishes, fails, or
        is closed early by the consumer.
        """
        response = await send_with_retries(
            self.client,
            "POST",
            self.chat_path,
            json=request.to_payload(),
            max_retries=self.max_retries,
            stream=True,
        )
        try:
            await raise_for_status(response)
            async for chunk in response.aiter_bytes():
                yield chunk
        except httpx.HTTPError as exc:
            raise ProviderUnavailableError(
                f"Ollama API Error: {str(exc) or type(exc).__name__}",
                details={"reason": str(exc), "endpoint": self.name},
            ) from exc
        finally:
            await response.aclose()
