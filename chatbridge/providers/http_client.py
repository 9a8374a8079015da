"""
Shared HTTP client helpers for the Ollama endpoints.

Provides consistent timeouts, retry behavior, and error mapping so upstream
failures surface as stable AppError instances without leaking stack traces.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any

import httpx

from chatbridge.core import (
    ModelNotFoundError,
    ProviderAuthError,
    ProviderError,
    ProviderUnavailableError,
    RateLimitError,
    get_logger,
    request_id_ctx,
)

logger = get_logger(__name__)

_RETRYABLE = (
    httpx.ConnectError,
    httpx.ConnectTimeout,
    httpx.NetworkError,
    httpx.TimeoutException,
)

# a streamed request may already be running upstream once connected
_CONNECT_ERRORS = (httpx.ConnectError, httpx.ConnectTimeout)


def create_http_client(
    base_url: str,
    timeout_seconds: float,
    connect_timeout_seconds: float,
    headers: dict[str, str] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """
    Build an AsyncClient with consistent timeout settings.

    Args:
        base_url: Base URL for the endpoint (may include a path prefix).
        timeout_seconds: Read/write/pool timeout; bounds the wait between stream chunks.
        connect_timeout_seconds: Timeout for establishing the connection.
        headers: Default headers to include.
        transport: Optional transport (used by tests with MockTransport).
    """
    timeout = httpx.Timeout(timeout_seconds, connect=connect_timeout_seconds)
    return httpx.AsyncClient(
        base_url=base_url.rstrip("/"),
        timeout=timeout,
        headers=headers or {},
        transport=transport,
    )


async def send_with_retries(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    max_retries: int,
    stream: bool = False,
    **kwargs: Any,
) -> httpx.Response:
    """
    Send a request with lightweight retries and mapped errors.

    Retries are only applied to network/timeout errors, not HTTP status codes.
    With ``stream=True`` the body is left unread and the caller must close
    the response; only failures to connect are retried, since a read timeout
    may mean upstream already started generating.
    """
    headers = kwargs.pop("headers", {}) or {}
    request_id = request_id_ctx.get()
    if request_id and "X-Request-ID" not in headers:
        headers["X-Request-ID"] = request_id
    request = client.build_request(method, url, headers=headers, **kwargs)

    retryable = _CONNECT_ERRORS if stream else _RETRYABLE
    for attempt in range(max_retries + 1):
        try:
            return await client.send(request, stream=stream)
        except retryable as exc:
            if attempt < max_retries:
                logger.info(
                    "Retrying upstream request",
                    data={"url": str(request.url), "attempt": attempt + 1, "error": str(exc)},
                )
                await asyncio.sleep(min(0.1 * (attempt + 1), 1.0))
                continue
            raise ProviderUnavailableError(
                f"Ollama API Error: {str(exc) or type(exc).__name__}",
                details={"reason": str(exc)},
            ) from exc
        except _RETRYABLE as exc:
            raise ProviderUnavailableError(
                f"Ollama API Error: {str(exc) or type(exc).__name__}",
                details={"reason": str(exc)},
            ) from exc
        except httpx.HTTPError as exc:
            raise ProviderError(
                f"Ollama API Error: {str(exc) or type(exc).__name__}",
                details={"reason": str(exc)},
            ) from exc

    raise ProviderUnavailableError("Ollama API Error: upstream unavailable")


async def raise_for_status(response: httpx.Response) -> None:
    """
    Map HTTP status codes to stable AppError types.

    Streamed responses are read first so the error details carry the body.
    """
    status = response.status_code
    if status < 400:
        return

    await response.aread()
    details = _safe_error_details(response)
    message = f"Ollama API Error: {response.reason_phrase or status}"

    if status in (401, 403):
        raise ProviderAuthError(message, status_code=status, details=details)
    if status == 404:
        raise ModelNotFoundError(message, details=details)
    if status == 429:
        raise RateLimitError(message, details=details)
    if status >= 500:
        raise ProviderUnavailableError(message, details=details)
    raise ProviderError(message, details=details)


def parse_json(response: httpx.Response) -> Any:
    """
    Parse JSON with consistent error handling.
    """
    try:
        return response.json()
    except json.JSONDecodeError as exc:
        raise ProviderError(
            "Ollama API Error: invalid JSON response",
            details={"body": response.text[:500]},
        ) from exc


def _safe_error_details(response: httpx.Response) -> dict[str, Any]:
    """Return a small, non-sensitive error payload for debugging."""
    try:
        body_snippet = response.text[:300]
    except (httpx.ResponseNotRead, UnicodeDecodeError):
        body_snippet = ""

    return {
        "status": response.status_code,
        "body": body_snippet,
        "url": str(response.url),
    }
