"""Mock Ollama upstream and SSE helpers used across the test modules."""

from __future__ import annotations

import json
from typing import Any

import httpx


class ChunkedStream(httpx.AsyncByteStream):
    """Response body delivered in fixed chunks; records whether it was closed."""

    def __init__(self, chunks: list[bytes]):
        self.chunks = chunks
        self.closed = False

    async def __aiter__(self):
        for chunk in self.chunks:
            yield chunk

    async def aclose(self) -> None:
        self.closed = True


def ndjson(*objects: dict[str, Any]) -> bytes:
    return b"".join(json.dumps(obj).encode("utf-8") + b"\n" for obj in objects)


class FakeOllama:
    """
    Mock Ollama server behind an httpx.MockTransport.

    Records every request; ``chat_chunks`` is the streamed chat body and
    ``chat_status`` its status code.
    """

    def __init__(
        self,
        chat_chunks: list[bytes] | None = None,
        chat_status: int = 200,
        models: list[dict[str, Any]] | None = None,
        tags_status: int = 200,
    ):
        self.chat_chunks = chat_chunks or []
        self.chat_status = chat_status
        self.models = models if models is not None else [{"name": "llama3:latest"}]
        self.tags_status = tags_status
        self.requests: list[httpx.Request] = []
        self.streams: list[ChunkedStream] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path.endswith("/tags"):
            if self.tags_status != 200:
                return httpx.Response(self.tags_status, json={"error": "unavailable"})
            return httpx.Response(200, json={"models": self.models})
        if request.url.path.endswith("/chat"):
            if self.chat_status != 200:
                return httpx.Response(self.chat_status, json={"error": "boom"})
            stream = ChunkedStream(list(self.chat_chunks))
            self.streams.append(stream)
            return httpx.Response(200, stream=stream)
        return httpx.Response(404)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def chat_bodies(self) -> list[dict[str, Any]]:
        return [
            json.loads(req.content)
            for req in self.requests
            if req.url.path.endswith("/chat")
        ]


def parse_sse(raw: str) -> list[dict[str, Any]]:
    """Decode every ``data:`` event in an SSE body."""
    events = []
    for block in raw.split("\n\n"):
        block = block.strip()
        if block.startswith("data:"):
            events.append(json.loads(block[len("data:"):].strip()))
    return events
