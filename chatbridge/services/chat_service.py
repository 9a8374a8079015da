"""Chat relay: SSE streaming from Ollama with encrypted persistence."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator, Callable
from contextlib import aclosing
from typing import Any

from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from chatbridge.core import AppError, PersistenceError, get_logger
from chatbridge.db.repositories import (
    append_message,
    create_conversation,
    touch_conversation,
)
from chatbridge.providers import (
    BackendMode,
    BackendModeProvider,
    OllamaEndpoint,
    UpstreamChatRequest,
    iter_ndjson,
)

logger = get_logger(__name__)

TITLE_MAX_CHARS = 30
DEFAULT_TITLE = "New Chat"


def derive_title(messages: list[dict[str, Any]]) -> str:
    """Title a new chat after its first user message."""
    first_user = next((m for m in messages if m.get("role") == "user"), None)
    if first_user is None:
        return DEFAULT_TITLE
    content = str(first_user.get("content") or "")
    if len(content) > TITLE_MAX_CHARS:
        return content[:TITLE_MAX_CHARS] + "..."
    return content


class ChatService:
    """
    Relays one chat turn upstream and streams the reply back as SSE.

    Per stream: create the chat if needed (announcing it with a
    ``chat_created`` event), save the newest user message, forward the full
    history to the current backend, re-emit every decoded upstream object,
    and save the accumulated assistant reply once upstream reports ``done``.
    Persistence failures are logged and never interrupt the stream.
    """

    def __init__(
        self,
        backends: BackendModeProvider,
        session_factory: Callable[[], Session],
    ):
        self.backends = backends
        self.session_factory = session_factory

    def ensure_available(self) -> BackendMode:
        """Fail before streaming when no backend is connected."""
        mode = self.backends.get_backend_mode()
        self.backends.endpoint_for(mode)
        return mode

    async def stream_chat(
        self,
        *,
        chat_id: int | None,
        model: str,
        messages: list[dict[str, Any]],
        options: dict[str, Any] | None = None,
        think: str | None = None,
    ) -> AsyncIterator[str]:
        """
        Stream a chat completion as SSE ``data:`` events.

        ``messages`` is the full history; its last entry must be the new user
        turn and is the only one persisted.
        """
        mode = self.ensure_available()
        endpoint = self.backends.endpoint_for(mode)
        upstream_request = UpstreamChatRequest(
            model=model, messages=messages, options=options, think=think
        )

        async def event_generator() -> AsyncIterator[str]:
            db = self.session_factory()
            bound_chat_id = chat_id
            try:
                if bound_chat_id is None:
                    bound_chat_id = await self._create_chat(db, messages, model)
                    if bound_chat_id is not None:
                        yield self._format_sse({"type": "chat_created", "chatId": bound_chat_id})

                if bound_chat_id is not None:
                    await self._save_user_turn(db, bound_chat_id, messages[-1], model)

                relay = self._relay(db, endpoint, upstream_request, bound_chat_id)
                async with aclosing(relay) as events:
                    async for event in events:
                        yield event
            finally:
                db.close()

        return event_generator()

    async def _relay(
        self,
        db: Session,
        endpoint: OllamaEndpoint,
        upstream_request: UpstreamChatRequest,
        chat_id: int | None,
    ) -> AsyncIterator[str]:
        content = ""
        thinking = ""
        saved = False
        completed = False

        logger.info(
            "Relaying chat upstream",
            data={"endpoint": endpoint.name, "model": upstream_request.model, "chat_id": chat_id},
        )
        try:
            async with aclosing(endpoint.stream_chat(upstream_request)) as chunks:
                async with aclosing(iter_ndjson(chunks)) as frames:
                    async for frame in frames:
                        message = frame.get("message")
                        if isinstance(message, dict):
                            if isinstance(message.get("content"), str):
                                content += message["content"]
                            if isinstance(message.get("thinking"), str):
                                thinking += message["thinking"]
                        if "error" in frame:
                            logger.warning(
                                "Upstream reported an error in-stream",
                                data={"error": frame.get("error"), "chat_id": chat_id},
                            )

                        if frame.get("done") and chat_id is not None and not saved:
                            saved = True
                            await self._save_assistant_turn(
                                db, chat_id, content, thinking, upstream_request.model
                            )

                        # the reply is stored before done reaches the client
                        yield self._format_sse(frame)
            completed = True
        except AppError as exc:
            logger.warning(
                "Upstream error during chat stream",
                data={"code": exc.code.value, "error": exc.message, "chat_id": chat_id},
            )
            yield self._format_sse({"error": exc.message})
        except Exception as exc:
            logger.exception(
                "Unexpected error during chat stream",
                exc_info=exc,
                data={"chat_id": chat_id},
            )
            yield self._format_sse({"error": "An unexpected error occurred"})
        finally:
            if not completed:
                # cancelled (client went away) or failed; partial output is not saved
                logger.info(
                    "Chat stream ended before completion",
                    data={"chat_id": chat_id, "partial_chars": len(content)},
                )

    async def _create_chat(
        self, db: Session, messages: list[dict[str, Any]], model: str
    ) -> int | None:
        try:
            conversation = await run_in_threadpool(
                create_conversation, db, derive_title(messages), model
            )
        except PersistenceError as exc:
            logger.error("Failed to auto-create chat", data={"error": exc.message})
            return None
        logger.info("Chat created", data={"chat_id": conversation.id})
        return conversation.id

    async def _save_user_turn(
        self, db: Session, chat_id: int, message: dict[str, Any], model: str
    ) -> None:
        try:
            await run_in_threadpool(
                append_message, db, chat_id, "user", str(message.get("content") or "")
            )
            await run_in_threadpool(touch_conversation, db, chat_id, model)
        except PersistenceError as exc:
            logger.error(
                "Error saving user message",
                data={"chat_id": chat_id, "error": exc.message},
            )

    async def _save_assistant_turn(
        self, db: Session, chat_id: int, content: str, thinking: str, model: str
    ) -> None:
        try:
            await run_in_threadpool(
                append_message, db, chat_id, "assistant", content, thinking or None
            )
            await run_in_threadpool(touch_conversation, db, chat_id, model)
        except PersistenceError as exc:
            logger.error(
                "Error saving assistant message",
                data={"chat_id": chat_id, "error": exc.message},
            )

    @staticmethod
    def _format_sse(payload: dict[str, Any]) -> str:
        """Serialize one object as an SSE data event."""
        data = json.dumps(payload, separators=(",", ":"), ensure_ascii=False)
        return f"data: {data}\n\n"
