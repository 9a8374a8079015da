"""Chat relay and chat history endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from fastapi import APIRouter, Body, Depends, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, ConfigDict, Field, model_validator
from sqlalchemy.orm import Session

from chatbridge.auth import RequireAuth
from chatbridge.core import ConversationNotFoundError
from chatbridge.core.logging import request_id_ctx
from chatbridge.db import get_db, get_session_factory
from chatbridge.db.repositories import (
    create_conversation,
    delete_conversation,
    get_conversation,
    list_conversations,
    list_messages,
)
from chatbridge.services import ChatService

router = APIRouter(prefix="/api", tags=["chat"], dependencies=[RequireAuth])


class ChatMessageIn(BaseModel):
    """One history entry; extra Ollama fields (images, tool calls) pass through."""

    model_config = ConfigDict(extra="allow")

    role: str = Field(..., min_length=1)
    content: str = ""


class ChatRelayRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    chat_id: int | None = Field(None, alias="chatId")
    model: str = Field(..., min_length=1)
    messages: list[ChatMessageIn] = Field(..., min_length=1)
    options: dict[str, Any] | None = None
    think: Literal["none", "low", "medium", "high"] | None = None

    @model_validator(mode="after")
    def last_message_is_user_turn(self) -> "ChatRelayRequest":
        if self.messages[-1].role != "user":
            raise ValueError("The last message must be the new user turn (role 'user')")
        return self


class CreateConversationRequest(BaseModel):
    title: str | None = Field(None, max_length=255)
    model: str = Field(..., min_length=1, max_length=128)


class ConversationResponse(BaseModel):
    id: int
    title: str
    model: str
    created_at: datetime
    updated_at: datetime


class MessageResponse(BaseModel):
    id: int
    chat_id: int
    role: str
    content: str
    thinking: str | None
    created_at: datetime


class ConversationDetailResponse(ConversationResponse):
    messages: list[MessageResponse]


def get_chat_service(request: Request) -> ChatService:
    service = getattr(request.app.state, "chat_service", None)
    if service:
        return service
    service = ChatService(request.app.state.backends, get_session_factory())
    request.app.state.chat_service = service
    return service


def _conversation_to_response(conversation: Any) -> ConversationResponse:
    return ConversationResponse(
        id=conversation.id,
        title=conversation.title,
        model=conversation.model,
        created_at=conversation.created_at,
        updated_at=conversation.updated_at,
    )


@router.get("/chats")
def list_chats_route(db: Session = Depends(get_db)) -> list[ConversationResponse]:
    return [_conversation_to_response(conv) for conv in list_conversations(db)]


@router.post("/chats")
def create_chat_route(
    body: CreateConversationRequest,
    db: Session = Depends(get_db),
) -> ConversationResponse:
    conversation = create_conversation(db, title=body.title, model=body.model)
    return _conversation_to_response(conversation)


@router.get("/chats/{chat_id}")
def get_chat_route(chat_id: int, db: Session = Depends(get_db)) -> ConversationDetailResponse:
    conversation = get_conversation(db, chat_id)
    if not conversation:
        raise ConversationNotFoundError()
    messages = list_messages(db, chat_id)
    return ConversationDetailResponse(
        **_conversation_to_response(conversation).model_dump(),
        messages=[
            MessageResponse(
                id=msg.id,
                chat_id=msg.chat_id,
                role=msg.role,
                content=msg.content,
                thinking=msg.thinking,
                created_at=msg.created_at,
            )
            for msg in messages
        ],
    )


@router.delete("/chats/{chat_id}")
def delete_chat_route(chat_id: int, db: Session = Depends(get_db)) -> dict[str, Any]:
    if not delete_conversation(db, chat_id):
        raise ConversationNotFoundError()
    return {"success": True}


@router.post("/chat")
async def chat_stream_route(
    body: ChatRelayRequest = Body(...),
    chat_service: ChatService = Depends(get_chat_service),
) -> StreamingResponse:
    request_id = request_id_ctx.get()
    stream = await chat_service.stream_chat(
        chat_id=body.chat_id,
        model=body.model,
        messages=[message.model_dump() for message in body.messages],
        options=body.options,
        think=body.think,
    )
    headers = {"Cache-Control": "no-cache", "Connection": "keep-alive"}
    if request_id:
        headers["X-Request-ID"] = request_id
    return StreamingResponse(stream, media_type="text/event-stream", headers=headers)
