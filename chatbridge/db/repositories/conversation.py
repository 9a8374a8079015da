"""Repository helpers for conversations and messages.

Message content and thinking are sealed on the way in and opened on the way
out, so callers only ever see plaintext.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from chatbridge.core import PersistenceError, get_logger
from chatbridge.db.base import utcnow
from chatbridge.db.models import Conversation, Message
from chatbridge.security import FieldCipher, get_cipher, is_sealed

logger = get_logger(__name__)


@dataclass(frozen=True)
class StoredMessage:
    """Decrypted, detached view of a message row."""

    id: int
    chat_id: int
    role: str
    content: str
    thinking: str | None
    created_at: datetime


@contextmanager
def _persistence(db: Session, operation: str) -> Iterator[None]:
    """Roll back and re-raise storage failures as PersistenceError."""
    try:
        yield
    except SQLAlchemyError as exc:
        db.rollback()
        raise PersistenceError(
            f"Failed to {operation}", details={"reason": type(exc).__name__}
        ) from exc


def _seal(cipher: FieldCipher, value: str | None) -> str | None:
    # never double-seal
    if value is None or is_sealed(value):
        return value
    return cipher.seal(value)


def create_conversation(db: Session, title: str | None, model: str) -> Conversation:
    """Create a new conversation."""
    conversation = Conversation(
        title=title.strip() if title and title.strip() else "New Chat",
        model=model,
    )
    with _persistence(db, "create chat"):
        db.add(conversation)
        db.commit()
        db.refresh(conversation)
    return conversation


def get_conversation(db: Session, conversation_id: int) -> Conversation | None:
    """Fetch a conversation by id."""
    with _persistence(db, "load chat"):
        return db.get(Conversation, conversation_id)


def list_conversations(db: Session) -> list[Conversation]:
    """List conversations, most recently updated first."""
    stmt = select(Conversation).order_by(
        Conversation.updated_at.desc(), Conversation.id.desc()
    )
    with _persistence(db, "list chats"):
        return list(db.execute(stmt).scalars().all())


def delete_conversation(db: Session, conversation_id: int) -> bool:
    """Delete a conversation and cascade its messages."""
    with _persistence(db, "delete chat"):
        conversation = db.get(Conversation, conversation_id)
        if not conversation:
            return False
        db.delete(conversation)
        db.commit()
    return True


def touch_conversation(db: Session, conversation_id: int, model: str) -> bool:
    """Refresh updated_at and the model used for the latest turn."""
    stmt = (
        update(Conversation)
        .where(Conversation.id == conversation_id)
        .values(updated_at=utcnow(), model=model)
    )
    with _persistence(db, "update chat"):
        result = db.execute(stmt)
        db.commit()
    return result.rowcount > 0


def append_message(
    db: Session,
    conversation_id: int,
    role: str,
    content: str,
    thinking: str | None = None,
    *,
    cipher: FieldCipher | None = None,
) -> Message:
    """
    Insert a chat message with sealed content.

    The conversation is not checked here; the foreign key rejects unknown ids.
    """
    cipher = cipher or get_cipher()
    message = Message(
        chat_id=conversation_id,
        role=role,
        content=_seal(cipher, content),
        thinking=_seal(cipher, thinking),
    )
    with _persistence(db, "save message"):
        db.add(message)
        db.commit()
        db.refresh(message)
    return message


def list_messages(
    db: Session, conversation_id: int, *, cipher: FieldCipher | None = None
) -> list[StoredMessage]:
    """Get all messages for a conversation in append order, decrypted."""
    cipher = cipher or get_cipher()
    stmt = (
        select(Message)
        .where(Message.chat_id == conversation_id)
        .order_by(Message.created_at.asc(), Message.id.asc())
    )
    with _persistence(db, "load messages"):
        rows = db.execute(stmt).scalars().all()
    return [
        StoredMessage(
            id=row.id,
            chat_id=row.chat_id,
            role=row.role,
            content=cipher.open(row.content),
            thinking=cipher.open(row.thinking),
            created_at=row.created_at,
        )
        for row in rows
    ]
