"""Tests for the encrypted conversation store."""

from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy import inspect, text, update
from sqlalchemy.orm import Session

from chatbridge.core import PersistenceError
from chatbridge.db import Conversation, get_engine
from chatbridge.db.repositories import (
    append_message,
    create_conversation,
    delete_conversation,
    get_conversation,
    list_conversations,
    list_messages,
    touch_conversation,
)
from chatbridge.security import FieldCipher, get_cipher


def _raw_rows(db: Session, chat_id: int) -> list[tuple[str, str | None]]:
    result = db.execute(
        text("SELECT content, thinking FROM messages WHERE chat_id = :cid ORDER BY id"),
        {"cid": chat_id},
    )
    return [tuple(row) for row in result]


def test_migrations_create_tables(migrated_db) -> None:
    tables = set(inspect(get_engine()).get_table_names())
    assert {"chats", "messages", "alembic_version"} <= tables


def test_create_conversation_defaults(db_session: Session) -> None:
    conv = create_conversation(db_session, title=None, model="llama3")
    assert conv.id is not None
    assert conv.title == "New Chat"
    assert conv.model == "llama3"
    assert conv.created_at is not None

    blank = create_conversation(db_session, title="   ", model="llama3")
    assert blank.title == "New Chat"
    assert blank.id != conv.id


def test_append_and_list_round_trip(db_session: Session) -> None:
    conv = create_conversation(db_session, title="Chat", model="llama3")
    append_message(db_session, conv.id, "user", "What is 2+2?")
    append_message(db_session, conv.id, "assistant", "4", "simple arithmetic")

    messages = list_messages(db_session, conv.id)
    assert [(m.role, m.content, m.thinking) for m in messages] == [
        ("user", "What is 2+2?", None),
        ("assistant", "4", "simple arithmetic"),
    ]
    assert all(m.chat_id == conv.id for m in messages)


def test_content_is_encrypted_at_rest(db_session: Session) -> None:
    conv = create_conversation(db_session, title="Chat", model="llama3")
    append_message(db_session, conv.id, "assistant", "top secret", "private thoughts")

    content, thinking = _raw_rows(db_session, conv.id)[0]
    assert content.startswith("enc:")
    assert thinking.startswith("enc:")
    assert "top secret" not in content
    assert get_cipher().open(content) == "top secret"


def test_empty_content_and_missing_thinking_stored_as_is(db_session: Session) -> None:
    conv = create_conversation(db_session, title="Chat", model="llama3")
    append_message(db_session, conv.id, "user", "")
    assert _raw_rows(db_session, conv.id) == [("", None)]
    assert list_messages(db_session, conv.id)[0].content == ""


def test_already_sealed_values_are_not_sealed_again(db_session: Session) -> None:
    cipher = get_cipher()
    sealed = cipher.seal("once")
    conv = create_conversation(db_session, title="Chat", model="llama3")
    append_message(db_session, conv.id, "user", sealed)

    assert _raw_rows(db_session, conv.id)[0][0] == sealed
    assert list_messages(db_session, conv.id)[0].content == "once"


def test_text_starting_with_envelope_prefix_round_trips(db_session: Session) -> None:
    conv = create_conversation(db_session, title="Chat", model="llama3")
    append_message(db_session, conv.id, "user", "enc:hello world", "enc:aa:bb")

    content, thinking = _raw_rows(db_session, conv.id)[0]
    assert content != "enc:hello world"
    assert thinking != "enc:aa:bb"
    stored = list_messages(db_session, conv.id)[0]
    assert (stored.content, stored.thinking) == ("enc:hello world", "enc:aa:bb")


def test_legacy_plaintext_rows_are_returned_verbatim(db_session: Session) -> None:
    conv = create_conversation(db_session, title="Chat", model="llama3")
    db_session.execute(
        text(
            "INSERT INTO messages (chat_id, role, content, created_at) "
            "VALUES (:cid, 'user', 'written before encryption', CURRENT_TIMESTAMP)"
        ),
        {"cid": conv.id},
    )
    db_session.commit()
    assert list_messages(db_session, conv.id)[0].content == "written before encryption"


def test_rows_sealed_with_another_key_do_not_leak(db_session: Session) -> None:
    conv = create_conversation(db_session, title="Chat", model="llama3")
    append_message(
        db_session, conv.id, "user", "hello", cipher=FieldCipher("some-other-key")
    )
    stored = list_messages(db_session, conv.id)[0]
    assert stored.content != "hello"


def test_messages_listed_in_append_order(db_session: Session) -> None:
    conv = create_conversation(db_session, title="Chat", model="llama3")
    for i in range(10):
        append_message(db_session, conv.id, "user" if i % 2 == 0 else "assistant", f"m{i}")
    assert [m.content for m in list_messages(db_session, conv.id)] == [f"m{i}" for i in range(10)]


def test_messages_scoped_to_conversation(db_session: Session) -> None:
    first = create_conversation(db_session, title="A", model="llama3")
    second = create_conversation(db_session, title="B", model="llama3")
    append_message(db_session, first.id, "user", "for A")
    append_message(db_session, second.id, "user", "for B")
    assert [m.content for m in list_messages(db_session, first.id)] == ["for A"]
    assert list_messages(db_session, 9999) == []


def test_delete_cascades_to_messages(db_session: Session) -> None:
    conv = create_conversation(db_session, title="Chat", model="llama3")
    append_message(db_session, conv.id, "user", "hi")
    append_message(db_session, conv.id, "assistant", "hello")

    assert delete_conversation(db_session, conv.id) is True
    assert get_conversation(db_session, conv.id) is None
    assert list_messages(db_session, conv.id) == []
    count = db_session.execute(text("SELECT COUNT(*) FROM messages")).scalar_one()
    assert count == 0


def test_delete_unknown_conversation(db_session: Session) -> None:
    assert delete_conversation(db_session, 12345) is False


def test_touch_updates_model_and_timestamp(db_session: Session) -> None:
    conv = create_conversation(db_session, title="Chat", model="llama3")
    old = conv.updated_at - timedelta(days=1)
    db_session.execute(
        update(Conversation).where(Conversation.id == conv.id).values(updated_at=old)
    )
    db_session.commit()

    assert touch_conversation(db_session, conv.id, "qwen3") is True
    db_session.expire_all()
    refreshed = get_conversation(db_session, conv.id)
    assert refreshed.model == "qwen3"
    assert refreshed.updated_at > old
    assert touch_conversation(db_session, 4242, "qwen3") is False


def test_list_conversations_most_recent_first(db_session: Session) -> None:
    older = create_conversation(db_session, title="older", model="llama3")
    newer = create_conversation(db_session, title="newer", model="llama3")
    assert [c.id for c in list_conversations(db_session)][:2] == [newer.id, older.id]

    touch_conversation(db_session, older.id, "llama3")
    db_session.expire_all()
    assert list_conversations(db_session)[0].id == older.id


def test_append_to_unknown_conversation_raises(db_session: Session) -> None:
    with pytest.raises(PersistenceError) as exc_info:
        append_message(db_session, 777, "user", "orphan")
    assert exc_info.value.status_code == 500

    # the session stays usable after the rollback
    conv = create_conversation(db_session, title="Chat", model="llama3")
    assert conv.id is not None
