"""Database repositories for data access."""

from chatbridge.db.repositories.conversation import (
    StoredMessage,
    append_message,
    create_conversation,
    delete_conversation,
    get_conversation,
    list_conversations,
    list_messages,
    touch_conversation,
)

__all__ = [
    "StoredMessage",
    "append_message",
    "create_conversation",
    "delete_conversation",
    "get_conversation",
    "list_conversations",
    "list_messages",
    "touch_conversation",
]
