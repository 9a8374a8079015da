"""Business logic services."""

from chatbridge.services.chat_service import ChatService, derive_title

__all__ = ["ChatService", "derive_title"]
