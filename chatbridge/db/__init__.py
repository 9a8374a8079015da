"""Database models, engine, session management, and migrations."""

from chatbridge.db.base import Base, TimestampMixin
from chatbridge.db.engine import (
    build_engine,
    dispose_engine,
    get_engine,
    verify_database_connection,
)
from chatbridge.db.migrate import run_migrations
from chatbridge.db.models import Conversation, Message
from chatbridge.db.session import get_db, get_session_factory, reset_session_factory

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    # Engine
    "build_engine",
    "dispose_engine",
    "get_engine",
    "verify_database_connection",
    # Migrations
    "run_migrations",
    # Session
    "get_db",
    "get_session_factory",
    "reset_session_factory",
    # Models
    "Conversation",
    "Message",
]
