"""Alembic migration scripts for the chat database."""
