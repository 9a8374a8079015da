"""Shared-secret authentication gate."""

from chatbridge.auth.dependencies import (
    PASSWORD_HEADER,
    RequireAuth,
    is_authorized,
    require_auth,
)

__all__ = [
    "PASSWORD_HEADER",
    "RequireAuth",
    "is_authorized",
    "require_auth",
]
