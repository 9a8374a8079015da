"""API routers."""

from chatbridge.api.chat import router as chat_router
from chatbridge.api.status import router as status_router

__all__ = ["chat_router", "status_router"]
