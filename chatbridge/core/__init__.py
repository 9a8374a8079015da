"""Core module with logging, errors, middleware, and exception handling."""

from chatbridge.core.errors import (
    AppError,
    ConversationNotFoundError,
    ErrorCode,
    ErrorResponse,
    InvalidCredentialsError,
    ModelNotFoundError,
    NotFoundError,
    PersistenceError,
    ProviderAuthError,
    ProviderError,
    ProviderUnavailableError,
    RateLimitError,
    UnauthorizedError,
)
from chatbridge.core.logging import get_logger, request_id_ctx, setup_logging
from chatbridge.core.middleware import (
    RequestContextMiddleware,
    RequestSizeLimitMiddleware,
    setup_exception_handlers,
)

__all__ = [
    # Errors
    "AppError",
    "ConversationNotFoundError",
    "ErrorCode",
    "ErrorResponse",
    "InvalidCredentialsError",
    "ModelNotFoundError",
    "NotFoundError",
    "PersistenceError",
    "ProviderAuthError",
    "ProviderError",
    "ProviderUnavailableError",
    "RateLimitError",
    "UnauthorizedError",
    # Logging
    "get_logger",
    "request_id_ctx",
    "setup_logging",
    # Middleware
    "RequestContextMiddleware",
    "RequestSizeLimitMiddleware",
    "setup_exception_handlers",
]
