"""
FastAPI dependencies for the shared-secret password gate.

When ``APP_PASSWORD`` is configured every protected route requires the
same value in the ``X-App-Password`` header. With no password configured
the gate is open.
"""

import hmac
from typing import Annotated

from fastapi import Depends, Request

from chatbridge.config import get_settings
from chatbridge.core import UnauthorizedError

PASSWORD_HEADER = "X-App-Password"


def is_authorized(credential: str | None) -> bool:
    """
    Check a credential against the configured shared secret.

    Args:
        credential: Password supplied by the client, if any.

    Returns:
        True if no password is configured or the credential matches.
    """
    expected = get_settings().app_password
    if not expected:
        return True
    if credential is None:
        return False
    return hmac.compare_digest(credential.encode("utf-8"), expected.encode("utf-8"))


def get_password_header(request: Request) -> str | None:
    """Extract the shared secret from the request headers."""
    return request.headers.get(PASSWORD_HEADER)


async def require_auth(
    credential: Annotated[str | None, Depends(get_password_header)],
) -> None:
    """
    Require the shared secret - raises if it is missing or wrong.

    Raises:
        UnauthorizedError: If the gate is enabled and the header does not match.
    """
    if not is_authorized(credential):
        raise UnauthorizedError()


RequireAuth = Depends(require_auth)
