"""
Connection status, login check, and model listing.

Status and login stay open so a client can discover whether it needs the
password; the model list sits behind the gate.
"""

import socket
from typing import Any

from fastapi import APIRouter, Request
from pydantic import BaseModel

from chatbridge.auth import RequireAuth, is_authorized
from chatbridge.config import get_settings
from chatbridge.core import InvalidCredentialsError
from chatbridge.providers import BackendMode, BackendSelector

router = APIRouter(prefix="/api", tags=["status"])


class LoginRequest(BaseModel):
    password: str = ""


def get_backends(request: Request) -> BackendSelector:
    return request.app.state.backends


def get_lan_ip() -> str:
    """Best-effort LAN address of this host, ``localhost`` when unknown."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        # no packet is sent; connect only picks the outbound interface
        sock.connect(("10.255.255.255", 1))
        return sock.getsockname()[0]
    except OSError:
        return "localhost"
    finally:
        sock.close()


@router.get("/status")
async def status(request: Request) -> dict[str, Any]:
    settings = get_settings()
    mode = get_backends(request).get_backend_mode()
    return {
        "mode": mode.value,
        "connected": mode != BackendMode.NONE,
        "lanIp": get_lan_ip(),
        "port": settings.port,
        "authRequired": settings.auth_required,
    }


@router.post("/login")
async def login(body: LoginRequest) -> dict[str, bool]:
    if not is_authorized(body.password):
        raise InvalidCredentialsError()
    return {"success": True}


@router.get("/models", dependencies=[RequireAuth])
async def list_models(request: Request) -> dict[str, list[dict[str, Any]]]:
    return await get_backends(request).list_models()
