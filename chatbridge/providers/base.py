"""
Upstream types shared by the relay and the backend selector.
"""

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from chatbridge.providers.ollama import OllamaEndpoint


class BackendMode(str, Enum):
    """Which Ollama endpoint requests are relayed to."""

    LOCAL = "local"
    CLOUD = "cloud"
    NONE = "none"


class BackendModeProvider(Protocol):
    """What the relay queries per request to pick its upstream."""

    def get_backend_mode(self) -> BackendMode: ...

    def endpoint_for(self, mode: BackendMode) -> "OllamaEndpoint": ...


@dataclass
class UpstreamChatRequest:
    """Body forwarded to Ollama's chat endpoint."""

    model: str
    messages: list[dict[str, Any]]
    options: dict[str, Any] | None = None
    think: str | None = None

    def to_payload(self) -> dict[str, Any]:
        """Serialize to the JSON body; ``think`` is omitted when absent or "none"."""
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": self.messages,
            "stream": True,
        }
        if self.options is not None:
            payload["options"] = self.options
        if self.think and self.think != "none":
            payload["think"] = self.think
        return payload
