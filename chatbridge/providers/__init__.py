"""Upstream Ollama endpoints, stream reframing, and backend selection."""

from chatbridge.providers.base import BackendMode, BackendModeProvider, UpstreamChatRequest
from chatbridge.providers.models_cache import ModelsCache
from chatbridge.providers.ndjson import iter_ndjson
from chatbridge.providers.ollama import OllamaEndpoint
from chatbridge.providers.selector import BackendSelector

__all__ = [
    "BackendMode",
    "BackendModeProvider",
    "BackendSelector",
    "ModelsCache",
    "OllamaEndpoint",
    "UpstreamChatRequest",
    "iter_ndjson",
]
