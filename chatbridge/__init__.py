"""chatbridge: streaming Ollama relay with encrypted chat history."""

__version__ = "0.1.0"
