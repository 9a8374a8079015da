"""Application settings using Pydantic BaseSettings."""

import os
from functools import lru_cache
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _package_dir() -> str:
    # chatbridge/config/ -> chatbridge/
    return os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


def _get_default_db_path() -> str:
    """Get absolute SQLite URL for the default chat database."""
    db_path = os.path.join(_package_dir(), "data", "chats.db")
    return f"sqlite:///{db_path}"


def _get_default_models_cache_path() -> str:
    return os.path.join(_package_dir(), "data", "models_cache.json")


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Server
    environment: str = Field(default="development")
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3000)
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")
    log_file: Optional[str] = Field(default=None)
    cors_origins: str = Field(default="")
    max_request_bytes: int = Field(default=1048576)

    # Security
    # Shared secret checked against the X-App-Password header. Empty disables the gate.
    app_password: Optional[str] = Field(default=None)
    # Secret hashed into the at-rest field encryption key. Empty uses the built-in fallback.
    encryption_key: Optional[str] = Field(default=None)

    # Database
    database_url: str = Field(default_factory=_get_default_db_path)
    auto_migrate: bool = Field(default=True)

    # Upstream (Ollama)
    mode: str = Field(default="auto")
    ollama_local_url: str = Field(default="http://localhost:11434")
    ollama_cloud_url: str = Field(default="https://ollama.com/api")
    ollama_api_key: Optional[str] = Field(default=None)
    upstream_timeout_seconds: float = Field(default=300.0)
    upstream_connect_timeout_seconds: float = Field(default=10.0)
    upstream_max_retries: int = Field(default=1)
    models_cache_path: str = Field(default_factory=_get_default_models_cache_path)

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        if not self.cors_origins:
            return []
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment.lower() == "production"

    @property
    def auth_required(self) -> bool:
        return bool(self.app_password)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return upper

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        vv = (v or "").strip().lower()
        if vv not in {"development", "staging", "production"}:
            raise ValueError("ENVIRONMENT must be one of: development, staging, production")
        return vv

    @field_validator("mode")
    @classmethod
    def validate_mode(cls, v: str) -> str:
        """Normalize + validate the forced backend mode."""
        vv = (v or "auto").strip().lower()
        if vv not in {"auto", "local", "cloud"}:
            raise ValueError("MODE must be one of: auto, local, cloud")
        return vv

    @field_validator("upstream_timeout_seconds", "upstream_connect_timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Upstream timeouts must be positive")
        return v


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
