"""Configuration and settings management using pydantic-settings."""
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine settings with environment variable loading."""

    model_config = SettingsConfigDict(
        env_prefix="AUTOGRAPH_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Core settings
    env: str = Field(default="development", description="Environment name")
    log_level: str = Field(default="INFO", description="Log level")

    # Storage locations
    flows_dir: Path = Field(
        default=Path("flows"),
        description="Directory holding deployed flow documents and program text",
    )
    workspace_dir: Path = Field(
        default=Path("."),
        description="Root directory for file nodes; paths may not escape it",
    )

    # Execution
    max_workers: int = Field(
        default=4,
        description="Worker threads for independent ready nodes",
    )
    default_backend: str = Field(
        default="auto",
        description="Backend used when a run does not name one (auto, cpu, gpu)",
    )
    gpu_enabled: bool = Field(
        default=False,
        description="Allow auto backend selection to pick the GPU variant",
    )
    http_timeout_s: float = Field(
        default=30.0,
        description="Timeout for HTTP node requests in seconds",
    )

    # Timeline storage
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL for the Redis timeline store",
    )
    timeline_key_prefix: str = Field(
        default="autograph:timeline:",
        description="Key prefix for Redis timeline lists",
    )

    @field_validator("max_workers")
    @classmethod
    def validate_max_workers(cls, v: int) -> int:
        """Validate that the worker pool is not empty."""
        if v <= 0:
            raise ValueError("max_workers must be positive")
        return v

    @field_validator("default_backend")
    @classmethod
    def validate_default_backend(cls, v: str) -> str:
        """Validate backend name."""
        v = v.lower()
        if v not in ("auto", "cpu", "gpu"):
            raise ValueError("default_backend must be one of: auto, cpu, gpu")
        return v

    @field_validator("http_timeout_s")
    @classmethod
    def validate_http_timeout(cls, v: float) -> float:
        """HTTP requests must always be bounded."""
        if v <= 0:
            raise ValueError("http_timeout_s must be positive")
        return v


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset settings (useful for testing)."""
    global _settings
    _settings = None
