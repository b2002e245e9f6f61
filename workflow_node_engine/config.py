"""
Engine configuration.
"""

from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineSettings(BaseSettings):
    """Node execution engine settings, read from the environment or ``.env``."""

    model_config = SettingsConfigDict(
        env_prefix="NODE_ENGINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Debug runner
    debug_timeout_seconds: float = 240.0

    # Control flow
    max_loop_iterations: int = 1000

    # AI processing
    default_ai_provider: str = "echo"
    default_model: str = "gpt-4o-mini"
    max_tool_call_rounds: int = 5
    openai_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None

    # Code execution
    code_timeout_seconds: float = 30.0
    python_executable: str = "python3"

    # File access
    file_fetch_timeout_seconds: float = 30.0
    http_timeout_seconds: float = 30.0

    # Approvals
    approval_default_timeout_seconds: int = 86400
    approval_check_interval_seconds: float = 60.0

    # Logging
    log_level: str = "INFO"
    log_format: str = "simple"

    @field_validator(
        "debug_timeout_seconds",
        "code_timeout_seconds",
        "file_fetch_timeout_seconds",
        "http_timeout_seconds",
    )
    @classmethod
    def validate_positive(cls, v):
        if v <= 0:
            raise ValueError("timeouts must be positive")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        return v.upper()


# Global settings instance
_settings: Optional[EngineSettings] = None


def get_settings() -> EngineSettings:
    """Get engine settings."""
    global _settings
    if _settings is None:
        _settings = EngineSettings()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next ``get_settings`` re-reads the environment."""
    global _settings
    _settings = None
