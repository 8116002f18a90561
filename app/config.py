"""Application configuration management."""
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import AnyUrl, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Global application settings loaded from environment variables."""

    PROJECT_NAME: str = "Scenario Chat"
    API_V1_STR: str = "/api/v1"

    BACKEND_CORS_ORIGINS: List[str] = Field(
        default_factory=lambda: ["http://localhost", "http://localhost:3000"],
        description="Allowed CORS origins",
    )

    OPENAI_API_KEY: Optional[str] = None
    OPENAI_ORG_ID: Optional[str] = None
    OPENAI_MODEL: str = Field("gpt-4o-mini", description="Default OpenAI chat model")
    TRANSLATION_MODEL: str = Field(
        "gpt-4o-mini", description="Model used for constrained single-word translation"
    )
    OPENAI_API_BASE: Optional[AnyUrl] = Field(
        None, description="Override base URL for OpenAI-compatible endpoints"
    )
    LLM_REQUEST_TIMEOUT_SECONDS: float = Field(30.0, description="Timeout for LLM HTTP calls")
    LLM_MAX_RETRIES: int = Field(3, description="Retry attempts for failed LLM calls")

    SESSION_MAX_MESSAGES: int = Field(
        200, ge=1, description="Maximum number of turns retained per session"
    )
    SESSION_HISTORY_WINDOW: int = Field(
        24, ge=1, description="Number of recent turns sent to the model as context"
    )
    SESSION_SNAPSHOT_PATH: Optional[Path] = Field(
        None, description="Legacy JSON session snapshot imported at startup"
    )

    RATE_LIMIT_WINDOW_SECONDS: int = Field(60, description="Length of a rate-limit window in seconds")
    RATE_LIMIT_IP_REQUESTS: int = Field(120, description="Requests per window per client IP")
    RATE_LIMIT_SESSION_REQUESTS: int = Field(60, description="Requests per window per session")

    model_config = SettingsConfigDict(
        env_file=Path(__file__).resolve().parent.parent / ".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    """Return cached application settings instance."""

    return Settings()


settings = get_settings()
