"""Runtime settings for BlueprintFlow.

Values come from environment variables prefixed with ``BLUEPRINTFLOW_`` or from
a ``.env`` file in the working directory.
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class Settings(BaseSettings):
    """BlueprintFlow settings."""

    model_config = SettingsConfigDict(
        env_prefix="BLUEPRINTFLOW_",
        env_file=".env",
        extra="ignore",
    )

    log_level: LogLevel = "INFO"

    # --- Assistant / planner ---
    history_exchanges: int = Field(
        default=5,
        ge=0,
        description="Number of prior message/response exchanges sent with each chat turn.",
    )
    collaborator_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Seconds to wait for the language-model collaborator.",
    )
    gemini_model: str = "gemini-2.5-flash"
    gemini_api_key: Optional[str] = None
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_output_tokens: int = Field(default=1024, gt=0)

    # --- Persistence ---
    storage_dir: str = "./.blueprintflow_storage"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()
