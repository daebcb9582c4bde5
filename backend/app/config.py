"""Application Configuration — environment-driven settings via pydantic-settings.

Invariants:
    - Secrets (Roboflow API key) come from environment variables, never hardcoded
    - get_settings() is cached (lru_cache) — single instance per process

Design Decisions:
    - pydantic-settings over raw os.environ: validation, type coercion, .env file support
    - Defaults provided for all non-secret settings: works out-of-the-box locally
"""

import json
from functools import lru_cache
from typing import Annotated

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Server
    host: str = "0.0.0.0"  # nosec B104
    port: int = 5001

    # API
    # NoDecode: env value reaches the validator as the raw string.
    # CORS_ORIGIN (single origin) is read when CORS_ORIGINS is unset.
    cors_origins: Annotated[list[str], NoDecode] = Field(
        default=["http://localhost:3000"],
        validation_alias=AliasChoices("cors_origins", "cors_origin"),
    )

    @field_validator("cors_origins", mode="before")
    @classmethod
    def split_cors_origins(cls, v):
        """Accept a JSON list or a comma-separated string."""
        if not isinstance(v, str):
            return v
        if v.lstrip().startswith("["):
            return json.loads(v)
        return [origin.strip() for origin in v.split(",") if origin.strip()]

    # Roboflow
    roboflow_api_key: str = ""
    roboflow_api_url: str = ""
    roboflow_max_attempts: int = 3
    roboflow_base_delay_ms: int = 1000
    roboflow_timeout_seconds: float = 60.0

    # Detection
    min_dog_confidence: float = 0.5
    max_image_bytes: int = 5 * 1024 * 1024

    # Debug log file
    debug_mode: bool = False
    debug_log_dir: str = "logs"

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"


@lru_cache
def get_settings() -> Settings:
    return Settings()
