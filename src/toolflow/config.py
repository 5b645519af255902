"""Application Configuration

Type-safe configuration using Pydantic Settings for environment variable handling.

Everything has a development default, so the app starts without a .env file;
tools that need a missing API key raise when called rather than at start-up.
"""

import logging
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class Settings(BaseSettings):
    """Application settings from environment variables"""

    # =============================================================================
    # APPLICATION
    # =============================================================================

    app_name: str = Field(default="toolflow", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    app_description: str = Field(
        default="Query-driven tool routing with a research, write and review pipeline",
        alias="APP_DESCRIPTION",
    )
    environment: str = Field(default="development", alias="ENVIRONMENT")

    # =============================================================================
    # API CONFIGURATION
    # =============================================================================

    api_host: str = Field(default="0.0.0.0", alias="API_HOST")
    api_port: int = Field(default=8000, alias="API_PORT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # CORS Settings
    cors_origins: str = Field(default="", alias="CORS_ORIGINS")
    cors_credentials: bool = Field(default=True, alias="CORS_CREDENTIALS")
    cors_methods: str = Field(default="*", alias="CORS_METHODS")
    cors_headers: str = Field(default="*", alias="CORS_HEADERS")

    # =============================================================================
    # LLM AND TOOL PROVIDERS
    # =============================================================================

    # Read by pydantic-ai's OpenAI provider from the environment
    openai_api_key: str | None = Field(default=None, alias="OPENAI_API_KEY")
    tavily_api_key: str | None = Field(default=None, alias="TAVILY_API_KEY")

    # Pydantic AI "vendor:model" string
    completion_model: str = Field(default="openai:gpt-4o-mini", alias="COMPLETION_MODEL")
    research_max_iterations: int = Field(default=2, ge=1, alias="RESEARCH_MAX_ITERATIONS")

    http_timeout_seconds: float = Field(default=15.0, gt=0, alias="HTTP_TIMEOUT_SECONDS")
    wikipedia_user_agent: str = Field(default="toolflow/0.1 (research assistant)", alias="WIKIPEDIA_USER_AGENT")

    # =============================================================================
    # PERFORMANCE
    # =============================================================================

    tool_cache_ttl_seconds: float = Field(default=300.0, gt=0, alias="TOOL_CACHE_TTL_SECONDS")
    progress_queue_size: int = Field(default=100, ge=1, alias="PROGRESS_QUEUE_SIZE")

    model_config = {"env_file": ".env", "case_sensitive": False, "extra": "ignore"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.model_validate({})


def configure_logging(level: str) -> None:
    """Configure root logging once for the process."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    # Per-request access lines from httpx are noise at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


settings = get_settings()
