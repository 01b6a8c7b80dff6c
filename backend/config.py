"""
Configuration and settings for the $ave+ backend.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")

    # Database (Postgres expected)
    database_url: Optional[str] = Field(default=None, env="DATABASE_URL")

    # S3-compatible storage for exports
    cos_endpoint: Optional[str] = Field(default=None, env="COS_ENDPOINT")
    cos_region: Optional[str] = Field(default=None, env="COS_REGION")
    cos_bucket: Optional[str] = Field(default=None, env="COS_BUCKET")
    aws_access_key_id: Optional[str] = Field(
        default=None, env="AWS_ACCESS_KEY_ID"
    )
    aws_secret_access_key: Optional[str] = Field(
        default=None, env="AWS_SECRET_ACCESS_KEY"
    )
    export_url_expires_seconds: int = Field(default=3600)

    # LLM providers
    ai_gateway_url: Optional[str] = Field(default=None, env="AI_GATEWAY_URL")
    ai_gateway_api_key: Optional[str] = Field(
        default=None, env="AI_GATEWAY_API_KEY"
    )
    groq_api_key: Optional[str] = Field(default=None, env="GROQ_API_KEY")
    groq_url: str = Field(
        default="https://api.groq.com/openai/v1/chat/completions"
    )
    deepseek_api_key: Optional[str] = Field(default=None, env="DEEPSEEK_API_KEY")
    deepseek_url: str = Field(default="https://api.deepseek.com/chat/completions")
    gemini_api_key: Optional[str] = Field(default=None, env="GEMINI_API_KEY")
    gateway_timeout_seconds: float = Field(default=30.0)

    # Tracing (LangSmith)
    langsmith_api_key: Optional[str] = Field(default=None, env="LANGSMITH_API_KEY")
    langsmith_project: str = Field(default="save-plus-ai", env="LANGSMITH_PROJECT")
    langsmith_endpoint: str = Field(default="https://api.smith.langchain.com")

    # Development toggles
    use_in_memory_backends: bool = Field(
        default=False,
        validation_alias=AliasChoices(
            "SAVEPLUS_USE_IN_MEMORY_BACKENDS", "use_in_memory_backends"
        ),
    )

    # Queue (Redis)
    redis_url: Optional[str] = Field(default=None, env="REDIS_URL")
    redis_queue_key: str = Field(default="saveplus:jobs", env="REDIS_QUEUE_KEY")

    # Cache
    cache_ttl_seconds: int = Field(default=300)
    cache_max_entries: int = Field(default=100)

    # Comma-separated user ids allowed on admin routes.
    admin_user_ids: str = Field(
        default="",
        validation_alias=AliasChoices("SAVEPLUS_ADMIN_USER_IDS", "admin_user_ids"),
    )

    @property
    def admin_ids(self) -> set[str]:
        return {uid.strip() for uid in self.admin_user_ids.split(",") if uid.strip()}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
