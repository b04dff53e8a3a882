"""Service configuration loaded from environment variables."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    supabase_url: str = Field(default="", validation_alias="SUPABASE_URL")
    supabase_anon_key: str = Field(default="", validation_alias="SUPABASE_ANON_KEY")

    # 64 hex chars (32 bytes) for AES-GCM
    encryption_key: str = Field(default="", validation_alias="ENCRYPTION_KEY")

    intervals_base_url: str = Field(
        default="https://intervals.icu/api/v1",
        validation_alias="INTERVALS_BASE_URL",
    )
    http_timeout: float = Field(default=30.0, validation_alias="HTTP_TIMEOUT")

    anthropic_api_key: str = Field(default="", validation_alias="ANTHROPIC_API_KEY")
    anthropic_model: str = Field(default="claude-sonnet-4-20250514", validation_alias="ANTHROPIC_MODEL")
    agent_max_iterations: int = Field(default=5, validation_alias="AGENT_MAX_ITERATIONS")

    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")


settings = Settings()
