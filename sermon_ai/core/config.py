"""
Configuration management using Pydantic Settings.
"""
from typing import Optional, Literal
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True
    )

    # Application Configuration
    app_name: str = Field(default="sermon-ai", alias="APP_NAME")
    app_host: str = Field(default="0.0.0.0", alias="APP_HOST")
    app_port: int = Field(default=8000, alias="APP_PORT")
    app_env: Literal["development", "production", "testing"] = Field(
        default="development", alias="APP_ENV"
    )
    app_debug: bool = Field(default=False, alias="APP_DEBUG")

    # Database Configuration
    database_type: Literal["sqlite", "mysql", "postgresql"] = Field(
        default="sqlite", alias="DATABASE_TYPE"
    )
    database_url: str = Field(
        default="sqlite+aiosqlite:///./data/sermon_ai.db",
        alias="DATABASE_URL"
    )

    # Redis Configuration (persisted provider selection)
    redis_enabled: bool = Field(default=False, alias="REDIS_ENABLED")
    redis_url: str = Field(default="redis://localhost:6379/0", alias="REDIS_URL")

    # Logging Configuration
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_file: str = Field(default="./logs/app.log", alias="LOG_FILE")
    log_format: Literal["json", "text"] = Field(default="json", alias="LOG_FORMAT")

    # Provider credentials (read once at startup)
    megallm_api_key: Optional[str] = Field(default=None, alias="MEGALLM_API_KEY")
    megallm_base_url: str = Field(
        default="https://ai.megallm.io/v1", alias="MEGALLM_BASE_URL"
    )
    megallm_model: str = Field(default="gpt-4o-mini", alias="MEGALLM_MODEL")

    openrouter_api_key: Optional[str] = Field(default=None, alias="OPENROUTER_API_KEY")
    openrouter_base_url: str = Field(
        default="https://openrouter.ai/api/v1", alias="OPENROUTER_BASE_URL"
    )
    openrouter_model: str = Field(
        default="openai/gpt-4o-mini", alias="OPENROUTER_MODEL"
    )
    openrouter_referer: Optional[str] = Field(default=None, alias="OPENROUTER_REFERER")

    gemini_api_key: Optional[str] = Field(default=None, alias="GEMINI_API_KEY")
    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com", alias="GEMINI_BASE_URL"
    )
    gemini_model: str = Field(default="gemini-2.5-flash", alias="GEMINI_MODEL")

    # Orchestration
    default_provider: str = Field(default="megallm", alias="DEFAULT_PROVIDER")
    comparison_providers: list[str] = Field(
        default_factory=lambda: ["megallm", "openrouter"],
        alias="COMPARISON_PROVIDERS"
    )
    # None keeps provider calls unbounded
    provider_timeout: Optional[float] = Field(default=None, alias="PROVIDER_TIMEOUT")
    metrics_window_days: int = Field(default=7, alias="METRICS_WINDOW_DAYS")

    # CORS Configuration
    cors_origins: str = Field(default="*", alias="CORS_ORIGINS")

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.app_env == "development"

    @property
    def cors_origins_list(self) -> list[str]:
        """Get CORS origins as a list."""
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def host(self) -> str:
        return self.app_host

    @property
    def port(self) -> int:
        return self.app_port

    @property
    def debug(self) -> bool:
        return self.app_debug

    @property
    def environment(self) -> str:
        return self.app_env


# Global settings instance
settings = Settings()

