"""
Environment configuration for the approval chain engine.
Uses Pydantic's settings management to handle environment variables
with proper type validation and default values.
"""

from typing import List, Optional
from pathlib import Path
from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from dotenv import load_dotenv

# Load environment variables from .env file if it exists
env_path = Path('.') / '.env'
load_dotenv(dotenv_path=env_path)


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
        populate_by_name=True,
    )

    # Application configuration
    APP_NAME: str = Field(default="Approval Chain Engine", alias="PROJECT_NAME")
    API_VERSION: str = Field(default="v1", alias="PROJECT_VERSION")
    API_V1_STR: str = "/api/v1"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"
    CORS_ORIGINS: List[str] = ["*"]

    # Database configuration
    DATABASE_URL: str = "sqlite+aiosqlite:///./approval_engine.db"
    DB_ECHO: bool = False
    DB_POOL_PRE_PING: bool = True

    # Redis (rate limiting)
    REDIS_URL: str = Field(default="redis://localhost:6379/0", alias="REDIS_URL")
    WEBHOOK_RATE_LIMIT: int = 100
    WEBHOOK_RATE_PERIOD_SECONDS: int = 60

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"
    ENABLE_STRUCTURED_LOGGING: bool = True
    LOG_SQL_QUERIES: bool = False

    # Action tokens
    ACTION_TOKEN_SIGNING_KEY: Optional[str] = Field(default=None, alias="WHATSAPP_ENCRYPTION_KEY")
    ACTION_TOKEN_TTL_MINUTES: int = 15
    ACTION_TOKEN_SIGNATURE_LENGTH: int = 16
    USED_TOKEN_RETENTION_HOURS: int = 24

    # Secrets
    CHANNEL_ENCRYPTION_KEY: Optional[str] = None
    SESSION_SECRET: Optional[str] = Field(default=None, alias="NEXTAUTH_SECRET")
    CRON_SECRET: Optional[str] = None

    # WhatsApp Cloud API
    WHATSAPP_API_BASE_URL: str = "https://graph.facebook.com"
    WHATSAPP_API_VERSION: str = "v18.0"
    WHATSAPP_REQUEST_TIMEOUT: float = 15.0
    WHATSAPP_APP_SECRET: Optional[str] = None
    WHATSAPP_DEFAULT_COUNTRY_CODE: str = "+974"
    WHATSAPP_FALLBACK_COUNTRY_CODE: str = "+91"
    WHATSAPP_TEMPLATE_LANGUAGE: str = "en"

    # Business logic
    DEFAULT_CURRENCY: str = "QAR"

    # Validators
    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level: {v}")
        return level

    @field_validator("LOG_FORMAT")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        fmt = v.lower()
        if fmt not in {"json", "text"}:
            raise ValueError(f"Invalid log format: {v}")
        return fmt

    @field_validator("ACTION_TOKEN_TTL_MINUTES", "ACTION_TOKEN_SIGNATURE_LENGTH")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Value must be positive")
        return v

    # Helper methods
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    def whatsapp_api_url(self) -> str:
        """Base URL for versioned Graph API calls."""
        return f"{self.WHATSAPP_API_BASE_URL.rstrip('/')}/{self.WHATSAPP_API_VERSION}"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
