"""
Configuration management for the Identity Service
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Literal, Optional


class Settings(BaseSettings):
    """Identity Service configuration loaded from environment variables"""

    # Server Configuration
    LOG_LEVEL: str = "INFO"
    DEV_MODE: bool = False
    REQUEST_TIMEOUT_SECONDS: float = 10.0

    # Database Configuration
    DATABASE_URL: str = "sqlite:///./identity.db"
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10

    # Token Signing
    TOKEN_SECRET: str = "change-this-secret-in-prod-0123456789abcdef"
    TOKEN_KEY_ID: str = "primary"
    TOKEN_PREVIOUS_SECRET: Optional[str] = None
    TOKEN_PREVIOUS_KEY_ID: str = "previous"
    TOKEN_ALGORITHM: str = "HS256"
    TOKEN_TTL_MINUTES: int = 60
    TOKEN_ISSUER: Optional[str] = None
    TOKEN_LEEWAY_SECONDS: int = 30

    # Auth Event Publication
    EVENT_PUBLISH_MODE: Literal["outbox", "fail_closed"] = "outbox"
    EVENT_SUBSCRIBER_URLS: List[str] = []
    EVENT_PUBLISH_TIMEOUT_SECONDS: float = 5.0
    EVENT_MAX_ATTEMPTS: int = 5
    EVENT_DISPATCH_BATCH_SIZE: int = 100

    # CORS Configuration
    CORS_ORIGINS: List[str] = ["*"]

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True
    )


# Global settings instance
settings = Settings()
