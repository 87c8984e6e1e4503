"""Application configuration and settings management.

This module defines the application settings loaded from environment
variables and provides helper functions for accessing cached settings
and email configuration.
"""

from functools import lru_cache
from typing import List

from fastapi_mail import ConnectionConfig
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables.

    Attributes:
        DATABASE_URL: Database connection string.
        SECRET_KEY: Secret key used for JWT signing.
        ALGORITHM: Algorithm used to encode JWT tokens.
        ACCESS_TOKEN_EXPIRE_MINUTES: Access token lifetime in minutes.
        REFRESH_TOKEN_EXPIRE_MINUTES: Refresh token lifetime in minutes.
        ALLOWED_ORIGINS: Allowed origins for CORS.
        REDIS_URL: Redis connection URL for rate limiting.
        SERVICE_ROLE_KEY: Shared secret identifying the trusted service actor.
            Service access is disabled while it is unset.
        ADMIN_TOKEN_TTL_DAYS: Default lifetime of admin registration tokens.
        TRASH_RETENTION_DAYS: Age after which trashed entries may be purged.
        ALLOW_PUBLIC_TOKEN_LOOKUP: Let anonymous callers read admin token
            metadata before registering.
        CONTACT_RATE_LIMIT_TIMES: Contact submissions allowed per window.
        CONTACT_RATE_LIMIT_SECONDS: Length of the contact rate limit window.
        LOG_LEVEL: Root logging level.
        SMTP_FROM_EMAIL: Sender email address for outgoing emails.
        SMTP_USER: SMTP username.
        SMTP_PASSWORD: SMTP password.
        SMTP_PORT: SMTP server port.
        SMTP_HOST: SMTP server host.
        BASE_URL: Base URL of the web application.
    """

    DATABASE_URL: str = "sqlite:///./sistahology.db"
    SECRET_KEY: str = "dev-secret"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30
    REFRESH_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7
    ALLOWED_ORIGINS: List[str] = ["*"]
    REDIS_URL: str = "redis://redis:6379"
    SERVICE_ROLE_KEY: str | None = None
    ADMIN_TOKEN_TTL_DAYS: int = 7
    TRASH_RETENTION_DAYS: int = 30
    ALLOW_PUBLIC_TOKEN_LOOKUP: bool = False
    CONTACT_RATE_LIMIT_TIMES: int = 5
    CONTACT_RATE_LIMIT_SECONDS: int = 60
    LOG_LEVEL: str = "INFO"
    SMTP_FROM_EMAIL: str = "noreply@sistahology.com"
    SMTP_USER: str = "user"
    SMTP_PASSWORD: str = "password"
    SMTP_PORT: int = 1025
    SMTP_HOST: str = "localhost"
    BASE_URL: str = "http://localhost:5173"

    class Config:
        """Pydantic configuration for loading environment variables."""

        env_file = ".env"
        extra = "allow"


@lru_cache()
def get_settings() -> Settings:
    """Return cached application settings.

    The settings object is cached to prevent reloading environment
    variables multiple times during application lifetime.
    """

    return Settings()


def get_mail_config() -> ConnectionConfig:
    """Create and return email configuration for FastAPI-Mail.

    Returns:
        ConnectionConfig: Configured email connection settings.
    """

    settings = get_settings()
    return ConnectionConfig(
        MAIL_USERNAME=settings.SMTP_USER,
        MAIL_PASSWORD=settings.SMTP_PASSWORD,
        MAIL_FROM=settings.SMTP_FROM_EMAIL,
        MAIL_PORT=settings.SMTP_PORT,
        MAIL_SERVER=settings.SMTP_HOST,
        MAIL_STARTTLS=False,
        MAIL_SSL_TLS=False,
        USE_CREDENTIALS=True,
    )
