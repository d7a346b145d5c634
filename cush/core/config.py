"""
cush/core/config.py

Purpose: Application configuration

- Loads environment variables
- Centralizes config values (Redis URL, secrets, partner API keys)
- Validates configuration on startup
- Environment-specific settings
"""

from pydantic import Field, field_validator, ValidationInfo
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, Literal


DEFAULT_SECRET_KEY = "change-me-in-production"


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Validates all required configs on startup.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Environment
    ENVIRONMENT: Literal["development", "staging", "production"] = "development"

    # Key-value store
    REDIS_URL: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URI"
    )
    REDIS_FALLBACK_ENABLED: bool = Field(
        default=True,
        description="Use a process-local store when Redis is unreachable at startup"
    )
    FALLBACK_DEFAULT_TTL_SECONDS: Optional[int] = Field(
        default=None,
        description="TTL applied to fallback entries written without an explicit expiry"
    )

    # Sessions & credentials
    SECRET_KEY: str = Field(
        default=DEFAULT_SECRET_KEY,
        description="Secret used to sign session tokens"
    )
    SESSION_MAX_AGE_DAYS: int = Field(
        default=30,
        description="Session token lifetime in days"
    )
    SESSION_COOKIE_NAME: str = Field(
        default="cush.session-token",
        description="Cookie carrying the session token"
    )
    BCRYPT_ROUNDS: int = Field(
        default=12,
        description="bcrypt cost factor for new password hashes"
    )
    REQUIRE_EMAIL_VERIFICATION: bool = Field(
        default=False,
        description="Refuse sign-in until the account email is verified"
    )
    VERIFICATION_TOKEN_TTL_SECONDS: int = Field(
        default=24 * 60 * 60,
        description="Email verification link lifetime"
    )
    ADMIN_SETUP_KEY: Optional[str] = Field(
        default=None,
        description="Shared secret required to bootstrap the first admin"
    )

    # Stripe
    STRIPE_SECRET_KEY: Optional[str] = Field(default=None, description="Stripe secret API key")
    STRIPE_WEBHOOK_SECRET: Optional[str] = Field(default=None, description="Stripe webhook signing secret")
    STRIPE_WEBHOOK_TOLERANCE_SECONDS: int = Field(
        default=300,
        description="Maximum accepted age of a signed webhook event"
    )

    # AstroPay
    ASTROPAY_API_KEY: Optional[str] = Field(default=None, description="AstroPay API key")
    ASTROPAY_MERCHANT_ID: Optional[str] = Field(default=None, description="AstroPay merchant ID")
    ASTROPAY_API_URL: str = Field(default="https://api.astropay.com/v1", description="AstroPay base URL")

    # Email (Resend)
    RESEND_API_KEY: Optional[str] = Field(default=None, description="Resend API key; email is skipped when unset")
    EMAIL_FROM: str = Field(default="Cush <noreply@cushfinance.com>", description="Default sender")

    # AI assistant
    OPENAI_API_KEY: Optional[str] = Field(default=None, description="OpenAI API key for the Imisi assistant")
    OPENAI_MODEL: str = Field(default="gpt-4o", description="Chat completion model")

    # Documents
    UPLOAD_DIR: str = Field(default="uploads", description="Directory for uploaded documents")
    MAX_UPLOAD_BYTES: int = Field(default=10 * 1024 * 1024, description="Maximum document size")

    # Application
    APP_URL: str = Field(
        default="http://localhost:3000",
        description="Public base URL used in email links"
    )
    HTTP_TIMEOUT_SECONDS: float = Field(
        default=15.0,
        description="Timeout for outbound partner API calls"
    )
    DEBUG: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    CORS_ORIGINS: list = Field(
        default=["*"],
        description="Allowed CORS origins"
    )

    @field_validator("SECRET_KEY")
    @classmethod
    def validate_secret_key(cls, v: str, info: ValidationInfo) -> str:
        """Ensure secret key is changed in production."""
        if info.data.get("ENVIRONMENT") == "production" and v == DEFAULT_SECRET_KEY:
            raise ValueError("SECRET_KEY must be changed in production environment")
        return v

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENVIRONMENT == "production"


# Global settings instance
settings = Settings()


def validate_settings():
    """
    Validates critical settings on application startup.
    Raises ValueError if any required setting is missing or invalid.
    """
    errors = []

    if not settings.REDIS_URL:
        errors.append("REDIS_URL is required")

    if settings.SESSION_MAX_AGE_DAYS <= 0:
        errors.append("SESSION_MAX_AGE_DAYS must be positive")

    # Production-specific validations
    if settings.is_production:
        if not settings.STRIPE_SECRET_KEY:
            errors.append("STRIPE_SECRET_KEY is required in production")
        if not settings.STRIPE_WEBHOOK_SECRET:
            errors.append("STRIPE_WEBHOOK_SECRET is required in production")

    if errors:
        raise ValueError(f"Configuration validation failed: {', '.join(errors)}")

    return True
