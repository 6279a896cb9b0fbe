"""
Configuration settings for the application
"""
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Normalized plan keys
PLAN_TRIAL = "trial"
PLAN_BASIC = "basic"
PLAN_PREMIUM = "premium"
PLAN_PREMIER = "premier"

# Subscription statuses
STATUS_TRIAL = "trial"
STATUS_ACTIVE = "active"
STATUS_EXPIRED = "expired"
STATUS_CANCELLED = "cancelled"
STATUS_PAYMENT_FAILED = "payment_failed"

TRIAL_DAYS = 14
TRIAL_USAGE_LIMIT = 1000
# Fallback limit when a checkout names a plan that is not in the catalogue
DEFAULT_PLAN_USAGE_LIMIT = 500
INVITATION_EXPIRY_DAYS = 7
EMAIL_VERIFICATION_EXPIRY_HOURS = 24
VERIFICATION_RESEND_COOLDOWN_SECONDS = 60
PASSWORD_RESET_EXPIRY_HOURS = 1


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    # Core authentication and security
    jwt_secret_key: Optional[str] = Field(default=None, alias="JWT_SECRET_KEY")
    jwt_expire_days: int = Field(default=7, alias="JWT_EXPIRE_DAYS")

    # Stripe billing configuration
    stripe_secret_key: Optional[str] = Field(default=None, alias="STRIPE_SECRET_KEY")
    stripe_webhook_secret: Optional[str] = Field(default=None, alias="STRIPE_WEBHOOK_SECRET")

    # Email delivery (Resend)
    resend_api_key: Optional[str] = Field(default=None, alias="RESEND_API_KEY")
    from_email: str = Field(default="noreply@motosetuppro.com", alias="FROM_EMAIL")

    # Infrastructure configuration
    database_url: Optional[str] = Field(default="sqlite+aiosqlite:///./sql_app.db", alias="DATABASE_URL")

    # Public URLs
    base_url: str = Field(default="https://motosetuppro.com", alias="BASE_URL")
    frontend_url: Optional[str] = Field(default="http://localhost:5173", alias="FRONTEND_URL")

    # Render.com deployment configuration
    render: Optional[str] = Field(default=None, alias="RENDER")
    render_external_url: Optional[str] = Field(default=None, alias="RENDER_EXTERNAL_URL")
    render_service_name: Optional[str] = Field(default=None, alias="RENDER_SERVICE_NAME")

    # Environment configuration
    env: Optional[str] = Field(default=None, alias="ENV")


# Instantiate settings object
settings = Settings()

# Determine if we're in production mode
IS_PRODUCTION = bool(settings.render) or bool(settings.env and settings.env.lower() == "production")
