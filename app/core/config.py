from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    ENV: str = "local"
    APP_NAME: str = "Hotel Booking API"
    # Comma-separated origins for CORS. If empty, uses localhost defaults.
    CORS_ORIGINS: str = ""
    LOG_LEVEL: str = "INFO"

    SECRET_KEY: str
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    DATABASE_URL: str

    @field_validator("DATABASE_URL", mode="after")
    @classmethod
    def normalize_database_url(cls, v: str) -> str:
        """Render and others give postgres://; SQLAlchemy expects postgresql+psycopg2://."""
        if v and v.startswith("postgres://"):
            return "postgresql+psycopg2://" + v[11:]
        return v

    # Payment processor (Stripe-compatible REST API)
    PAYMENT_API_BASE: str = "https://api.stripe.com"
    PAYMENT_SECRET_KEY: str = ""
    PAYMENT_PUBLISHABLE_KEY: str = ""
    PAYMENT_WEBHOOK_SECRET: str = ""
    PAYMENT_CURRENCY: str = "usd"
    PAYMENT_TIMEOUT_SECONDS: float = 10.0
    PAYMENT_WEBHOOK_TOLERANCE_SECONDS: int = 300
    PAYMENT_SANDBOX: bool = False  # If True, skip real processor calls and return mock intents (dev only)

    # Booking policy
    CANCELLATION_CUTOFF_DAYS: int = 7
    ADMINS_MAY_BOOK: bool = False  # business rule: admins neither book nor review unless enabled


settings = Settings()
