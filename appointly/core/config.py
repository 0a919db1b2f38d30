# appointly/core/config.py

from pydantic_settings import BaseSettings, SettingsConfigDict
import urllib.parse

STAFFLESS_MODES = ("per_service", "unconstrained")


class Settings(BaseSettings):
    # Read env from .env; ignore unknown keys so extra lines don't crash startup
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # --- Postgres ---
    DATABASE_URL: str | None = None  # full async URL, wins over POSTGRES_*
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "appointly"
    POSTGRES_USER: str = "appointly"
    POSTGRES_PASSWORD: str = ""
    # Local development without Alembic: create tables on startup
    AUTO_CREATE_TABLES: bool = False

    # --- Security ---
    APP_API_KEY: str | None = None

    # --- Booking engine policy ---
    STAFFLESS_CAPACITY_MODE: str = "per_service"
    DEFAULT_SLOT_WINDOW_DAYS: int = 30
    MAX_SLOT_WINDOW_DAYS: int = 62
    ROTATE_TOKEN_ON_RESCHEDULE: bool = False
    REMINDER_LEAD_HOURS: int = 24

    # --- Reminder queue ---
    REDIS_URL: str | None = None

    # --- Payments (Stripe Checkout) ---
    STRIPE_SECRET_KEY: str | None = None
    STRIPE_API_BASE: str = "https://api.stripe.com"
    PAYMENT_SUCCESS_URL: str = "http://localhost:3000/booking/success"
    PAYMENT_CANCEL_URL: str = "http://localhost:3000/booking/cancelled"
    PAYMENT_TIMEOUT_SECONDS: float = 10.0

    # --- Monitoring & Logging ---
    APP_ENV: str = "production"
    LOG_LEVEL: str = "INFO"
    LOG_REQUESTS: bool = False
    LOG_RESPONSES: bool = False
    MAX_LOG_LENGTH: int = 200
    SLOW_REQUEST_THRESHOLD: float = 2.0
    ERROR_AGGREGATION_THRESHOLD: int = 10

    # Async URI, used by both the engine and Alembic
    @property
    def async_db_uri(self) -> str:
        if self.DATABASE_URL:
            url = self.DATABASE_URL
            # Hosted providers hand out plain postgres:// URLs
            for prefix in ("postgres://", "postgresql://"):
                if url.startswith(prefix):
                    return "postgresql+asyncpg://" + url[len(prefix):]
            return url
        pwd = urllib.parse.quote_plus(self.POSTGRES_PASSWORD)
        return f"postgresql+asyncpg://{self.POSTGRES_USER}:{pwd}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    @property
    def staffless_mode(self) -> str:
        mode = self.STAFFLESS_CAPACITY_MODE.strip().lower()
        if mode not in STAFFLESS_MODES:
            raise ValueError(
                f"STAFFLESS_CAPACITY_MODE must be one of {', '.join(STAFFLESS_MODES)}"
            )
        return mode

    @property
    def payments_enabled(self) -> bool:
        return bool(self.STRIPE_SECRET_KEY)

    # Monitoring helpers
    @property
    def is_development(self) -> bool:
        return self.APP_ENV.lower() in ("development", "dev", "local")


# Singleton
settings = Settings()
