from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PATH = Path(__file__).resolve().parent.parent / ".env.local"


class Settings(BaseSettings):
    # Environment settings
    environment: str = "development"
    debug: bool = False
    LOG_LEVEL: str = "INFO"

    # Postgres settings
    DATABASE_URL: str = "postgresql://localhost:5432/screening"

    # Screening provider (Western Verify / DigitalDelve SSO listener)
    SCREENING_PROVIDER_URL: str = "https://secure.westernverify.com/listeners/sso.cfm"
    SCREENING_PROVIDER_TIMEOUT_SECONDS: float = 30.0
    SCREENING_PROVIDER_CALL_INTERVAL_SECONDS: float = 1.0

    # 64 hex characters (AES-256 key) shared with the account-settings flow
    SCREENING_CREDENTIALS_KEY: str | None = None

    # Screening poller schedule
    SCREENING_POLLER_ENABLED: bool = True
    SCREENING_POLL_INTERVAL_SECONDS: float = 3600.0  # 1 hour
    SCREENING_POLL_INITIAL_DELAY_SECONDS: float = 300.0  # 5 minutes after startup

    # Email (Resend)
    RESEND_API_KEY: str | None = None
    EMAIL_FROM_ADDRESS: str = "support@leaseshieldapp.com"
    EMAIL_FROM_NAME: str = "LeaseShield App"
    APP_BASE_URL: str = "https://leaseshieldapp.com"

    # Admin / cron triggers
    CRON_SECRET: str | None = None
    LEGISLATIVE_MONITORING_URL: str | None = None
    LEGISLATIVE_MONITORING_TIMEOUT_SECONDS: float = 600.0

    # =================================================================
    # DATABASE POOL SETTINGS
    # =================================================================
    DB_POOL_MIN_SIZE: int = 2
    DB_POOL_MAX_SIZE: int = 8
    DB_POOL_TIMEOUT: float = 30.0
    DB_POOL_MAX_IDLE: float = 600.0  # 10 minutes
    DB_POOL_MAX_LIFETIME: float = 3600.0  # 1 hour

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def app_url(self, path: str) -> str:
        """Build an absolute URL into the web app for email links."""
        base = self.APP_BASE_URL.rstrip("/")
        if not path.startswith("/"):
            path = f"/{path}"
        return f"{base}{path}"

    def get_db_pool_config(self) -> dict:
        """
        Get database pool configuration.
        Adjust environment-specific settings based on self.environment.
        """
        config = {
            "min_size": self.DB_POOL_MIN_SIZE,
            "max_size": self.DB_POOL_MAX_SIZE,
            "timeout": self.DB_POOL_TIMEOUT,
            "max_idle": self.DB_POOL_MAX_IDLE,
            "max_lifetime": self.DB_POOL_MAX_LIFETIME,
        }

        if self.environment == "development":
            # The poller is the only heavy user; keep local pools small
            config.update(
                {
                    "min_size": 1,
                    "max_size": 4,
                    "timeout": 15.0,
                }
            )

        return config


settings = Settings()
