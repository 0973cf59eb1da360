from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PATH = Path(__file__).resolve().parent.parent / ".env.local"


class Settings(BaseSettings):
    # Environment settings
    environment: str = "development"
    debug: bool = False

    # Supabase settings
    SUPABASE_URL: str
    SUPABASE_JWKS_URL: str | None = None
    SUPABASE_SERVICE_ROLE_KEY: str
    SUPABASE_DB_URL: str

    # Shared secret expected on the scheduled sync endpoints
    CRON_SECRET: str | None = None

    # Google OAuth settings (token refresh only)
    GOOGLE_CLIENT_ID: str | None = None
    GOOGLE_CLIENT_SECRET: str | None = None

    # Request context
    TRUST_X_FORWARDED_FOR: bool = False
    TRUSTED_PROXY_IPS: list[str] = []

    # =================================================================
    # DATABASE POOL SETTINGS - Simple and configurable
    # =================================================================
    DB_POOL_MIN_SIZE: int = 3
    DB_POOL_MAX_SIZE: int = 12
    DB_POOL_TIMEOUT: float = 30.0
    DB_POOL_MAX_IDLE: float = 600.0  # 10 minutes
    DB_POOL_MAX_LIFETIME: float = 3600.0  # 1 hour

    # =================================================================
    # CALENDAR SYNC SETTINGS
    # =================================================================
    CALENDAR_SYNC_BATCH_SIZE: int = 10
    CALENDAR_SYNC_USER_DELAY_SECONDS: float = 1.0
    CALENDAR_SYNC_BATCH_DELAY_SECONDS: float = 2.0
    CALENDAR_SYNC_MAX_RESULTS: int = 250
    CONTACT_SYNC_JOB_PAGE_SIZE: int = 20
    CONTACT_SYNC_JOB_DELAY_SECONDS: float = 0.5
    CONTACT_SYNC_MAX_RESULTS: int = 500
    TOKEN_REFRESH_BUFFER_SECONDS: int = 60

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # derive sensible defaults if not provided
    def jwks_url(self) -> str:
        if self.SUPABASE_JWKS_URL:
            return self.SUPABASE_JWKS_URL
        base = self.SUPABASE_URL.rstrip("/")
        return f"{base}/auth/v1/.well-known/jwks.json"

    def cron_secret(self) -> str:
        """Secret the scheduler must present; defaults to the service-role key."""
        return self.CRON_SECRET or self.SUPABASE_SERVICE_ROLE_KEY

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
            # Sync runs are short-lived; keep the local pool small
            config.update(
                {
                    "min_size": 1,
                    "max_size": 5,
                    "timeout": 15.0,
                }
            )

        return config


settings = Settings()
