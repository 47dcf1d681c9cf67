from pydantic_settings import BaseSettings
from functools import lru_cache

from app.schemas.escalation import EscalationThresholds


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "EaglePass Hall Pass Service"
    DEBUG: bool = False
    ENV: str = "production"

    # Server
    PORT: int = 8000

    # Database
    DATABASE_URL: str = "postgresql+asyncpg://hallpass_user:change_me@db:5432/hallpass_db"
    DATABASE_URL_SYNC: str = "postgresql://hallpass_user:change_me@db:5432/hallpass_db"

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS_ORIGINS string into a list of origins."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    # Escalation defaults (minutes), used when no student/location/group override exists
    DEFAULT_WARNING_THRESHOLD_MINUTES: int = 10
    DEFAULT_ALERT_THRESHOLD_MINUTES: int = 20

    @property
    def default_thresholds(self) -> EscalationThresholds:
        """Global fallback thresholds."""
        return EscalationThresholds(
            warning=self.DEFAULT_WARNING_THRESHOLD_MINUTES,
            alert=self.DEFAULT_ALERT_THRESHOLD_MINUTES,
        )

    # Escalation monitor
    ESCALATION_MONITOR_ENABLED: bool = True
    ESCALATION_CHECK_INTERVAL_SECONDS: float = 60.0
    ESCALATION_MAX_CONCURRENT_CHECKS: int = 10

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
