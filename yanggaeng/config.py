"""Application configuration using pydantic-settings."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    API_KEY: str = "changeme"
    FIREBASE_CREDENTIALS: str = ""
    ALLOWED_ORIGINS: str = "http://localhost:3000,http://localhost:8080"
    RATE_LIMIT: str = "100/minute"
    DEBUG: bool = False

    NOTIFICATION_PAGE_SIZE: int = 50
    REMINDER_GRACE_MINUTES: int = 30
    ACTIVE_SUPPRESSION_MINUTES: int = 5
    INACTIVITY_REMINDER_HOURS: int = 12

    @property
    def allowed_origins_list(self) -> list[str]:
        """Parse comma-separated origins into a list."""
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",")]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
