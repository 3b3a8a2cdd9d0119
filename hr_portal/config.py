from pydantic_settings import BaseSettings
from pydantic import field_validator
from typing import Optional
from functools import lru_cache
import json


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./hr_portal.db"

    # JWT Settings
    SECRET_KEY: str = "change-me-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 480  # One working day

    # App Settings
    APP_NAME: str = "HR Portal"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # CORS - accepts JSON string, comma-separated, or list
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://localhost:9002",
    ]

    # Main admin account (co-admins live in storage)
    ADMIN_USERNAME: str = "admin"
    ADMIN_PASSWORD: str = "admin123"

    # Company defaults used when the remote config is unreachable
    COMPANY_NAME_DEFAULT: str = "HR Portal"
    COMPANY_LOGO_DEFAULT: str = ""

    # Spreadsheet sync endpoint
    SYNC_ENABLED: bool = False
    SYNC_ENDPOINT_URL: Optional[str] = None
    SYNC_INTERVAL_SECONDS: int = 20
    SYNC_STARTUP_DELAY_SECONDS: float = 1.5
    SYNC_TIMEOUT_SECONDS: float = 30.0

    # Dashboard
    RECENT_ACTIVITY_LIMIT: int = 20

    @field_validator('CORS_ORIGINS', mode='before')
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [origin.strip() for origin in v.split(',') if origin.strip()]
        return v

    @property
    def cors_origins_list(self) -> list[str]:
        return list(self.CORS_ORIGINS)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
