"""
Application settings and configuration management
Uses pydantic-settings for type-safe environment variable handling
"""

import os
from pathlib import Path
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, computed_field
from dotenv import load_dotenv

# Ensure .env is loaded before Settings initialization
# Path resolution: app/config/settings.py -> app/config/ -> app/ -> project_root/
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
ENV_PATH = PROJECT_ROOT / ".env"

if ENV_PATH.exists():
    load_dotenv(dotenv_path=ENV_PATH, override=False)
else:
    load_dotenv(override=False)


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables
    Field names map case-insensitively to environment variables
    (openai_api_key <- OPENAI_API_KEY)
    """

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH) if ENV_PATH.exists() else str(Path.cwd() / ".env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # OpenAI Configuration
    openai_api_key: str = Field(default="")
    openai_model: str = Field(default="gpt-3.5-turbo")
    oracle_temperature: float = Field(default=0.3)
    oracle_timeout_seconds: float = Field(default=10.0, gt=0)

    # Supabase Configuration
    supabase_url: str = Field(default="")
    supabase_service_key: str = Field(default="")

    # Storage Configuration: "supabase" or "memory"
    storage_type: str = Field(default="supabase")
    store_timeout_seconds: float = Field(default=10.0, gt=0)

    # Backend Configuration
    backend_port: int = Field(default=8000)
    environment: str = Field(default="development")
    frontend_url: Optional[str] = Field(default=None)

    # Auth & Security
    jwt_secret: Optional[str] = Field(default=None)
    jwt_algorithm: str = Field(default="HS256")
    access_token_expire_minutes: int = Field(default=60 * 24)

    # Logging Configuration
    log_level: str = Field(default="INFO")

    # Interview & Analytics
    history_limit: int = Field(default=10, ge=1)
    trend_window_days: int = Field(default=30, ge=1)
    analytics_retry_attempts: int = Field(default=3, ge=1)
    analytics_retry_delay_seconds: float = Field(default=0.5, ge=0)

    # CORS Configuration - Use computed field to avoid pydantic-settings JSON parsing
    @computed_field
    @property
    def cors_origins(self) -> list[str]:
        """Get CORS origins as a list, parsing from environment variable"""
        cors_val = os.getenv('CORS_ORIGINS')

        if cors_val:
            cors_val = cors_val.rstrip('`').strip()
            if cors_val:
                parsed = [origin.strip() for origin in cors_val.split(",") if origin.strip()]
                if parsed:
                    return parsed

        # Common development ports
        return [
            "http://localhost:3000",
            "http://127.0.0.1:3000",
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ]


# Create global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get application settings instance"""
    return settings


def get_cors_origins() -> list[str]:
    """
    Get CORS allowed origins
    Adds FRONTEND_URL and removes duplicates while preserving order
    """
    origins = list(settings.cors_origins) if settings.cors_origins else []

    if settings.frontend_url:
        origins.append(settings.frontend_url)

    seen = set()
    unique_origins = []
    for origin in origins:
        if origin not in seen:
            seen.add(origin)
            unique_origins.append(origin)

    if not unique_origins and settings.environment == "development":
        return ["*"]

    return unique_origins
