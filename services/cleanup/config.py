"""
Application configuration via pydantic-settings.
All config read from environment variables with sensible defaults for local dev.
"""

from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    # App
    app_name: str = "paddle-cleanup-api"
    app_version: str = "0.1.0"
    environment: str = Field(default="development", pattern=r"^(development|staging|production|test)$")
    debug: bool = False

    # CORS
    cors_origins: list[str] = Field(
        default=["http://localhost:8081", "http://localhost:19006"]
    )

    # Sentry
    sentry_dsn: str = ""
    sentry_traces_sample_rate: float = Field(default=0.1, ge=0.0, le=1.0)

    # Google Cloud / Firebase
    gcp_project_id: str = ""
    trips_collection: str = "paddleTrips"
    storage_bucket: str = ""
    trip_images_prefix: str = "tripImages"

    # Firebase Auth REST
    firebase_api_key: str = ""
    auth_timeout_s: float = 10.0

    # Trip list
    search_debounce_s: float = Field(default=0.25, gt=0.0)
    subscription_health_interval_s: float = Field(default=5.0, gt=0.0)

    # Cover uploads
    max_cover_bytes: int = 10 * 1024 * 1024  # 10MB

    model_config = {"env_prefix": "", "env_file": ".env", "extra": "ignore"}


settings = Settings()
