"""
Campus Fix - Configuration Management
Centralized configuration using pydantic-settings.
"""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from campusfix.core.constants import RADAR_TRACK_URL


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_env: str = "development"
    debug: bool = True
    log_level: str = "INFO"

    # Campus geofence (local radius strategy)
    campus_center_latitude: float = 12.8231
    campus_center_longitude: float = 80.0442
    campus_radius_meters: float = 1000.0

    # Remote geofence service (Radar-style track API)
    geofence_api_url: str = RADAR_TRACK_URL
    geofence_api_key: Optional[str] = None
    geofence_zone_id: str = "campus"
    geofence_timeout_seconds: float = 10.0
    geofence_fallback_to_local: bool = False
    location_timeout_seconds: float = 10.0

    # Image validation oracle
    image_validation_url: Optional[str] = None
    image_validation_api_key: Optional[str] = None
    image_validation_timeout_seconds: float = 15.0
    image_validation_fail_open: bool = False

    # Report rules
    require_subcategory: bool = True

    # Database
    database_url: str = "sqlite:///./campusfix.db"

    # Blob storage (local directory, or Supabase storage when configured)
    storage_dir: str = "./uploads"
    storage_public_base_url: str = "http://localhost:8000/uploads"
    supabase_url: Optional[str] = None
    supabase_service_key: Optional[str] = None
    issue_images_bucket: str = "issue-images"

    # Email (SMTP)
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    smtp_user: Optional[str] = None
    smtp_password: Optional[str] = None
    maintenance_email: Optional[str] = None

    # API Settings
    api_host: str = "0.0.0.0"
    api_port: int = 8000

    @property
    def remote_geofence_enabled(self) -> bool:
        return bool(self.geofence_api_key)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()
