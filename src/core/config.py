"""
Application Configuration

Centralized settings management using Pydantic Settings.
Supports environment variables and .env files.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # ==========================================================================
    # App Settings
    # ==========================================================================
    APP_NAME: str = "Transparent WebP Conversion Service"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"  # development, staging, PROD
    DEBUG: bool = True

    # ==========================================================================
    # Storage Settings (The Bridge Pattern)
    # ==========================================================================
    # "local" writes buckets as folders under LOCAL_STORAGE_PATH, "s3" uses AWS
    STORAGE_BACKEND: str = "local"
    LOCAL_STORAGE_PATH: str = "./data/storage"

    # S3 credentials are supplied out of band
    AWS_ACCESS_KEY: Optional[str] = None
    AWS_SECRET_KEY: Optional[str] = None
    AWS_REGION: str = "ap-southeast-2"

    # ==========================================================================
    # Existence Check
    # ==========================================================================
    # CDN probe is skipped unless a base URL is configured
    CDN_BASE_URL: Optional[str] = None

    # ==========================================================================
    # Timeouts (seconds)
    # ==========================================================================
    DOWNLOAD_TIMEOUT_SECONDS: float = 30.0
    CDN_TIMEOUT_SECONDS: float = 10.0
    STORAGE_TIMEOUT_SECONDS: float = 30.0

    # ==========================================================================
    # Conversion Settings
    # ==========================================================================
    GREYSCALE_THRESHOLD: float = 0.001

    # ==========================================================================
    # Logging Settings
    # ==========================================================================
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT_JSON: bool = True  # JSON for production, console for development

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"


# Global settings instance
settings = Settings()
