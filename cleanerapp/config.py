"""Application configuration using Pydantic Settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Hosted backend (auth, REST data, storage)
    SUPABASE_URL: str
    SUPABASE_ANON_KEY: str
    HTTP_TIMEOUT: float = 30.0

    # Relational store: 'rest' (hosted backend) or 'sql' (direct database)
    STORE_BACKEND: str = "rest"
    DATABASE_URL: str = "sqlite:///./cleanerapp.db"

    # Photo storage
    PHOTO_BUCKET: str = "photos"
    PHOTO_SIGNED_URLS: bool = False  # True when the bucket is private
    SIGNED_URL_TTL: int = 3600
    HEIC_JPEG_QUALITY: int = 90
    UPLOAD_TMP_DIR: str = ""  # Empty means the system temp dir

    # Accounts
    PASSWORD_MIN_LENGTH: int = 8
    RESET_REDIRECT_URL: str = "cleanerapp://reset-password"

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True)


# Global settings instance
settings = Settings()
