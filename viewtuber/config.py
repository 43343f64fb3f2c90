"""Configuration settings for the collaboration API."""
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    app_env: str = "dev"
    log_level: str = "INFO"
    # Used to build invitation deep links
    base_url: str = "http://localhost:3000"

    # MongoDB
    mongo_uri: str = "mongodb://mongo:27017"
    mongo_db: str = "viewtuber"

    # Session tokens
    jwt_secret: str = "dev-secret"
    jwt_ttl_min: int = 720  # 12h default

    # Object storage
    aws_region: str = "us-east-1"
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None
    s3_bucket_name: str = "viewtuber-videos"
    presign_ttl_seconds: int = 3600
    presign_workers: int = 8

    # Email (Resend)
    resend_api_key: Optional[str] = None
    resend_api_url: str = "https://api.resend.com/emails"
    email_from: str = "Viewtuber <support@clikit.live>"

    # Google / YouTube
    google_client_id: Optional[str] = None
    google_client_secret: Optional[str] = None
    google_token_url: str = "https://oauth2.googleapis.com/token"
    youtube_api_url: str = "https://www.googleapis.com/youtube/v3"
    youtube_upload_url: str = "https://www.googleapis.com/upload/youtube/v3/videos"
    credential_refresh_skew_seconds: int = 60

    invite_ttl_seconds: int = 3600

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


# Global settings instance
settings = Settings()
