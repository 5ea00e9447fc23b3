"""
Configuration settings for Tube Service
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Literal


class Settings(BaseSettings):
    """Application settings"""

    # Application
    APP_NAME: str = "Tube Service"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # MongoDB
    MONGODB_URL: str = "mongodb://localhost:27017"
    MONGODB_DATABASE: str = "tube"

    # JWT Settings
    ACCESS_TOKEN_SECRET: str = "access-secret-change-this-in-production"
    REFRESH_TOKEN_SECRET: str = "refresh-secret-change-this-in-production"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRE_DAYS: int = 10

    # Password Settings
    PASSWORD_MIN_LENGTH: int = 6

    # Cookies
    ACCESS_TOKEN_COOKIE: str = "access_token"
    REFRESH_TOKEN_COOKIE: str = "refresh_token"
    COOKIE_SECURE: bool = True

    # S3/MinIO Storage
    STORAGE_TYPE: Literal["s3", "minio"] = "minio"
    S3_BUCKET_NAME: str = "tube-media"
    S3_ENDPOINT_URL: str = "http://localhost:9000"
    AWS_ACCESS_KEY_ID: str = ""
    AWS_SECRET_ACCESS_KEY: str = ""
    AWS_REGION: str = "us-east-1"
    MEDIA_BASE_URL: str = "http://localhost:9000/tube-media"

    # Uploads
    UPLOAD_TMP_DIR: str = "./public/temp"
    MAX_FILE_SIZE_MB: int = 500
    ALLOWED_IMAGE_EXTENSIONS: List[str] = [".jpg", ".jpeg", ".png", ".gif", ".webp"]
    ALLOWED_VIDEO_EXTENSIONS: List[str] = [".mp4", ".mov", ".avi", ".mkv", ".webm"]

    # Pagination
    DEFAULT_PAGE_SIZE: int = 10
    MAX_PAGE_SIZE: int = 100

    # CORS
    CORS_ORIGINS: List[str] = ["*"]
    CORS_ALLOW_CREDENTIALS: bool = True
    CORS_ALLOW_METHODS: List[str] = ["*"]
    CORS_ALLOW_HEADERS: List[str] = ["*"]

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")


settings = Settings()
