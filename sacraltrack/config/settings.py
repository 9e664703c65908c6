from typing import Literal, Optional
from urllib.parse import quote_plus

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseConfig(BaseSettings):
    """Database configuration"""

    host: str = "localhost"
    port: int = 5432
    username: str = "postgres"
    password: SecretStr = Field(default=SecretStr("postgres"))
    database: str = "sacraltrack"
    serverless: bool = Field(
        default=True,
        description="If true, disable connection pooling so serverless DBs can pause.",
    )

    @property
    def url(self) -> str:
        """Get database URL"""
        username = quote_plus(self.username)
        password = quote_plus(self.password.get_secret_value())
        return (
            "postgresql+asyncpg://"
            f"{username}:{password}"
            f"@{self.host}:{self.port}/{self.database}"
        )

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        env_file=".env",
        secrets_dir=".secrets",
        case_sensitive=False,
        extra="ignore",
    )


class StorageConfig(BaseSettings):
    """Object storage configuration (Appwrite or S3-compatible)."""

    backend: Literal["appwrite", "s3"] = "appwrite"
    endpoint: Optional[str] = None
    project_id: Optional[str] = None
    api_key: SecretStr | None = None
    bucket_id: Optional[str] = None
    timeout: float = Field(default=60.0, gt=0)

    # S3 only
    region: str = "us-east-1"
    access_key: Optional[str] = None
    secret_key: Optional[str] = None

    model_config = SettingsConfigDict(
        env_prefix="STORAGE_",
        env_file=".env",
        secrets_dir=".secrets",
        case_sensitive=False,
        extra="ignore",
    )


class AudioConfig(BaseSettings):
    """Audio ingestion limits and encoder parameters."""

    ffmpeg_binary: str = "ffmpeg"
    bitrate: str = "192k"
    max_duration_seconds: float = Field(default=720.0, gt=0)
    segment_seconds: int = Field(default=10, ge=1)
    max_upload_bytes: int = Field(default=200 * 1024 * 1024, ge=1)
    work_dir: Optional[str] = None

    model_config = SettingsConfigDict(
        env_prefix="AUDIO_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


class ProgressConfig(BaseSettings):
    """Upload progress hint storage."""

    store_path: str = "data/upload_progress.json"
    ttl_seconds: int = Field(default=24 * 60 * 60, ge=1)

    model_config = SettingsConfigDict(
        env_prefix="PROGRESS_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


class Settings(BaseSettings):
    """Application settings"""

    app_name: str = "Sacral Track Backend"
    app_version: str = "1.0.0"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 8000
    log_file: str = "logs/app.log"
    audio_log_file: str = "logs/audio_pipeline.log"

    # Database
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)

    # Storage
    storage: StorageConfig = Field(default_factory=StorageConfig)

    # Audio pipeline
    audio: AudioConfig = Field(default_factory=AudioConfig)

    # Progress hints
    progress: ProgressConfig = Field(default_factory=ProgressConfig)

    # CORS
    cors_origins: list[str] = ["*"]
    cors_allow_credentials: bool = True
    cors_allow_methods: list[str] = ["*"]
    cors_allow_headers: list[str] = ["*"]

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


# Global settings instance
settings = Settings()
