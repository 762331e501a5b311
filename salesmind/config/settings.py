from typing import Optional
from urllib.parse import quote_plus

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseConfig(BaseSettings):
    """Database configuration"""

    host: str = "localhost"
    port: int = 5432
    username: str = "postgres"
    password: SecretStr = Field(default=SecretStr("postgres"))
    database: str = "salesmind"
    serverless: bool = Field(
        default=True,
        description="If true, disable connection pooling so serverless DBs can pause.",
    )
    url_override: Optional[str] = Field(
        default=None,
        validation_alias="DB_URL",
        description="Full SQLAlchemy URL; takes precedence over the discrete fields.",
    )

    @property
    def url(self) -> str:
        """Get database URL"""
        if self.url_override:
            return self.url_override
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


class GeminiConfig(BaseSettings):
    """Google Gemini (generative language API) configuration."""

    api_key: SecretStr | None = Field(
        default=None,
        validation_alias="GEMINI_API_KEY",
    )
    base_url: str = Field(
        default="https://generativelanguage.googleapis.com",
        validation_alias="GEMINI_BASE_URL",
    )
    model: str = Field(
        default="gemini-2.5-flash",
        validation_alias="GEMINI_MODEL",
    )
    connect_timeout_seconds: float = Field(
        default=30.0,
        validation_alias="GEMINI_CONNECT_TIMEOUT_SECONDS",
        gt=0,
    )
    request_timeout_seconds: float = Field(
        default=300.0,
        validation_alias="GEMINI_REQUEST_TIMEOUT_SECONDS",
        gt=0,
    )
    poll_interval_seconds: float = Field(
        default=5.0,
        validation_alias="GEMINI_POLL_INTERVAL_SECONDS",
        ge=0,
    )
    poll_max_attempts: int = Field(
        default=60,
        validation_alias="GEMINI_POLL_MAX_ATTEMPTS",
        ge=1,
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        secrets_dir=".secrets",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def is_configured(self) -> bool:
        """True when an API key is available."""
        return bool(self.api_key and self.api_key.get_secret_value().strip())


class StorageConfig(BaseSettings):
    """Local audio storage configuration."""

    upload_dir: str = "uploads"
    max_file_size_bytes: int = Field(default=50 * 1024 * 1024, ge=1)
    max_upload_bytes: int = Field(
        default=60 * 1024 * 1024,
        ge=1,
        description="Ceiling for the raw multipart request body.",
    )
    retention_days: int = Field(default=30, ge=1)
    cleanup_interval_hours: float = Field(default=24.0, gt=0)

    model_config = SettingsConfigDict(
        env_prefix="STORAGE_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


class PipelineConfig(BaseSettings):
    """Background processing configuration."""

    workers: int = Field(default=4, ge=1, le=64)
    feedback_cache_ttl_seconds: float = Field(default=15 * 60, gt=0)
    cache_eviction_interval_seconds: float = Field(default=300.0, gt=0)

    model_config = SettingsConfigDict(
        env_prefix="PIPELINE_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


class SecurityConfig(BaseSettings):
    """JWT verification settings."""

    jwt_secret_key: SecretStr = Field(
        default=SecretStr("change-me"),
        validation_alias="JWT_SECRET",
    )
    jwt_algorithm: str = Field(default="HS256", validation_alias="JWT_ALGORITHM")

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


class Settings(BaseSettings):
    """Application settings"""

    app_name: str = "SalesMind API"
    app_version: str = "1.0.0"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 8080
    log_file: str = "logs/app.log"
    pipeline_log_file: str = "logs/pipeline.log"

    # Database
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)

    # Gemini
    gemini: GeminiConfig = Field(default_factory=GeminiConfig)

    # Storage
    storage: StorageConfig = Field(default_factory=StorageConfig)

    # Pipeline
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)

    # Security
    security: SecurityConfig = Field(default_factory=SecurityConfig)

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
