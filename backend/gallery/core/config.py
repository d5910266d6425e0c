"""
Profile Gallery Application Configuration

Configuration management with environment variable support.
Implements secure defaults and validation for all settings.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from typing import List
from functools import lru_cache
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Settings(BaseSettings):
    """Application settings with validation and secure defaults."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=True, extra="ignore"
    )

    # Environment settings
    ENVIRONMENT: str = Field(
        default="development", description="Application environment"
    )
    SERVICE_NAME: str = Field(
        default="profile-gallery-api", description="Service name for logs and traces"
    )
    SERVICE_VERSION: str = Field(default="1.0.0", description="Service version")

    # Database configuration
    DATABASE_URL: str = Field(
        ...,
        description="Database connection URL with async driver",
    )
    DATABASE_POOL_SIZE: int = Field(
        default=20, ge=1, le=100, description="Database connection pool size"
    )
    DATABASE_MAX_OVERFLOW: int = Field(
        default=10, ge=0, le=100, description="Maximum overflow connections"
    )
    DATABASE_POOL_TIMEOUT: int = Field(
        default=30, ge=1, le=300, description="Connection pool timeout in seconds"
    )
    DATABASE_POOL_RECYCLE: int = Field(
        default=3600, ge=300, le=86400, description="Connection recycle time in seconds"
    )

    # Redis configuration
    REDIS_URL: str = Field(
        default="redis://localhost:6379/0", description="Redis connection URL"
    )
    REDIS_MAX_CONNECTIONS: int = Field(
        default=10, ge=1, le=50, description="Redis connection pool size"
    )
    REDIS_CONNECTION_TIMEOUT: float = Field(
        default=5.0, gt=0, le=60, description="Redis socket connect timeout"
    )
    REDIS_OPERATION_TIMEOUT: float = Field(
        default=5.0, gt=0, le=60, description="Redis socket operation timeout"
    )

    # Cache configuration
    CACHE_KEY_PREFIX: str = Field(
        default="gallery:cache:", description="Namespace prefix for every cache key"
    )
    CACHE_DEFAULT_TTL: int = Field(
        default=3600, ge=1, le=86400, description="Default cache entry TTL"
    )
    CACHE_ENTITY_TTL: int = Field(
        default=300, ge=1, le=86400, description="Single profile/experience TTL"
    )
    CACHE_LIST_TTL: int = Field(
        default=60, ge=1, le=3600, description="Paginated list TTL"
    )
    CACHE_COMPRESSION_THRESHOLD: int = Field(
        default=1024, ge=0, description="Payload size in bytes above which values are compressed"
    )

    # Identity provider configuration
    IDENTITY_PROVIDER_URL: str = Field(
        default="https://api.clerk.com", description="Identity provider base URL"
    )
    IDENTITY_PROVIDER_SECRET_KEY: str = Field(
        default="", description="Identity provider backend API key"
    )
    IDENTITY_PROVIDER_TIMEOUT: float = Field(
        default=10.0, gt=0, le=60, description="Identity provider request timeout"
    )

    # Rate limiting
    RATE_LIMIT_ENABLED: bool = Field(default=True, description="Enable rate limiting")
    RATE_LIMIT_KEY_PREFIX: str = Field(
        default="gallery:ratelimit:", description="Namespace prefix for rate limit counters"
    )
    RATE_LIMIT_WINDOW_SECONDS: int = Field(
        default=60, ge=1, le=86400, description="Rate limit window length"
    )
    RATE_LIMIT_ANONYMOUS: int = Field(
        default=60, ge=1, description="Requests per window for anonymous clients"
    )
    RATE_LIMIT_AUTHENTICATED: int = Field(
        default=1000, ge=1, description="Requests per window for signed-in users"
    )
    RATE_LIMIT_ADMIN: int = Field(
        default=5000, ge=1, description="Requests per window for administrators"
    )

    # API configuration
    API_PREFIX: str = Field(default="/api/v1", description="Route prefix for the API")
    API_HOST: str = Field(default="0.0.0.0", description="API server host")
    API_PORT: int = Field(default=8000, ge=1, le=65535, description="API server port")
    REQUEST_TIMEOUT_SECONDS: float = Field(
        default=15.0, gt=0, le=300, description="Global request timeout"
    )
    CORS_ORIGINS: str = Field(
        default="http://localhost:3000",
        description="CORS allowed origins (comma-separated)",
    )
    CORS_CREDENTIALS: bool = Field(default=True, description="Allow CORS credentials")

    # Development and debugging
    DEBUG: bool = Field(default=False, description="Enable debug mode")
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: str = Field(default="auto", description="json, console or auto")

    @field_validator("DATABASE_URL")
    @classmethod
    def validate_database_url(cls, v):
        """Validate database URL format."""
        if not v.startswith(
            ("postgresql://", "postgresql+asyncpg://", "sqlite+aiosqlite://")
        ):
            raise ValueError(
                "DATABASE_URL must be a PostgreSQL or aiosqlite connection URL"
            )
        return v

    @field_validator("ENVIRONMENT")
    @classmethod
    def validate_environment(cls, v):
        """Validate environment value."""
        allowed = ["development", "test", "staging", "production"]
        if v not in allowed:
            raise ValueError(f"ENVIRONMENT must be one of: {allowed}")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed:
            raise ValueError(f"LOG_LEVEL must be one of: {allowed}")
        return v.upper()

    @field_validator("LOG_FORMAT")
    @classmethod
    def validate_log_format(cls, v):
        allowed = ["auto", "json", "console"]
        if v.lower() not in allowed:
            raise ValueError(f"LOG_FORMAT must be one of: {allowed}")
        return v.lower()

    @field_validator("CACHE_KEY_PREFIX", "RATE_LIMIT_KEY_PREFIX")
    @classmethod
    def validate_cache_key_prefix(cls, v):
        """Prefix must be a non-empty namespace ending with a colon."""
        if not v or any(char.isspace() for char in v):
            raise ValueError("Key prefixes cannot be empty or contain whitespace")
        return v if v.endswith(":") else f"{v}:"

    @field_validator("API_PREFIX")
    @classmethod
    def validate_api_prefix(cls, v):
        v = v.rstrip("/")
        if v and not v.startswith("/"):
            raise ValueError("API_PREFIX must start with '/'")
        return v

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENVIRONMENT == "production"

    @property
    def cors_origins_list(self) -> List[str]:
        """Get CORS origins as list."""
        return [
            origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()
        ]

    @property
    def debug(self) -> bool:
        """Alias for DEBUG."""
        return self.DEBUG

    @property
    def database_url(self) -> str:
        """DATABASE_URL with the async driver selected for PostgreSQL."""
        if self.DATABASE_URL.startswith("postgresql://"):
            return self.DATABASE_URL.replace("postgresql://", "postgresql+asyncpg://", 1)
        return self.DATABASE_URL

    @property
    def redis_url(self) -> str:
        """Alias for REDIS_URL."""
        return self.REDIS_URL


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
