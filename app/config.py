"""
Configuration Management for Betting Insights API
=================================================

This module handles all environment variables and application settings.
It provides a centralized way to manage configuration across different
environments (development, staging, production).

Key Features:
- Environment variable loading with defaults
- Type validation and conversion
- Security settings (two independent JWT secrets and expiries)
- Database connection pool configuration
- Startup validation of insecure placeholder values
"""

import os
from typing import List, Optional, Tuple

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL

from app.core.utils import parse_duration


DEFAULT_JWT_SECRET = "your-secret-key"
DEFAULT_JWT_REFRESH_SECRET = "your-refresh-secret-key"
MIN_SECRET_LENGTH = 32


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    This class uses pydantic-settings' BaseSettings to automatically load
    configuration from environment variables (and a local ``.env`` file)
    with type validation.

    Environment Variables Required in production:
    - DATABASE_URL or DATABASE_HOST/DATABASE_NAME/DATABASE_USER/DATABASE_PASSWORD
    - JWT_SECRET: access token signing secret
    - JWT_REFRESH_SECRET: refresh token signing secret

    Optional Environment Variables:
    - ENVIRONMENT: deployment environment (development/staging/production)
    - CORS_ORIGIN: allowed frontend origin
    - LOG_LEVEL: minimum log level
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Application Settings
    APP_NAME: str = "Betting Insights API"
    VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 3001
    API_PREFIX: str = "/api"

    # Database Configuration
    DATABASE_URL: Optional[str] = None
    DATABASE_HOST: str = "localhost"
    DATABASE_PORT: int = 5432
    DATABASE_NAME: str = "betting_app"
    DATABASE_USER: str = "user"
    DATABASE_PASSWORD: str = "password"

    # Connection pool
    DB_POOL_SIZE: int = 20
    DB_POOL_IDLE_TIMEOUT: int = 30  # seconds
    DB_CONNECT_TIMEOUT: int = 2  # seconds

    # Security Settings
    JWT_SECRET: str = DEFAULT_JWT_SECRET
    JWT_EXPIRES_IN: str = "7d"
    JWT_REFRESH_SECRET: str = DEFAULT_JWT_REFRESH_SECRET
    JWT_REFRESH_EXPIRES_IN: str = "30d"
    JWT_ALGORITHM: str = "HS256"
    BCRYPT_ROUNDS: int = 10

    # CORS Settings
    CORS_ORIGIN: str = "http://localhost:3000"

    # Logging Configuration
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = "betting_insights.log"
    LOG_TO_FILE: bool = True

    @field_validator("JWT_SECRET", "JWT_REFRESH_SECRET")
    @classmethod
    def validate_secret(cls, v, info):
        """
        Refuse the placeholder secrets in a production environment.

        Raises:
            ValueError: If a placeholder secret is used in production
        """
        placeholders = (DEFAULT_JWT_SECRET, DEFAULT_JWT_REFRESH_SECRET)
        if v in placeholders and os.getenv("ENVIRONMENT") == "production":
            raise ValueError(f"{info.field_name} must be changed in production environment")
        return v

    @field_validator("JWT_EXPIRES_IN", "JWT_REFRESH_EXPIRES_IN")
    @classmethod
    def validate_expiry(cls, v):
        parse_duration(v)
        return v

    @field_validator("DATABASE_URL")
    @classmethod
    def validate_database_url(cls, v):
        """
        Validate database URL format.

        Args:
            v: The database URL

        Returns:
            Optional[str]: The validated database URL
        """
        if not v:
            return None
        if not v.startswith(("postgresql", "postgres://", "sqlite")):
            raise ValueError("DATABASE_URL must be a PostgreSQL or SQLite connection string")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def normalize_log_level(cls, v):
        return v.upper()

    @property
    def database_url(self) -> str:
        """
        Async SQLAlchemy URL for the configured database.

        DATABASE_URL wins when present; otherwise the URL is assembled from
        the individual DATABASE_* parameters.
        """
        if self.DATABASE_URL:
            url = self.DATABASE_URL
            if url.startswith("postgres://"):
                url = url.replace("postgres://", "postgresql://", 1)
            if url.startswith("postgresql://"):
                url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
            return url

        return URL.create(
            "postgresql+asyncpg",
            username=self.DATABASE_USER,
            password=self.DATABASE_PASSWORD,
            host=self.DATABASE_HOST,
            port=self.DATABASE_PORT,
            database=self.DATABASE_NAME,
        ).render_as_string(hide_password=False)

    @property
    def access_token_ttl(self):
        return parse_duration(self.JWT_EXPIRES_IN)

    @property
    def refresh_token_ttl(self):
        return parse_duration(self.JWT_REFRESH_EXPIRES_IN)

    @property
    def cors_origins(self) -> List[str]:
        return [origin.strip() for origin in self.CORS_ORIGIN.split(",") if origin.strip()]


class DevelopmentSettings(Settings):
    """Development environment settings with verbose logging."""
    DEBUG: bool = True
    LOG_LEVEL: str = "DEBUG"


class ProductionSettings(Settings):
    """Production environment settings; file logging is left to the platform."""
    DEBUG: bool = False
    LOG_LEVEL: str = "WARNING"
    LOG_TO_FILE: bool = False


def get_environment_settings() -> Settings:
    """
    Get environment-specific settings based on ENVIRONMENT variable.

    Returns:
        Settings: Environment-specific settings instance
    """
    env = os.getenv("ENVIRONMENT", "development").lower()

    if env == "production":
        return ProductionSettings()
    elif env == "test":
        return Settings()
    else:
        return DevelopmentSettings()


def validate_environment(config: Settings) -> Tuple[List[str], List[str]]:
    """
    Check a settings object for missing or insecure values.

    Args:
        config: Settings to inspect

    Returns:
        Tuple[List[str], List[str]]: (errors, warnings). Errors make the
        configuration unusable; warnings flag insecure placeholders.
    """
    errors: List[str] = []
    warnings: List[str] = []

    if not config.DATABASE_URL:
        if not config.DATABASE_HOST:
            errors.append("DATABASE_URL or DATABASE_HOST must be set")
        if not config.DATABASE_NAME:
            errors.append("DATABASE_NAME must be set")
        if not config.DATABASE_USER:
            errors.append("DATABASE_USER must be set")

    if config.JWT_SECRET == DEFAULT_JWT_SECRET or len(config.JWT_SECRET) < MIN_SECRET_LENGTH:
        warnings.append(
            f"JWT_SECRET should be changed from default and be at least {MIN_SECRET_LENGTH} characters"
        )
    if (
        config.JWT_REFRESH_SECRET == DEFAULT_JWT_REFRESH_SECRET
        or len(config.JWT_REFRESH_SECRET) < MIN_SECRET_LENGTH
    ):
        warnings.append(
            f"JWT_REFRESH_SECRET should be changed from default and be at least {MIN_SECRET_LENGTH} characters"
        )
    if config.JWT_SECRET == config.JWT_REFRESH_SECRET:
        warnings.append("JWT_SECRET and JWT_REFRESH_SECRET should be different")

    return errors, warnings


settings = get_environment_settings()


def get_settings() -> Settings:
    """
    Dependency function to get settings instance.

    This function can be used as a FastAPI dependency to inject
    settings into route handlers.

    Returns:
        Settings: The global settings instance
    """
    return settings
