"""
Environment configuration loader using Pydantic BaseSettings.

This module centralizes the configuration consumed by the NailApp API client:
backend base URLs, request timeouts and retry backoff. Values are loaded from
environment variables and .env files and validated on first access so that a
misconfigured client fails fast with a clear error.
"""

from typing import Optional

from pydantic import AliasChoices, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from nailapp_client.utils.logging import get_logger

logger = get_logger(__name__)


class Settings(BaseSettings):
    """
    Client settings loaded from environment variables.

    Priority order for loading values:
    1. Environment variables (highest priority)
    2. .env file
    3. Default values defined here
    """

    # ===== Application Settings =====
    app_env: str = Field(
        default="development",
        description="Application environment (development/staging/production/test)",
    )

    app_name: str = Field(
        default="NailApp Client", description="Application name for logging"
    )

    app_version: str = Field(default="0.1.0", description="Application version")

    log_level: str = Field(
        default="INFO", description="Logging level (DEBUG/INFO/WARNING/ERROR)"
    )

    # ===== Backends =====
    api_base_url: str = Field(
        default="http://localhost:5000",
        description="Primary booking backend base URL",
    )

    api_base_url_portal: str = Field(
        default="http://localhost:5001",
        validation_alias=AliasChoices("API_BASE_URL_PORTAL", "PORTAL_BASE_URL"),
        description="Portal backend base URL (login, staff profile, stores)",
    )

    # ===== Timeouts & Retry =====
    api_timeout_ms: int = Field(
        default=30000,
        validation_alias=AliasChoices("API_TIMEOUT_MS", "API_TIMEOUT"),
        description="Default request timeout in milliseconds",
        ge=1000,
        le=300000,
    )

    upload_timeout_ms: int = Field(
        default=60000,
        description="Default timeout for multipart uploads in milliseconds",
        ge=1000,
        le=600000,
    )

    retry_backoff_ms: int = Field(
        default=300,
        description="Linear backoff step between transient retries (attempt * step)",
        ge=0,
        le=10000,
    )

    # ===== Connectivity =====
    connectivity_check_url: Optional[str] = Field(
        default=None,
        description="URL probed before each request (None = assume connected)",
    )

    connectivity_timeout_ms: int = Field(
        default=3000,
        description="Timeout of the connectivity probe in milliseconds",
        ge=100,
        le=30000,
    )

    network_error_message: str = Field(
        default="Please check your internet connection",
        description="Message carried by the pre-flight NETWORK_ERROR",
    )

    # ===== Validators =====

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v_upper

    @field_validator("app_env")
    @classmethod
    def validate_app_env(cls, v: str) -> str:
        """Ensure app environment is valid."""
        valid_envs = ["development", "staging", "production", "test"]
        v_lower = v.lower()
        if v_lower not in valid_envs:
            raise ValueError(f"Invalid app_env: {v}. Must be one of {valid_envs}")
        return v_lower

    @field_validator("api_base_url", "api_base_url_portal")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """Base URLs must be absolute http(s) URLs; trailing slash is dropped."""
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"Base URL must start with http:// or https://: {v}")
        return v.rstrip("/")

    # ===== Pydantic Config =====

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def api_timeout_seconds(self) -> float:
        return self.api_timeout_ms / 1000

    def log_config(self) -> None:
        """Log configuration (with URL credentials masked)."""
        config_dict = self.model_dump()

        for field in ("api_base_url", "api_base_url_portal", "connectivity_check_url"):
            value = config_dict.get(field)
            if value and "@" in value:
                # user:password@host
                scheme, _, rest = value.partition("://")
                config_dict[field] = f"{scheme}://***@{rest.split('@', 1)[1]}"

        logger.info("Configuration loaded", **config_dict)

    def validate_required_for_production(self) -> None:
        """Additional validation for production environment."""
        if self.app_env == "production":
            errors = []

            for field in ("api_base_url", "api_base_url_portal"):
                if not getattr(self, field).startswith("https://"):
                    errors.append(f"{field.upper()} must use https in production")

            if self.log_level == "DEBUG":
                logger.warning(
                    "DEBUG log level in production - consider using INFO or higher"
                )

            if errors:
                raise ValueError(
                    f"Production configuration errors: {'; '.join(errors)}"
                )


# ===== Global Settings Instance =====

_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get the global settings instance (singleton pattern).

    Settings are loaded and validated once, on first use.
    """
    global _settings
    if _settings is None:
        try:
            _settings = Settings()
            _settings.log_config()
            _settings.validate_required_for_production()
            logger.info(
                "Settings loaded successfully",
                app_env=_settings.app_env,
                app_version=_settings.app_version,
            )
        except ValidationError as e:
            logger.error("Failed to load settings", errors=e.errors())
            raise
        except Exception as e:
            logger.error("Unexpected error loading settings", error=str(e))
            raise

    return _settings


def reset_settings() -> None:
    """Reset settings (useful for testing)."""
    global _settings
    _settings = None
