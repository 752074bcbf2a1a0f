"""
Application settings for the provisioning core.

Required environment:
- AUTH_SECRET: long-term secret used to derive the config encryption key
- AUTH_URL: public base URL of the application

Everything else has a sensible default and can be overridden from the
environment or a .env file.
"""
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional
from urllib.parse import urlparse

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from provisioner.utils.logger import get_logger

logger = get_logger(__name__)

MIN_SECRET_LENGTH = 32


class Settings(BaseSettings):
    """Provisioning settings loaded from the environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Secrets
    auth_secret: str = Field(default="", alias="AUTH_SECRET")
    auth_url: str = Field(default="", alias="AUTH_URL")

    # Filesystem layout (relative paths resolve against project_root)
    project_root: Path = Field(default_factory=Path.cwd, alias="PROJECT_ROOT")
    config_dir: str = Field(default=".data", alias="CONFIG_DIR")
    config_file: str = Field(default="config.json", alias="CONFIG_FILE")
    data_dir: str = Field(default="data", alias="DATA_DIR")
    public_dir: str = Field(default="public", alias="PUBLIC_DIR")

    environment: str = Field(default="development", alias="ENVIRONMENT")
    skip_setup: bool = Field(default=False, alias="SKIP_SETUP")

    @property
    def config_path(self) -> Path:
        """Absolute path of the setup configuration document."""
        return (self.project_root / self.config_dir / self.config_file).resolve()

    @property
    def public_path(self) -> Path:
        """Absolute path of the publicly served directory."""
        return (self.project_root / self.public_dir).resolve()

    @property
    def data_path(self) -> Path:
        """Absolute path of the embedded database data directory."""
        return (self.project_root / self.data_dir).resolve()

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


@dataclass
class EnvValidation:
    """Outcome of environment validation."""
    valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def validate_environment(settings: Optional[Settings] = None) -> EnvValidation:
    """
    Check that required environment variables are present and sane.

    Args:
        settings: Settings to check (defaults to the global instance)

    Returns:
        EnvValidation with blocking errors and advisory warnings
    """
    settings = settings or get_settings()
    errors: List[str] = []
    warnings: List[str] = []

    if not settings.auth_secret:
        errors.append(
            "AUTH_SECRET is required. It is used to encrypt stored credentials. "
            "Generate one with: openssl rand -base64 32"
        )
    elif len(settings.auth_secret) < MIN_SECRET_LENGTH:
        warnings.append(
            f"AUTH_SECRET should be at least {MIN_SECRET_LENGTH} characters. "
            "Generate a stronger one with: openssl rand -base64 32"
        )

    if not settings.auth_url:
        errors.append(
            "AUTH_URL is required. This is the base URL of the application, "
            "e.g. http://localhost:5173"
        )
    else:
        parsed = urlparse(settings.auth_url)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            errors.append(
                f"AUTH_URL must be an http:// or https:// URL (current value: {settings.auth_url})"
            )

    if settings.skip_setup:
        warnings.append(
            "SKIP_SETUP is enabled. The setup wizard will be bypassed; "
            "use this only for development and testing."
        )

    return EnvValidation(valid=not errors, errors=errors, warnings=warnings)


def validate_on_startup(settings: Optional[Settings] = None) -> EnvValidation:
    """
    Validate the environment and log the outcome.

    Errors are fatal only in production so the setup wizard can still run
    in development.

    Raises:
        RuntimeError: In production when required variables are missing
    """
    settings = settings or get_settings()
    result = validate_environment(settings)

    for warning in result.warnings:
        logger.warning("environment_warning", detail=warning)

    if not result.valid:
        for error in result.errors:
            logger.error("environment_error", detail=error)
        if settings.is_production:
            raise RuntimeError(
                "Missing or invalid environment variables. Please check your .env file."
            )

    return result


# Global instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get or create settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings() -> Settings:
    """Reload settings."""
    global _settings
    _settings = Settings()
    return _settings
