"""Core configuration - centralized config for the thesis package.

All environment-based configuration should flow through this module.
This provides a single source of truth and consistent defaults.

Usage:
    from thesis.core.config import get_config
    config = get_config()

    # Access settings
    db_host = config.db_host
    allow_debater_votes = config.allow_debater_votes
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class CoreSettings(BaseSettings):
    """Core configuration settings for Thesis.

    Settings can be configured via environment variables with the
    THESIS_ prefix, or from a ``.env`` file in the working directory.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # ==========================================================================
    # DATABASE SETTINGS
    # ==========================================================================

    db_host: str = Field(
        default="localhost",
        description="Database host",
        validation_alias="THESIS_DB_HOST",
    )
    db_port: int = Field(
        default=5432,
        description="Database port",
        validation_alias="THESIS_DB_PORT",
    )
    db_name: str = Field(
        default="thesis",
        description="Database name",
        validation_alias="THESIS_DB_NAME",
    )
    db_user: str = Field(
        default="thesis",
        description="Database user",
        validation_alias="THESIS_DB_USER",
    )
    db_password: str = Field(
        default="",
        description="Database password",
        validation_alias="THESIS_DB_PASSWORD",
    )

    # Connection pool settings
    db_pool_min: int = Field(
        default=5,
        description="Minimum pool connections",
        validation_alias="THESIS_DB_POOL_MIN",
    )
    db_pool_max: int = Field(
        default=20,
        description="Maximum pool connections",
        validation_alias="THESIS_DB_POOL_MAX",
    )
    db_pool_timeout: int = Field(
        default=10,
        description="Seconds to wait for a pooled connection",
        validation_alias="THESIS_DB_POOL_TIMEOUT",
    )

    # ==========================================================================
    # LOGGING SETTINGS
    # ==========================================================================

    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR)",
        validation_alias="THESIS_LOG_LEVEL",
    )
    log_format: str = Field(
        default="",
        description="Log format: 'json', 'text', or '' (auto-detect)",
        validation_alias="THESIS_LOG_FORMAT",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (optional)",
        validation_alias="THESIS_LOG_FILE",
    )

    # ==========================================================================
    # ENGINE POLICY SETTINGS
    # ==========================================================================

    allow_debater_votes: bool = Field(
        default=True,
        description="Whether the two debaters may record stances on their own debate",
        validation_alias="THESIS_ALLOW_DEBATER_VOTES",
    )
    record_history_on_post: bool = Field(
        default=True,
        description="Append a market data point after every post-stance",
        validation_alias="THESIS_RECORD_HISTORY_ON_POST",
    )
    reputation_max_retries: int = Field(
        default=5,
        ge=1,
        description="Compare-and-swap attempts before a reputation update gives up",
        validation_alias="THESIS_REPUTATION_MAX_RETRIES",
    )

    # ==========================================================================
    # COMPUTED PROPERTIES
    # ==========================================================================

    @property
    def connection_params(self) -> dict:
        """Get database connection parameters dict."""
        return {
            "host": self.db_host,
            "port": self.db_port,
            "dbname": self.db_name,
            "user": self.db_user,
            "password": self.db_password,
        }

    @property
    def pool_config(self) -> dict:
        """Get connection pool configuration."""
        return {
            "minconn": self.db_pool_min,
            "maxconn": self.db_pool_max,
        }


# ==========================================================================
# GLOBAL CONFIG INSTANCE (lazy loaded)
# ==========================================================================

_config: CoreSettings | None = None


def get_config() -> CoreSettings:
    """Get the global configuration instance.

    Returns:
        The singleton CoreSettings instance.
    """
    global _config
    if _config is None:
        _config = CoreSettings()
    return _config


def set_config(config: CoreSettings) -> None:
    """Replace the global configuration (tests and embedding applications)."""
    global _config
    _config = config


def clear_config_cache() -> None:
    """Clear the config cache. Useful for testing."""
    global _config
    _config = None
