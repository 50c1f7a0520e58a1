"""Application settings and configuration.

This module defines all configuration options for Veilbin. Settings are
loaded from environment variables with sensible defaults. Mapping-valued
options (expiry labels, formatters) are read from JSON encoded variables.
"""

from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_EXPIRE_OPTIONS: dict[str, int] = {
    "5min": 300,
    "10min": 600,
    "1hour": 3_600,
    "1day": 86_400,
    "1week": 604_800,
    "1month": 2_592_000,
    "1year": 31_536_000,
    "never": 0,
}

DEFAULT_FORMATTER_OPTIONS: dict[str, str] = {
    "plaintext": "Plain Text",
    "syntaxhighlighting": "Source Code",
    "markdown": "Markdown",
}

StorageBackend = Literal["filesystem", "database", "s3", "gcs"]


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    Tests construct their own instances by field name.
    """

    # Application metadata
    app_name: str = Field(default="Veilbin", alias="APP_NAME")
    base_path: str = Field(default="", alias="BASE_PATH")
    debug: bool = Field(default=False, alias="DEBUG")

    # Paste behaviour
    discussion: bool = Field(default=True, alias="DISCUSSION")
    default_formatter: str = Field(default="plaintext", alias="DEFAULT_FORMATTER")
    size_limit: int = Field(default=10_485_760, alias="SIZE_LIMIT")
    # Switches the delete token MAC from SHA-256 to SHA-1 for legacy clients.
    zerobin_compatibility: bool = Field(default=False, alias="ZEROBIN_COMPATIBILITY")

    # Lifetime classes
    expire_default: str = Field(default="1week", alias="EXPIRE_DEFAULT")
    expire_options: dict[str, int] = Field(
        default_factory=lambda: dict(DEFAULT_EXPIRE_OPTIONS),
        alias="EXPIRE_OPTIONS",
    )
    formatter_options: dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_FORMATTER_OPTIONS),
        alias="FORMATTER_OPTIONS",
    )

    # Traffic limiter (anti-flood between submissions)
    traffic_limit: int = Field(default=10, alias="TRAFFIC_LIMIT")
    traffic_exempted: str = Field(default="", alias="TRAFFIC_EXEMPTED")

    # Purge of expired pastes
    purge_limit: int = Field(default=300, alias="PURGE_LIMIT")
    purge_batch_size: int = Field(default=10, alias="PURGE_BATCH_SIZE")

    # Storage backend selection
    storage_backend: StorageBackend = Field(default="filesystem", alias="STORAGE_BACKEND")
    data_dir: str = Field(default="data", alias="DATA_DIR")

    database_url: str = Field(default="sqlite:///./data/veilbin.db", alias="DATABASE_URL")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    s3_bucket: str | None = Field(default=None, alias="S3_BUCKET")
    s3_prefix: str = Field(default="", alias="S3_PREFIX")
    s3_region: str | None = Field(default=None, alias="S3_REGION")
    s3_endpoint: str | None = Field(default=None, alias="S3_ENDPOINT")
    s3_access_key: str | None = Field(default=None, alias="S3_ACCESS_KEY")
    s3_secret_key: str | None = Field(default=None, alias="S3_SECRET_KEY")
    s3_use_path_style: bool = Field(default=False, alias="S3_USE_PATH_STYLE")

    gcs_bucket: str | None = Field(default=None, alias="VEILBIN_GCS_BUCKET")
    gcs_prefix: str = Field(default="pastes", alias="GCS_PREFIX")
    gcs_uniform_acl: bool = Field(default=False, alias="GCS_UNIFORM_ACL")

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(default=["*"], alias="CORS_ORIGINS")

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        populate_by_name=True,
        extra="ignore",
    )

    @model_validator(mode="after")
    def _ensure_expire_default(self) -> "Settings":
        """Fall back to the first lifetime label if the default is unknown."""
        if self.expire_options and self.expire_default not in self.expire_options:
            # object.__setattr__ avoids re-running validation on assignment
            object.__setattr__(self, "expire_default", next(iter(self.expire_options)))
        if self.base_path and not self.base_path.endswith("/"):
            object.__setattr__(self, "base_path", self.base_path + "/")
        return self

    @property
    def default_expire_seconds(self) -> int:
        """Return the lifetime in seconds of the default expiry label.

        Returns:
            Seconds to live, 0 meaning the paste never expires
        """
        return int(self.expire_options.get(self.expire_default, 0))

    @property
    def exempted_networks(self) -> list[str]:
        """Return the traffic limiter exemptions as a cleaned list."""
        return [item.strip() for item in self.traffic_exempted.split(",") if item.strip()]


settings = Settings()
