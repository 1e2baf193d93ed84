"""Application settings and configuration.

This module defines all configuration options for the deployment engine.
Settings are loaded from environment variables with sensible defaults.
"""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="Podcast Deploy", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Database configuration
    database_url: str = Field(default="sqlite:///./podcast_deploy.db", alias="DATABASE_URL")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")

    # Local storage. Artwork lives under <data_dir>/artwork, transcripts under
    # <data_dir>/processed and cached feeds under <data_dir>/rss.
    data_dir: Path = Field(default=Path("./data"), alias="DATA_DIR")

    # Secrets at rest
    secrets_dir: Path = Field(default=Path("./secrets"), alias="SECRETS_DIR")
    secrets_key: str | None = Field(default=None, alias="SECRETS_KEY")

    # Deploy behaviour
    feed_filename: str = Field(default="feed.xml", alias="FEED_FILENAME")
    deploy_connect_timeout_seconds: float = Field(
        default=60.0,
        alias="DEPLOY_CONNECT_TIMEOUT_SECONDS",
    )
    deploy_transfer_timeout_seconds: float = Field(
        default=120.0,
        alias="DEPLOY_TRANSFER_TIMEOUT_SECONDS",
    )
    stale_run_minutes: int = Field(default=120, alias="STALE_RUN_MINUTES")
    ipfs_default_gateway: str = Field(
        default="https://ipfs.io/ipfs/",
        alias="IPFS_DEFAULT_GATEWAY",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def artwork_dir(self) -> Path:
        """Directory podcast and episode artwork must live under."""
        return self.data_dir / "artwork"

    @property
    def processed_dir(self) -> Path:
        """Directory transcripts and processed media must live under."""
        return self.data_dir / "processed"

    @property
    def rss_cache_dir(self) -> Path:
        """Directory holding locally cached feed documents."""
        return self.data_dir / "rss"


settings = Settings()
