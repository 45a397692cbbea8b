"""Configuration models for the article archive pipeline."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from src.shared.utils.config_validator import (
    get_env_or_default,
    require_env,
    validate_bool_env,
    validate_float_env,
    validate_int_env,
)

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://wc-archives.seedao.xyz"
DEFAULT_SITE_NAME = "SeeDAO WeChat Archives"
DEFAULT_AUTHOR = "SeeDAO"


@dataclass
class SiteConfig:
    """Public site metadata used when rendering pages and the sitemap."""

    base_url: str = DEFAULT_BASE_URL
    name: str = DEFAULT_SITE_NAME
    default_author: str = DEFAULT_AUTHOR
    language: str = "zh"

    def __post_init__(self) -> None:
        self.base_url = self.base_url.rstrip("/")

    @classmethod
    def from_env(cls) -> "SiteConfig":
        return cls(
            base_url=get_env_or_default("SITE_BASE_URL", DEFAULT_BASE_URL),
            name=get_env_or_default("SITE_NAME", DEFAULT_SITE_NAME),
            default_author=get_env_or_default("SITE_DEFAULT_AUTHOR", DEFAULT_AUTHOR),
            language=get_env_or_default("SITE_LANGUAGE", "zh"),
        )


@dataclass
class WeChatCredentials:
    """Session credentials for the publish-list endpoint."""

    biz_id: str
    token: str
    cookie: str

    @classmethod
    def from_env(cls) -> "WeChatCredentials":
        """Load credentials from the environment.

        Raises:
            ConfigurationError: If any credential is missing
        """
        return cls(
            biz_id=require_env("WECHAT_BIZ_ID", "official account fakeid"),
            token=require_env("WECHAT_TOKEN", "session token"),
            cookie=require_env("WECHAT_COOKIE", "session cookie"),
        )


@dataclass
class ArchiveConfig:
    """Runtime configuration for one scheduler instance.

    Attributes:
        data_dir: Holds the checkpoint, archive and per-article metadata
        output_dir: Root of the published site
        batch_size: Maximum new items attempted per invocation
        max_retries: Additional attempts per item after the first
        retry_delay: Fixed seconds between attempts
        max_run_time: Seconds after which no new item is started
        incremental_index: Rebuild the index after every batch, not only at the end
    """

    data_dir: Path = Path("data")
    output_dir: Path = Path("public")
    batch_size: int = 10
    max_retries: int = 3
    retry_delay: float = 5.0
    max_run_time: float = 8 * 60
    incremental_index: bool = False
    site: SiteConfig = field(default_factory=SiteConfig)

    def __post_init__(self) -> None:
        self.data_dir = Path(self.data_dir)
        self.output_dir = Path(self.output_dir)
        if self.batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if self.max_retries < 0:
            raise ValueError("max_retries must not be negative")
        if self.retry_delay < 0:
            raise ValueError("retry_delay must not be negative")
        if self.max_run_time <= 0:
            raise ValueError("max_run_time must be positive")

    @property
    def progress_file(self) -> Path:
        return self.data_dir / "progress.json"

    @property
    def archive_file(self) -> Path:
        return self.data_dir / "archive.json"

    @property
    def articles_dir(self) -> Path:
        return self.data_dir / "articles"

    @property
    def failures_file(self) -> Path:
        return self.data_dir / "failures.json"

    @classmethod
    def from_env(cls) -> "ArchiveConfig":
        """Build configuration from environment variables.

        Raises:
            ConfigurationError: If a variable holds an invalid value
        """
        config = cls(
            data_dir=Path(get_env_or_default("ARCHIVE_DATA_DIR", "data")),
            output_dir=Path(get_env_or_default("ARCHIVE_OUTPUT_DIR", "public")),
            batch_size=validate_int_env("ARCHIVE_BATCH_SIZE", default=10, min_value=1, max_value=500),
            max_retries=validate_int_env("ARCHIVE_MAX_RETRIES", default=3, min_value=0, max_value=10),
            retry_delay=validate_float_env("ARCHIVE_RETRY_DELAY", default=5.0, min_value=0),
            max_run_time=validate_float_env("ARCHIVE_MAX_RUN_TIME", default=8 * 60, min_value=1),
            incremental_index=validate_bool_env("ARCHIVE_INCREMENTAL_INDEX", default=False),
            site=SiteConfig.from_env(),
        )
        logger.debug(
            "Archive config: data=%s output=%s batch_size=%d max_run_time=%.0fs",
            config.data_dir,
            config.output_dir,
            config.batch_size,
            config.max_run_time,
        )
        return config
