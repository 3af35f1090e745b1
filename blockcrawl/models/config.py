from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from blockcrawl.models.checkpoint import ProgressConfig
from blockcrawl.models.concurrency import ConcurrencyConfig


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


class PersistenceConfig(BaseModel):
    """Retry and validation settings for atomic state writes"""

    max_retries: int = Field(3, ge=1, le=20)
    retry_delay_seconds: float = Field(0.1, ge=0.0, le=10.0)
    verify: bool = True
    # Defaults to a hidden .tmp directory beside each destination file
    scratch_dir: Optional[str] = None


class LoggingSettings(BaseModel):
    level: LogLevel = LogLevel.INFO
    json_output: bool = False


class CrawlerConfig(BaseModel):
    """Top-level crawler configuration"""

    model_config = ConfigDict(protected_namespaces=())

    site: str = Field(
        ..., min_length=1, max_length=200, description="Site identifier, e.g. domain"
    )
    output_dir: str = "output"
    state_dir: str = ".crawler"
    manifest_file: Optional[str] = Field(
        default=None, description="Defaults to <state_dir>/<site>/collect.json"
    )

    concurrency: ConcurrencyConfig = Field(default_factory=ConcurrencyConfig)
    progress: ProgressConfig = Field(default_factory=ProgressConfig)
    persistence: PersistenceConfig = Field(default_factory=PersistenceConfig)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    # None: disabled, "default": case-insensitive "free", other: exact marker text
    skip_free: Optional[str] = None

    @field_validator("site")
    @classmethod
    def validate_site(cls, v: str) -> str:
        v = v.strip()
        if "/" in v or "\\" in v or v in (".", ".."):
            raise ValueError("site must be a single path segment")
        return v

    # Paths are namespaced per site, one state and output subdirectory each.

    @property
    def site_state_dir(self) -> Path:
        return Path(self.state_dir) / self.site

    @property
    def site_output_dir(self) -> Path:
        return Path(self.output_dir) / self.site

    @property
    def progress_file(self) -> Path:
        return self.site_state_dir / "progress.json"

    @property
    def free_file(self) -> Path:
        return self.site_state_dir / "free.json"

    @property
    def mismatch_file(self) -> Path:
        return self.site_state_dir / "mismatch.json"

    @property
    def manifest_path(self) -> Path:
        if self.manifest_file:
            return Path(self.manifest_file)
        return self.site_state_dir / "collect.json"
