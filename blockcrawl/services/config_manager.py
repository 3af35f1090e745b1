import os
from pathlib import Path
from string import Template
from typing import Optional, Union

import structlog
import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from blockcrawl.models.config import CrawlerConfig

logger = structlog.get_logger()


class ConfigValidationError(Exception):
    """Configuration validation failed"""

    pass


class ConfigManager:
    """Loads crawler configuration from YAML"""

    def __init__(self, config_path: Union[str, Path] = "config/crawler.yaml"):
        self.config_path = Path(config_path)
        self.env_loaded = False
        self._config: Optional[CrawlerConfig] = None

    def load_config(self) -> CrawlerConfig:
        """Load and validate configuration"""
        if self._config:
            return self._config

        # 1. Load environment
        if not self.env_loaded:
            load_dotenv()
            self.env_loaded = True

        # 2. Check file existence
        if not self.config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        # 3. Read YAML
        try:
            raw_content = self.config_path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigValidationError(f"Failed to read config file: {e}")

        # 4. Substitute ${VAR} references, leaving unknown ones untouched
        try:
            substituted = Template(raw_content).safe_substitute(os.environ)
            config_data = yaml.safe_load(substituted)
        except yaml.YAMLError as e:
            raise ConfigValidationError(f"Failed to parse YAML: {e}")

        if not isinstance(config_data, dict):
            raise ConfigValidationError("Configuration must be a YAML mapping")

        # 5. Validate with Pydantic
        try:
            self._config = CrawlerConfig(**config_data)
        except ValidationError as e:
            raise ConfigValidationError(f"Invalid configuration: {e}")

        logger.info(
            "config_loaded",
            site=self._config.site,
            max_concurrency=self._config.concurrency.max_concurrency,
        )
        return self._config
