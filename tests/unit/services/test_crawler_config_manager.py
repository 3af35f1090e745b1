"""Unit tests for YAML configuration loading"""

from pathlib import Path

import pytest

from blockcrawl.models.checkpoint import BlockType
from blockcrawl.models.config import LogLevel
from blockcrawl.services.config_manager import ConfigManager, ConfigValidationError

VALID_CONFIG = """
site: "${TEST_CRAWL_SITE}"
output_dir: "out"
concurrency:
  max_concurrency: 3
  checkpoint_interval: 0
progress:
  rebuild:
    block_type: directory
skip_free: "default"
logging:
  level: DEBUG
"""


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "crawler.yaml"
    path.write_text(VALID_CONFIG, encoding="utf-8")
    return path


def test_load_config_substitutes_environment(config_file, monkeypatch):
    monkeypatch.setenv("TEST_CRAWL_SITE", "example.com")

    config = ConfigManager(config_file).load_config()

    assert config.site == "example.com"
    assert config.concurrency.max_concurrency == 3
    assert config.concurrency.checkpoint_interval == 0
    assert config.progress.rebuild.block_type == BlockType.DIRECTORY
    assert config.skip_free == "default"
    assert config.logging.level == LogLevel.DEBUG


def test_derived_paths(config_file, monkeypatch):
    monkeypatch.setenv("TEST_CRAWL_SITE", "example.com")

    config = ConfigManager(config_file).load_config()

    assert config.site_output_dir == Path("out") / "example.com"
    assert config.progress_file == Path(".crawler") / "example.com" / "progress.json"
    assert config.free_file.name == "free.json"
    assert config.mismatch_file.name == "mismatch.json"
    assert config.manifest_path == Path(".crawler") / "example.com" / "collect.json"


def test_config_is_cached(config_file, monkeypatch):
    monkeypatch.setenv("TEST_CRAWL_SITE", "example.com")
    manager = ConfigManager(config_file)

    assert manager.load_config() is manager.load_config()


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        ConfigManager(tmp_path / "missing.yaml").load_config()


def test_invalid_yaml(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("site: [unclosed", encoding="utf-8")

    with pytest.raises(ConfigValidationError, match="Failed to parse YAML"):
        ConfigManager(path).load_config()


def test_non_mapping(tmp_path):
    path = tmp_path / "list.yaml"
    path.write_text("- a\n- b\n", encoding="utf-8")

    with pytest.raises(ConfigValidationError, match="mapping"):
        ConfigManager(path).load_config()


@pytest.mark.parametrize("site", ["../etc", "a/b", ".."])
def test_site_must_be_single_segment(tmp_path, site):
    path = tmp_path / "crawler.yaml"
    path.write_text(f'site: "{site}"\n', encoding="utf-8")

    with pytest.raises(ConfigValidationError, match="Invalid configuration"):
        ConfigManager(path).load_config()


def test_concurrency_bounds(tmp_path):
    path = tmp_path / "crawler.yaml"
    path.write_text("site: s\nconcurrency:\n  max_concurrency: 0\n", encoding="utf-8")

    with pytest.raises(ConfigValidationError):
        ConfigManager(path).load_config()
