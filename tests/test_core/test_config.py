"""Tests for forensics/core/config.py — YAML loading, defaults, caching."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from forensics.core.config import (
    CollectionConfig,
    LoggingConfig,
    MetadataConfig,
    Settings,
    TicketConfig,
    get_settings,
    load_settings,
    reset_settings,
)


@pytest.fixture(autouse=True)
def _clean_settings() -> None:
    """Reset the global settings cache before each test."""
    reset_settings()


class TestDefaults:
    """Settings should have sensible defaults when no YAML is provided."""

    def test_default_collection_config(self) -> None:
        cfg = CollectionConfig()
        assert cfg.cpu_sample_secs == 10
        assert cfg.short_sample_secs == 5
        assert cfg.io_sample_secs == 10
        assert cfg.command_timeout_secs == 15.0
        assert cfg.concurrent is False
        assert cfg.disk_test_size_mb == 1024

    def test_default_metadata_config(self) -> None:
        cfg = MetadataConfig()
        assert cfg.enabled is True
        assert cfg.base_url == "http://169.254.169.254/latest"
        assert cfg.timeout_secs == 2.0

    def test_default_ticket_config(self) -> None:
        cfg = TicketConfig()
        assert cfg.service_code == "amazon-ec2-linux"
        assert cfg.category_code == "performance"
        assert cfg.language == "en"
        assert cfg.issue_type == "technical"

    def test_default_logging_config(self) -> None:
        cfg = LoggingConfig()
        assert cfg.level == "INFO"
        assert cfg.format == "console"

    def test_default_settings(self) -> None:
        s = Settings()
        assert s.collection.cpu_sample_secs == 10
        assert s.ticket.region == "us-east-1"
        assert s.logging.level == "INFO"


class TestCollectionTimeouts:
    def test_window_timeout_adds_grace(self) -> None:
        cfg = CollectionConfig(window_grace_secs=5.0)
        assert cfg.window_timeout(10) == 15.0

    def test_deadline_for_known_mode(self) -> None:
        cfg = CollectionConfig()
        assert cfg.deadline_for("quick") == 120.0
        assert cfg.deadline_for("deep") == 600.0

    def test_deadline_for_unknown_mode_is_unbounded(self) -> None:
        cfg = CollectionConfig(run_deadline_secs={"quick": 60.0})
        assert cfg.deadline_for("standard") is None


class TestYamlLoading:
    """Settings should load correctly from YAML files."""

    def test_load_from_yaml(self, tmp_path: Path) -> None:
        config_data = {
            "collection": {
                "cpu_sample_secs": 3,
                "concurrent": True,
                "run_deadline_secs": {"quick": 30},
            },
            "ticket": {"region": "eu-west-1"},
            "logging": {"level": "DEBUG", "format": "json"},
        }
        config_file = tmp_path / "settings.yaml"
        config_file.write_text(yaml.dump(config_data))

        s = load_settings(config_file)

        assert s.collection.cpu_sample_secs == 3
        assert s.collection.concurrent is True
        assert s.collection.deadline_for("quick") == 30.0
        assert s.ticket.region == "eu-west-1"
        assert s.logging.format == "json"

    def test_partial_yaml_uses_defaults(self, tmp_path: Path) -> None:
        config_file = tmp_path / "settings.yaml"
        config_file.write_text(yaml.dump({"metadata": {"enabled": False}}))

        s = load_settings(config_file)

        assert s.metadata.enabled is False
        assert s.collection.io_sample_secs == 10
        assert s.ticket.service_code == "amazon-ec2-linux"

    def test_missing_file_uses_defaults(self, tmp_path: Path) -> None:
        s = load_settings(tmp_path / "nonexistent.yaml")
        assert s.collection.cpu_sample_secs == 10

    def test_empty_yaml_uses_defaults(self, tmp_path: Path) -> None:
        config_file = tmp_path / "settings.yaml"
        config_file.write_text("")
        s = load_settings(config_file)
        assert s.logging.level == "INFO"

    def test_repository_settings_file_loads(self) -> None:
        path = Path(__file__).resolve().parents[2] / "config" / "settings.yaml"
        s = load_settings(path)
        assert s.collection.deadline_for("standard") == 300.0
        assert s.ticket.aws_cli == "aws"


class TestCaching:
    def test_get_settings_caches(self, tmp_path: Path) -> None:
        config_file = tmp_path / "settings.yaml"
        config_file.write_text(yaml.dump({"logging": {"level": "WARNING"}}))
        load_settings(config_file)

        assert get_settings().logging.level == "WARNING"
        assert get_settings() is get_settings()

    def test_reset_clears_cache(self, tmp_path: Path) -> None:
        config_file = tmp_path / "settings.yaml"
        config_file.write_text(yaml.dump({"logging": {"level": "WARNING"}}))
        first = load_settings(config_file)
        reset_settings()
        assert load_settings(tmp_path / "missing.yaml") is not first
