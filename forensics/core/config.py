"""Pydantic settings loaded from YAML configuration."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel

_settings: Settings | None = None

_DEFAULT_CONFIG_PATH = Path("config/settings.yaml")


class CollectionConfig(BaseModel):
    """Sampling windows, timeouts, and run deadlines for metric collection."""

    cpu_sample_secs: int = 10
    short_sample_secs: int = 5
    io_sample_secs: int = 10
    command_timeout_secs: float = 15.0
    # Windowed sources get window + grace before they are abandoned.
    window_grace_secs: float = 5.0
    concurrent: bool = False
    disk_test_size_mb: int = 1024
    disk_test_dir: str = "/tmp"
    run_deadline_secs: dict[str, float] = {
        "quick": 120.0,
        "standard": 300.0,
        "deep": 600.0,
        "disk": 300.0,
        "cpu": 120.0,
        "memory": 120.0,
    }

    def window_timeout(self, window_secs: float) -> float:
        """Timeout budget for a source sampling over *window_secs*."""
        return window_secs + self.window_grace_secs

    def deadline_for(self, mode: str) -> float | None:
        """Overall run deadline for a mode, or None if unbounded."""
        return self.run_deadline_secs.get(mode)


class MetadataConfig(BaseModel):
    """EC2 instance metadata service lookup."""

    enabled: bool = True
    base_url: str = "http://169.254.169.254/latest"
    timeout_secs: float = 2.0


class TicketConfig(BaseModel):
    """AWS Support case defaults."""

    service_code: str = "amazon-ec2-linux"
    category_code: str = "performance"
    language: str = "en"
    issue_type: str = "technical"
    region: str = "us-east-1"
    aws_cli: str = "aws"
    command_timeout_secs: float = 60.0


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    format: str = "console"


class Settings(BaseModel):
    """Root settings container."""

    collection: CollectionConfig = CollectionConfig()
    metadata: MetadataConfig = MetadataConfig()
    ticket: TicketConfig = TicketConfig()
    logging: LoggingConfig = LoggingConfig()


def load_settings(path: str | Path | None = None) -> Settings:
    """Load settings from a YAML file and cache globally.

    Args:
        path: Path to YAML config. Defaults to config/settings.yaml.

    Returns:
        Parsed Settings instance.
    """
    global _settings  # noqa: PLW0603

    config_path = Path(path) if path else _DEFAULT_CONFIG_PATH

    data: dict[str, Any] = {}
    if config_path.exists():
        with open(config_path) as f:
            raw = yaml.safe_load(f)
            if isinstance(raw, dict):
                data = raw

    _settings = Settings(**data)
    return _settings


def get_settings() -> Settings:
    """Return the cached settings, loading defaults if not yet loaded."""
    global _settings  # noqa: PLW0603
    if _settings is None:
        _settings = load_settings()
    return _settings


def reset_settings() -> None:
    """Reset the cached settings (useful for testing)."""
    global _settings  # noqa: PLW0603
    _settings = None
