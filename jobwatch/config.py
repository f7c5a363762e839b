"""Configuration loading for Jobwatch.

Reads the YAML config file, applies environment overrides and validates
the result. Environment variables may come from a .env file loaded by the
CLI before the config is read.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from jobwatch.monitor.thresholds import ThresholdConfig

DEFAULT_CONFIG_PATH = "config.yaml"
DEFAULT_OUTPUT_FILE = "data/jenkins_processes.csv"
DEFAULT_INTERVAL_SECONDS = 30.0

ENV_WEBHOOK_URL = "JOBWATCH_SLACK_WEBHOOK_URL"
ENV_LISTEN_ADDRESS = "JOBWATCH_LISTEN_ADDRESS"


class ConfigError(ValueError):
    """Raised when the configuration cannot be loaded or is invalid."""


@dataclass
class PrometheusConfig:
    listen_address: str = ""


@dataclass
class SlackConfig:
    webhook_url: str = ""
    channel: str = ""
    username: str = ""
    timeout: float = 10.0


@dataclass
class MonitorConfig:
    """Complete Jobwatch configuration."""

    prometheus: PrometheusConfig = field(default_factory=PrometheusConfig)
    slack: SlackConfig = field(default_factory=SlackConfig)
    thresholds: ThresholdConfig = field(default_factory=ThresholdConfig)
    disable_collection: bool = False
    output_file: str = DEFAULT_OUTPUT_FILE
    log_file: str = ""
    interval_seconds: float = DEFAULT_INTERVAL_SECONDS

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MonitorConfig":
        """Build a config from parsed YAML, tolerating missing sections."""
        prometheus = data.get("prometheus") or {}
        slack = data.get("slack") or {}
        thresholds = data.get("thresholds") or {}
        for name, section in (
            ("prometheus", prometheus),
            ("slack", slack),
            ("thresholds", thresholds),
        ):
            if not isinstance(section, dict):
                raise ConfigError(f"'{name}' must be a mapping")

        try:
            return cls(
                prometheus=PrometheusConfig(
                    listen_address=str(prometheus.get("listen_address") or ""),
                ),
                slack=SlackConfig(
                    webhook_url=str(slack.get("webhook_url") or ""),
                    channel=str(slack.get("channel") or ""),
                    username=str(slack.get("username") or ""),
                    timeout=float(slack.get("timeout", 10.0)),
                ),
                thresholds=ThresholdConfig(
                    cpu_percent=float(thresholds.get("cpu_percent", 0.0)),
                    mem_percent=float(thresholds.get("mem_percent", 0.0)),
                ),
                disable_collection=bool(data.get("disable_collection", False)),
                output_file=str(data.get("output_file") or DEFAULT_OUTPUT_FILE),
                log_file=str(data.get("log_file") or ""),
                interval_seconds=float(data.get("interval_seconds", DEFAULT_INTERVAL_SECONDS)),
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(f"invalid value in configuration: {e}") from e

    def apply_env_overrides(self, environ: dict[str, str] | None = None) -> None:
        """Override secrets and addresses from the environment."""
        environ = os.environ if environ is None else environ
        if environ.get(ENV_WEBHOOK_URL):
            self.slack.webhook_url = environ[ENV_WEBHOOK_URL]
        if environ.get(ENV_LISTEN_ADDRESS):
            self.prometheus.listen_address = environ[ENV_LISTEN_ADDRESS]

    def validate(self) -> None:
        """
        Check the configuration.

        Raises:
            ConfigError: Describing the first invalid setting
        """
        if not self.prometheus.listen_address:
            raise ConfigError("prometheus listen_address is required")
        if not self.slack.webhook_url:
            raise ConfigError("slack webhook_url is required")
        if not 0 < self.thresholds.cpu_percent <= 100:
            raise ConfigError("cpu_percent must be between 0 and 100")
        if not 0 < self.thresholds.mem_percent <= 100:
            raise ConfigError("mem_percent must be between 0 and 100")
        if self.interval_seconds <= 0:
            raise ConfigError("interval_seconds must be positive")


def load_config(config_path: str | Path = DEFAULT_CONFIG_PATH) -> MonitorConfig:
    """
    Read, override and validate the configuration file.

    Raises:
        ConfigError: If the file is missing, malformed or invalid
    """
    try:
        with open(config_path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigError(f"failed to read config file {config_path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"failed to parse config file {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"config file {config_path} must contain a mapping")

    try:
        config = MonitorConfig.from_dict(data)
        config.apply_env_overrides()
        config.validate()
    except ConfigError as e:
        raise ConfigError(f"invalid configuration in {config_path}: {e}") from e
    return config
