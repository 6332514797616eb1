# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Configuration loading for mqforward.

Configuration is read once from a YAML file and is immutable afterwards.
"""

import os
from dataclasses import dataclass, field, fields, asdict
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from .errors import ConfigurationError

DEFAULT_CONFIG_PATH = Path.home() / ".mqforward" / "config.yaml"
DEFAULT_TICK = 1

MASK = "********"


def expand_path(path: Union[str, Path]) -> str:
    """Expand a leading ~ to the user's home directory."""
    return os.path.expanduser(str(path))


@dataclass
class GeneralConf:
    debug: bool = False


@dataclass
class MqttConf:
    """Message bus connection settings."""

    hostname: str = "localhost"
    port: int = 1883
    username: str = ""
    password: str = ""
    client_id: str = ""
    topics: List[str] = field(default_factory=lambda: ["#"])
    qos: int = 0
    keepalive: int = 60
    ca_certs: List[str] = field(default_factory=list)
    insecure: bool = False


@dataclass
class InfluxDBConf:
    """InfluxDB connection, batching and topic mapping settings."""

    hostname: str = "localhost"
    port: int = 8086
    url: str = ""
    scheme: str = "http"
    db: str = "mqforward"
    username: str = ""
    password: str = ""
    tick: int = DEFAULT_TICK
    timeout: float = 10.0
    # udp and debug are passed through and not interpreted
    udp: bool = False
    debug: str = ""
    # maps the mqtt topic to tags, e.g. `weather/{loc}/{sensor}`
    tags_attributes: List[str] = field(default_factory=list)
    topic_map: List[str] = field(default_factory=list)
    no_topic_tag: bool = False
    # overrides the series name instead of using the topic
    series: str = ""
    ca_certs: List[str] = field(default_factory=list)
    # skips certificate validation
    insecure: bool = False

    @property
    def effective_tick(self) -> int:
        return self.tick or DEFAULT_TICK


@dataclass
class Config:
    """Top-level configuration container."""

    general: GeneralConf = field(default_factory=GeneralConf)
    mqtt: MqttConf = field(default_factory=MqttConf)
    influxdb: InfluxDBConf = field(default_factory=InfluxDBConf)
    config_path: Optional[Path] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any], config_path: Optional[Path] = None) -> "Config":
        """
        Build configuration from a parsed YAML mapping.

        Raises:
            ConfigurationError: On unknown keys or non-mapping sections
        """
        if not isinstance(data, dict):
            raise ConfigurationError("configuration root must be a mapping")

        return cls(
            general=_section(GeneralConf, data.get("general")),
            mqtt=_section(MqttConf, data.get("mqtt")),
            influxdb=_section(InfluxDBConf, data.get("influxdb")),
            config_path=config_path,
        )

    def load_from_env(self) -> None:
        """Apply environment variable overrides."""
        if os.environ.get("MQFORWARD_DEBUG"):
            self.general.debug = True

        if env_url := os.environ.get("MQFORWARD_INFLUXDB_URL"):
            self.influxdb.url = env_url

        if env_password := os.environ.get("MQFORWARD_INFLUXDB_PASSWORD"):
            self.influxdb.password = env_password

        if env_password := os.environ.get("MQFORWARD_MQTT_PASSWORD"):
            self.mqtt.password = env_password

    def validate(self) -> None:
        """
        Validate configuration values.

        Raises:
            ConfigurationError: Listing every invalid value
        """
        errors = []

        influx = self.influxdb
        if influx.tick < 0:
            errors.append("influxdb.tick must be non-negative")
        if influx.timeout <= 0:
            errors.append("influxdb.timeout must be positive")
        if not influx.url:
            if influx.scheme and influx.scheme not in ("http", "https"):
                errors.append("influxdb.scheme must be http or https")
            if not influx.hostname:
                errors.append("influxdb.hostname is required when influxdb.url is not set")
            if not 0 < influx.port < 65536:
                errors.append("influxdb.port must be between 1 and 65535")
        elif not influx.url.startswith(("http://", "https://")):
            errors.append("influxdb.url must start with http:// or https://")
        if not influx.db:
            errors.append("influxdb.db is required")

        mqtt = self.mqtt
        if not mqtt.hostname:
            errors.append("mqtt.hostname is required")
        if not 0 < mqtt.port < 65536:
            errors.append("mqtt.port must be between 1 and 65535")
        if mqtt.qos not in (0, 1, 2):
            errors.append("mqtt.qos must be 0, 1 or 2")
        if not mqtt.topics:
            errors.append("mqtt.topics must list at least one topic filter")

        if errors:
            raise ConfigurationError("; ".join(errors))

    def to_dict(self, mask_secrets: bool = True) -> Dict[str, Any]:
        """Convert configuration to a dictionary, masking passwords by default."""
        data = {
            "general": asdict(self.general),
            "mqtt": asdict(self.mqtt),
            "influxdb": asdict(self.influxdb),
        }
        if mask_secrets:
            for section in ("mqtt", "influxdb"):
                if data[section].get("password"):
                    data[section]["password"] = MASK
        return data


def _section(cls, raw: Optional[Dict[str, Any]]):
    if raw is None:
        return cls()
    if not isinstance(raw, dict):
        raise ConfigurationError(f"{cls.__name__} section must be a mapping")

    known = {f.name for f in fields(cls)}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise ConfigurationError(f"unknown keys for {cls.__name__}: {', '.join(unknown)}")
    # YAML null means "use the default"
    return cls(**{key: value for key, value in raw.items() if value is not None})


def load_config(path: Optional[Union[str, Path]] = None) -> Config:
    """
    Load, override from environment and validate configuration.

    Args:
        path: YAML file path (defaults to ~/.mqforward/config.yaml)

    Returns:
        Validated Config

    Raises:
        ConfigurationError: If the file is missing, unparsable or invalid
    """
    config_path = Path(expand_path(path)) if path else DEFAULT_CONFIG_PATH

    if not config_path.exists():
        raise ConfigurationError(f"configuration file not found: {config_path}")

    try:
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"could not read {config_path}: {e}") from e

    config = Config.from_dict(data, config_path=config_path)
    config.load_from_env()
    config.validate()
    return config
