# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Tests for configuration loading and validation.
"""

import pytest

from mqforward.capture.shared.config import (
    Config,
    InfluxDBConf,
    DEFAULT_TICK,
    MASK,
    expand_path,
    load_config,
)
from mqforward.capture.shared.errors import ConfigurationError


FULL_CONFIG = """
general:
  debug: true
mqtt:
  hostname: broker.local
  port: 1884
  topics: ["weather/#", "home/+/temp"]
  qos: 1
influxdb:
  hostname: influx.local
  port: 8087
  db: sensors
  password: secret
  tick: 5
  tags_attributes: [loc, sensor]
  topic_map: ["weather/{loc}/{sensor}"]
  no_topic_tag: true
  series: weather
"""


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("MQFORWARD_DEBUG", "MQFORWARD_INFLUXDB_URL",
                 "MQFORWARD_INFLUXDB_PASSWORD", "MQFORWARD_MQTT_PASSWORD"):
        monkeypatch.delenv(name, raising=False)


class TestLoadConfig:
    """Test loading configuration from YAML."""

    def test_full_config(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(FULL_CONFIG)

        config = load_config(path)

        assert config.general.debug is True
        assert config.mqtt.hostname == "broker.local"
        assert config.mqtt.topics == ["weather/#", "home/+/temp"]
        assert config.mqtt.qos == 1
        assert config.influxdb.db == "sensors"
        assert config.influxdb.tick == 5
        assert config.influxdb.tags_attributes == ["loc", "sensor"]
        assert config.influxdb.topic_map == ["weather/{loc}/{sensor}"]
        assert config.influxdb.no_topic_tag is True
        assert config.influxdb.series == "weather"
        assert config.config_path == path

    def test_empty_file_uses_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")

        config = load_config(path)

        assert config.influxdb.hostname == "localhost"
        assert config.influxdb.port == 8086
        assert config.mqtt.topics == ["#"]

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(ConfigurationError):
            load_config(tmp_path / "missing.yaml")

    def test_invalid_yaml_raises(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("influxdb: [unclosed")

        with pytest.raises(ConfigurationError):
            load_config(path)

    def test_unknown_key_raises(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("influxdb:\n  hostnme: typo\n")

        with pytest.raises(ConfigurationError) as exc_info:
            load_config(path)
        assert "hostnme" in str(exc_info.value)

    def test_null_values_use_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("influxdb:\n  series:\n  topic_map:\n")

        config = load_config(path)

        assert config.influxdb.series == ""
        assert config.influxdb.topic_map == []

    def test_env_overrides(self, tmp_path, monkeypatch):
        path = tmp_path / "config.yaml"
        path.write_text(FULL_CONFIG)
        monkeypatch.setenv("MQFORWARD_INFLUXDB_URL", "https://cloud:443")
        monkeypatch.setenv("MQFORWARD_INFLUXDB_PASSWORD", "from-env")

        config = load_config(path)

        assert config.influxdb.url == "https://cloud:443"
        assert config.influxdb.password == "from-env"

    def test_tilde_expanded(self, tmp_path, monkeypatch):
        monkeypatch.setenv("HOME", str(tmp_path))
        (tmp_path / "config.yaml").write_text("")

        config = load_config("~/config.yaml")

        assert config.config_path == tmp_path / "config.yaml"


class TestValidate:
    """Test validation errors."""

    @pytest.mark.parametrize("influxdb,mqtt", [
        ({"tick": -1}, {}),
        ({"scheme": "ftp"}, {}),
        ({"port": 0}, {}),
        ({"url": "influx:8086"}, {}),
        ({"db": ""}, {}),
        ({}, {"qos": 3}),
        ({}, {"topics": []}),
        ({}, {"hostname": ""}),
    ])
    def test_invalid_values(self, influxdb, mqtt):
        config = Config.from_dict({"influxdb": influxdb, "mqtt": mqtt})

        with pytest.raises(ConfigurationError):
            config.validate()

    def test_defaults_are_valid(self):
        Config().validate()

    def test_section_must_be_mapping(self):
        with pytest.raises(ConfigurationError):
            Config.from_dict({"influxdb": ["not", "a", "mapping"]})


class TestHelpers:
    """Test small helpers."""

    def test_zero_tick_means_default(self):
        assert InfluxDBConf(tick=0).effective_tick == DEFAULT_TICK
        assert InfluxDBConf(tick=3).effective_tick == 3

    def test_to_dict_masks_passwords(self):
        config = Config()
        config.influxdb.password = "secret"

        data = config.to_dict()

        assert data["influxdb"]["password"] == MASK
        assert data["mqtt"]["password"] == ""
        assert config.to_dict(mask_secrets=False)["influxdb"]["password"] == "secret"

    def test_expand_path(self, monkeypatch, tmp_path):
        monkeypatch.setenv("HOME", str(tmp_path))

        assert expand_path("~/certs/ca.pem") == f"{tmp_path}/certs/ca.pem"
