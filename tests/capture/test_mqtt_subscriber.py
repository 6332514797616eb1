# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Tests for the MQTT subscriber.
"""

import asyncio
from types import SimpleNamespace
from unittest.mock import Mock

import pytest

from mqforward.capture.mqtt.subscriber import MqttSubscriber
from mqforward.capture.shared.config import MqttConf
from mqforward.capture.shared.errors import ConfigurationError
from mqforward.capture.shared.models import Message


class TestCallbacks:
    """Test paho callbacks with a mocked client."""

    def test_message_pushed_to_inbound_queue(self):
        async def scenario():
            inbound = asyncio.Queue()
            subscriber = MqttSubscriber(MqttConf(), inbound, client=Mock())

            subscriber._on_message(None, None, SimpleNamespace(topic="weather/paris/temp", payload=b"21.5"))
            message = await asyncio.wait_for(inbound.get(), timeout=1)

            assert isinstance(message, Message)
            assert message.topic == "weather/paris/temp"
            assert message.payload == b"21.5"
            assert message.timestamp > 0
            assert subscriber.received == 1

        asyncio.run(scenario())

    def test_subscribes_to_all_topics_on_connect(self):
        async def scenario():
            client = Mock()
            conf = MqttConf(topics=["a/#", "b/+"], qos=1)
            subscriber = MqttSubscriber(conf, asyncio.Queue(), client=client)

            subscriber._on_connect(client, None, {}, Mock(is_failure=False))

            assert [c.args for c in client.subscribe.call_args_list] == [("a/#",), ("b/+",)]
            assert all(c.kwargs == {"qos": 1} for c in client.subscribe.call_args_list)

        asyncio.run(scenario())

    def test_failed_connect_does_not_subscribe(self):
        async def scenario():
            client = Mock()
            subscriber = MqttSubscriber(MqttConf(), asyncio.Queue(), client=client)

            subscriber._on_connect(client, None, {}, Mock(is_failure=True))

            client.subscribe.assert_not_called()

        asyncio.run(scenario())

    def test_start_and_stop_drive_network_loop(self):
        async def scenario():
            client = Mock()
            conf = MqttConf(hostname="broker", port=1884, keepalive=30)
            subscriber = MqttSubscriber(conf, asyncio.Queue(), client=client)

            subscriber.start()
            client.connect.assert_called_once_with("broker", 1884, keepalive=30)
            client.loop_start.assert_called_once()

            subscriber.stop()
            client.disconnect.assert_called_once()
            client.loop_stop.assert_called_once()

        asyncio.run(scenario())


class TestClientCreation:
    """Test building the paho client from configuration."""

    def test_missing_ca_certificate_raises(self, tmp_path):
        async def scenario():
            conf = MqttConf(ca_certs=[str(tmp_path / "missing.pem")])
            with pytest.raises(ConfigurationError):
                MqttSubscriber(conf, asyncio.Queue())

        asyncio.run(scenario())

    def test_plain_client_created(self):
        async def scenario():
            subscriber = MqttSubscriber(MqttConf(username="user", password="pw"), asyncio.Queue())

            assert subscriber.client.on_message == subscriber._on_message

        asyncio.run(scenario())
