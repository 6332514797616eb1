# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Tests for ForwarderServer wiring and shutdown.
"""

import asyncio
from unittest.mock import Mock, patch

import pytest

from mqforward.capture.shared.config import Config
from mqforward.capture.shared.errors import ConnectionCheckError
from mqforward.capture.shared.models import Message
from mqforward.processing.server import ForwarderServer


async def _settle(condition, attempts=5000):
    for _ in range(attempts):
        if condition():
            return
        await asyncio.sleep(0.001)
    raise AssertionError("condition not reached")


class TestForwarderServer:
    """Test server lifecycle with mocked writer and subscriber."""

    def test_forwards_until_stop_requested(self):
        writer = Mock()
        writer.write.side_effect = lambda points: len(points)

        async def scenario():
            server = ForwarderServer(Config(), max_batch_size=10)
            with patch("mqforward.processing.server.InfluxDBWriter.from_config", return_value=writer), \
                    patch("mqforward.processing.server.MqttSubscriber") as subscriber_cls:
                task = asyncio.create_task(server.start())
                await _settle(lambda: server.running)

                server.inbound.put_nowait(Message("weather/paris/temp", b"21.5"))
                await _settle(lambda: writer.write.called)

                server.request_stop()
                await asyncio.wait_for(task, timeout=5)

            subscriber_cls.return_value.start.assert_called_once()
            subscriber_cls.return_value.stop.assert_called_once()
            writer.close.assert_called_once()
            assert server.running is False
            assert server.scheduler.stats["written"] == 1

        asyncio.run(scenario())

    def test_writer_construction_failure_propagates(self):
        async def scenario():
            server = ForwarderServer(Config())
            with patch(
                "mqforward.processing.server.InfluxDBWriter.from_config",
                side_effect=ConnectionCheckError("influxdb at http://localhost:8086 is not reachable"),
            ):
                with pytest.raises(ConnectionCheckError):
                    await server.start()

            assert server.running is False
            assert server.scheduler is None

        asyncio.run(scenario())

    def test_request_stop_before_start_is_noop(self):
        server = ForwarderServer(Config())

        server.request_stop()

        assert server.commands is None
