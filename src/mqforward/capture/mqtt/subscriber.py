# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
MQTT subscriber.

Runs the paho-mqtt network loop in its own thread and hands every received
message to the asyncio inbound queue through call_soon_threadsafe.
"""

import asyncio
import logging
import ssl
import time
from typing import Optional

import paho.mqtt.client as mqtt

from ..shared.config import MqttConf, expand_path
from ..shared.errors import ConfigurationError
from ..shared.models import Message

logger = logging.getLogger(__name__)


class MqttSubscriber:
    """Subscribes to the configured topic filters and feeds the inbound queue."""

    def __init__(
        self,
        conf: MqttConf,
        inbound: "asyncio.Queue[Message]",
        loop: Optional[asyncio.AbstractEventLoop] = None,
        client: Optional[mqtt.Client] = None,
    ):
        """
        Initialize subscriber.

        Args:
            conf: MQTT configuration section
            inbound: Queue consumed by the scheduler
            loop: Event loop owning the queue (defaults to the running loop)
            client: Pre-built paho client (mainly for tests)
        """
        self.conf = conf
        self.inbound = inbound
        self.loop = loop or asyncio.get_running_loop()
        self.client = client or self._create_client()
        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect
        self.client.on_message = self._on_message
        self.received = 0

    def _create_client(self) -> mqtt.Client:
        client = mqtt.Client(
            callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
            client_id=self.conf.client_id,
        )
        if self.conf.username:
            client.username_pw_set(self.conf.username, self.conf.password or None)

        if self.conf.ca_certs or self.conf.insecure:
            context = ssl.create_default_context()
            for path in self.conf.ca_certs:
                path = expand_path(path)
                try:
                    context.load_verify_locations(cafile=path)
                except (OSError, ssl.SSLError) as e:
                    raise ConfigurationError(f"error while loading certificate {path}: {e}") from e
            if self.conf.insecure:
                context.check_hostname = False
                context.verify_mode = ssl.CERT_NONE
            client.tls_set_context(context)

        return client

    def _on_connect(self, client, userdata, flags, reason_code, properties=None):
        if reason_code.is_failure:
            logger.error(f"mqtt connect failed: {reason_code}")
            return

        logger.info(f"mqtt connected to {self.conf.hostname}:{self.conf.port}")
        # resubscribe on every (re)connect
        for topic in self.conf.topics:
            client.subscribe(topic, qos=self.conf.qos)
            logger.debug(f"subscribed: {topic}")

    def _on_disconnect(self, client, userdata, flags, reason_code, properties=None):
        if reason_code.is_failure:
            logger.warning(f"mqtt disconnected unexpectedly: {reason_code}")
        else:
            logger.info("mqtt disconnected")

    def _on_message(self, client, userdata, msg):
        message = Message(topic=msg.topic, payload=bytes(msg.payload), timestamp=time.time_ns())
        self.received += 1
        self.loop.call_soon_threadsafe(self.inbound.put_nowait, message)

    def start(self) -> None:
        """
        Connect and start the network loop thread.

        Raises:
            OSError: If the broker cannot be reached
        """
        logger.info(f"connecting to mqtt {self.conf.hostname}:{self.conf.port}")
        self.client.connect(self.conf.hostname, self.conf.port, keepalive=self.conf.keepalive)
        self.client.loop_start()

    def stop(self) -> None:
        self.client.disconnect()
        self.client.loop_stop()
