# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Main server for mqforward.

Wires the MQTT subscriber, the batch scheduler and the InfluxDB writer
together, and handles shutdown.
"""

import asyncio
import logging
import signal
from typing import Optional

from ..capture.mqtt.subscriber import MqttSubscriber
from ..capture.shared.config import Config
from ..capture.shared.errors import SchedulerStopped
from ..capture.shared.models import Command
from .database.influxdb_writer import InfluxDBWriter
from .encoding.topic_mapping import MappingConfig, SeriesEncoder
from .fast_path.scheduler import BatchScheduler, MAX_BATCH_SIZE

logger = logging.getLogger(__name__)


class ForwarderServer:
    """
    Main server for forwarding.

    Manages:
    - InfluxDB writer (connectivity checked at startup)
    - MQTT subscription
    - Batch scheduler
    - Graceful shutdown on SIGINT/SIGTERM
    """

    def __init__(self, config: Config, max_batch_size: int = MAX_BATCH_SIZE):
        """
        Initialize forwarder server.

        Args:
            config: Loaded configuration
            max_batch_size: Maximum points per InfluxDB write
        """
        self.config = config
        self.max_batch_size = max_batch_size

        self.writer: Optional[InfluxDBWriter] = None
        self.subscriber: Optional[MqttSubscriber] = None
        self.scheduler: Optional[BatchScheduler] = None
        self.inbound: Optional[asyncio.Queue] = None
        self.commands: Optional[asyncio.Queue] = None
        self.running = False

    def _initialize_writer(self) -> None:
        """Create the InfluxDB writer; raises if the database is unusable."""
        logger.info("Initializing InfluxDB writer")
        self.writer = InfluxDBWriter.from_config(self.config.influxdb)

    def _initialize_scheduler(self) -> None:
        logger.info("Initializing batch scheduler")

        self.inbound = asyncio.Queue()
        self.commands = asyncio.Queue()
        encoder = SeriesEncoder(MappingConfig.from_influxdb_conf(self.config.influxdb))

        self.scheduler = BatchScheduler(
            writer=self.writer,
            encoder=encoder,
            inbound=self.inbound,
            commands=self.commands,
            tick_interval=self.config.influxdb.effective_tick,
            max_batch_size=self.max_batch_size,
            log=logging.getLogger("mqforward.scheduler"),
        )

    def _initialize_subscriber(self) -> None:
        logger.info("Initializing MQTT subscriber")
        self.subscriber = MqttSubscriber(self.config.mqtt, self.inbound)

    def _install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.request_stop)
            except NotImplementedError:
                # not supported on this platform's event loop
                logger.debug(f"signal handler for {sig.name} not installed")

    def request_stop(self) -> None:
        """Ask the scheduler to stop; it exits at its next tick."""
        if self.commands is not None:
            logger.info("Received shutdown signal")
            self.commands.put_nowait(Command.STOP)

    async def start(self) -> None:
        """Start the server; returns once the scheduler has stopped."""
        if self.running:
            logger.warning("Server already running")
            return

        logger.info("Starting mqforward...")

        try:
            self._initialize_writer()
            self._initialize_scheduler()
            self._initialize_subscriber()
            self._install_signal_handlers()

            self.running = True
            self.subscriber.start()

            # blocks until a tick is observed after a stop
            await self.scheduler.start()

        except SchedulerStopped:
            logger.info("Scheduler stopped")
        except Exception as e:
            logger.error(f"Failed to start server: {e}")
            raise
        finally:
            await self.stop()

    async def stop(self) -> None:
        """Release the subscriber and the writer."""
        if self.subscriber:
            self.subscriber.stop()
            self.subscriber = None

        if self.writer:
            self.writer.close()
            self.writer = None

        if self.running:
            self.running = False
            if self.scheduler:
                logger.info(f"Server stopped: {self.scheduler.stats}")


def setup_logging(level: str = "INFO") -> None:
    """Setup logging configuration."""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
