# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Tick-driven batch scheduler.

A single control loop owns the ring buffer, the status and the ticker, and
waits on three independent sources at once: the ticker, the inbound message
queue and the command queue. Because nothing else touches that state, no
locking is needed.

Stop semantics: a stop command flips the status and stops the ticker from
arming further periods; stop() only flips the status. The loop ends at the
next tick, raising SchedulerStopped, and whatever is still buffered at that
point is discarded, not drained.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Union

from ...capture.shared.errors import SchedulerStopped
from ...capture.shared.models import ClientStatus, Command, Message
from ..encoding.topic_mapping import SeriesEncoder
from .ring_buffer import RingBuffer

logger = logging.getLogger(__name__)

DEFAULT_TICK = 1  # seconds
MAX_BATCH_SIZE = 1000


class PeriodicTicker:
    """
    Fixed-period tick source on the event loop clock.

    Deadlines advance by whole periods, so a slow flush skips missed ticks
    instead of delivering a burst.
    """

    def __init__(self, interval: float = DEFAULT_TICK):
        if interval <= 0:
            raise ValueError(f"tick interval must be positive, got {interval!r}")
        self.interval = interval
        self._deadline: Optional[float] = None
        self.stopped = False

    async def wait(self) -> None:
        loop = asyncio.get_running_loop()
        if self.stopped:
            # no further periods once stopped
            await loop.create_future()
        now = loop.time()
        if self._deadline is None:
            self._deadline = now + self.interval
        elif self._deadline <= now:
            missed = int((now - self._deadline) // self.interval) + 1
            self._deadline += missed * self.interval
        delay = self._deadline - now
        await asyncio.sleep(delay)
        if not self.stopped:
            self._deadline += self.interval

    def stop(self) -> None:
        """
        Stop scheduling further periods.

        A wait already in progress still completes; any later wait() blocks
        until cancelled.
        """
        self.stopped = True


class BatchScheduler:
    """
    Buffers inbound messages and flushes them in batches on every tick.

    Lifecycle: STOPPED -> STARTED (start()) -> STOPPED (stop command or
    stop()). Once a tick is observed while STOPPED the scheduler is done
    for good; build a new one to resume.
    """

    def __init__(
        self,
        writer,
        encoder: SeriesEncoder,
        inbound: "asyncio.Queue[Message]",
        commands: "asyncio.Queue[Union[Command, str]]",
        tick_interval: float = DEFAULT_TICK,
        max_batch_size: int = MAX_BATCH_SIZE,
        ticker=None,
        log: Optional[logging.Logger] = None,
    ):
        """
        Initialize scheduler.

        Args:
            writer: Object with write(points) -> int, raising on failure
            encoder: Message to point encoder
            inbound: Queue the bus subscriber pushes messages onto
            commands: Queue of control commands
            tick_interval: Seconds between flushes
            max_batch_size: Maximum points per write; the buffer holds twice this
            ticker: Tick source with async wait() and stop() (PeriodicTicker by default)
            log: Logger handle (module logger by default)
        """
        if max_batch_size <= 0:
            raise ValueError(f"max_batch_size must be positive, got {max_batch_size!r}")

        self.writer = writer
        self.encoder = encoder
        self.inbound = inbound
        self.commands = commands
        self.max_batch_size = max_batch_size
        self.buffer = RingBuffer(max_batch_size * 2)
        self.ticker = ticker or PeriodicTicker(tick_interval)
        self.log = log or logger

        self.status = ClientStatus.STOPPED
        self._terminated = False
        self.stats: Dict[str, int] = {
            "received": 0,
            "dropped": 0,
            "flushes": 0,
            "written": 0,
            "write_failures": 0,
            "ignored_commands": 0,
        }

    @property
    def terminated(self) -> bool:
        return self._terminated

    def append(self, message: Any) -> None:
        """Buffer a message; evicts the oldest one when the buffer is full."""
        self.stats["received"] += 1
        evicted = self.buffer.append(message)
        if evicted is not None:
            self.stats["dropped"] += 1
            self.log.debug(f"buffer full, dropped oldest message: {getattr(evicted, 'topic', evicted)!r}")

    def stop(self) -> None:
        """Mark as stopped; the loop exits at the next tick."""
        self.status = ClientStatus.STOPPED

    def handle_command(self, command: Union[Command, str]) -> None:
        parsed = Command.parse(command)
        if parsed is None:
            self.stats["ignored_commands"] += 1
            self.log.debug(f"ignoring unknown command: {command!r}")
            return

        if parsed is Command.STOP:
            self.log.info("stop requested")
            self.ticker.stop()
            self.status = ClientStatus.STOPPED

    def _drain(self) -> List[Message]:
        batch = []
        for _ in range(self.max_batch_size):
            item = self.buffer.pop_front()
            if item is None:
                break
            if not isinstance(item, Message):
                self.log.warning(f"could not cast to message: {type(item).__name__}")
                break
            if item.is_empty():
                break
            batch.append(item)
        return batch

    async def flush(self) -> int:
        """
        Write up to max_batch_size buffered messages as one batch.

        The batch is removed from the buffer before the write and is not
        re-queued if the write fails.

        Returns:
            Number of points written (0 when empty or on failure)
        """
        if self.buffer.size() == 0:
            return 0

        self.log.debug(f"send to influxdb: size={self.buffer.size()}")
        batch = self._drain()
        if not batch:
            return 0

        self.stats["flushes"] += 1
        try:
            points = self.encoder.encode_batch(batch)
            written = await asyncio.to_thread(self.writer.write, points)
        except Exception as e:
            self.stats["write_failures"] += 1
            self.log.error(f"influxdb write err: {e}")
            return 0

        self.stats["written"] += written or 0
        return written or 0

    async def start(self) -> None:
        """
        Run the control loop until a tick is observed while stopped.

        Raises:
            SchedulerStopped: When the loop terminates, or immediately if
                this scheduler has already terminated
        """
        if self._terminated:
            raise SchedulerStopped("scheduler already terminated")

        self.status = ClientStatus.STARTED
        self.log.info(f"scheduler started (batch size {self.max_batch_size})")

        tick_task: Optional[asyncio.Future] = None
        message_task: Optional[asyncio.Future] = None
        command_task: Optional[asyncio.Future] = None
        try:
            while True:
                if tick_task is None:
                    tick_task = asyncio.ensure_future(self.ticker.wait())
                if message_task is None:
                    message_task = asyncio.ensure_future(self.inbound.get())
                if command_task is None:
                    command_task = asyncio.ensure_future(self.commands.get())

                done, _ = await asyncio.wait(
                    {tick_task, message_task, command_task},
                    return_when=asyncio.FIRST_COMPLETED,
                )
                order = [message_task, command_task, tick_task]

                # messages and commands before the tick
                for task in sorted(done, key=order.index):
                    if task is message_task:
                        message_task = None
                        self.append(task.result())
                    elif task is command_task:
                        command_task = None
                        self.handle_command(task.result())
                    else:
                        tick_task = None
                        task.result()
                        if self.status is ClientStatus.STOPPED:
                            self._terminate()
                        await self.flush()
        finally:
            for task in (tick_task, message_task, command_task):
                if task is not None and not task.done():
                    task.cancel()

    def _terminate(self) -> None:
        self._terminated = True
        discarded = self.buffer.size()
        self.buffer.clear()
        self.log.info(f"stopped by status, discarded {discarded} buffered messages")
        raise SchedulerStopped("stopped by status")
