# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Fast path: bounded ingest buffer and the tick-driven flush scheduler.
"""

from .ring_buffer import RingBuffer
from .scheduler import BatchScheduler, PeriodicTicker, DEFAULT_TICK, MAX_BATCH_SIZE

__all__ = ["RingBuffer", "BatchScheduler", "PeriodicTicker", "DEFAULT_TICK", "MAX_BATCH_SIZE"]
