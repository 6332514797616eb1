# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Data model shared by the subscriber, the scheduler and the encoder.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Union


@dataclass(frozen=True)
class Message:
    """
    A single message received from the bus.

    timestamp is in nanoseconds since the epoch; None lets InfluxDB assign
    the write time.
    """

    topic: str = ""
    payload: bytes = b""
    timestamp: Optional[int] = None

    def is_empty(self) -> bool:
        """Zero-value message, used as an end-of-batch marker."""
        return self.topic == "" and len(self.payload) == 0


@dataclass
class Point:
    """A time-series data point ready for line protocol serialization."""

    series: str
    tags: Dict[str, str] = field(default_factory=dict)
    fields: Dict[str, Any] = field(default_factory=dict)
    timestamp: Optional[int] = None


class ClientStatus(str, Enum):
    STOPPED = "stopped"
    STARTED = "started"


class Command(str, Enum):
    """Control commands accepted by the scheduler."""

    STOP = "stop"

    @classmethod
    def parse(cls, value: Union["Command", str]) -> Optional["Command"]:
        """
        Coerce a raw command value.

        Returns:
            The matching Command, or None for unrecognized values
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except (ValueError, TypeError):
            return None
