# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Shared models, configuration and errors.
"""

from .errors import (
    MqforwardError,
    ConfigurationError,
    ConnectionCheckError,
    WriteError,
    SchedulerStopped,
)
from .models import Message, Point, ClientStatus, Command

__all__ = [
    "MqforwardError",
    "ConfigurationError",
    "ConnectionCheckError",
    "WriteError",
    "SchedulerStopped",
    "Message",
    "Point",
    "ClientStatus",
    "Command",
]
