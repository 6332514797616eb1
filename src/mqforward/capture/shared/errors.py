# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Exception types raised across the forwarder.
"""


class MqforwardError(Exception):
    """Base class for all forwarder errors."""


class ConfigurationError(MqforwardError):
    """Raised for invalid configuration: bad URL, unreadable certificate, bad values."""


class ConnectionCheckError(MqforwardError):
    """Raised when the InfluxDB connectivity check fails at construction time."""


class WriteError(MqforwardError):
    """Raised when a batch write to InfluxDB fails."""

    def __init__(self, message: str, status_code=None):
        super().__init__(message)
        self.status_code = status_code


class SchedulerStopped(MqforwardError):
    """Raised when the scheduler loop observes a tick while stopped."""
