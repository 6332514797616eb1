# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
MQTT subscriber feeding the forwarder's inbound queue.
"""

from .subscriber import MqttSubscriber

__all__ = ["MqttSubscriber"]
