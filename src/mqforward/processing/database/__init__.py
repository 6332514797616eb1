# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
InfluxDB write path: line protocol serialization and the HTTP writer.
"""

from .line_protocol import to_line_protocol, point_to_line
from .influxdb_writer import InfluxDBWriter, build_host_url, load_ssl_context

__all__ = [
    "to_line_protocol",
    "point_to_line",
    "InfluxDBWriter",
    "build_host_url",
    "load_ssl_context",
]
