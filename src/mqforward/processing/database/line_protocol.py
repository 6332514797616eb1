# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
InfluxDB line protocol serialization.

Reference: https://docs.influxdata.com/influxdb/v1/write_protocols/line_protocol_reference/
"""

import math
from typing import Any, Iterable

from ...capture.shared.models import Point


def _escape(value: str, specials: str) -> str:
    if "\n" in value:
        raise ValueError(f"newline not allowed in measurement or tag: {value!r}")
    for ch in specials:
        value = value.replace(ch, "\\" + ch)
    return value


def escape_measurement(name: str) -> str:
    return _escape(name, ", ")


def escape_tag(value: str) -> str:
    """Escape a tag key, tag value or field key."""
    return _escape(value, ",= ")


escape_field_key = escape_tag


def format_field_value(value: Any) -> str:
    """
    Format a field value by type.

    bool -> true/false, int -> 12i, float -> repr, anything else -> quoted string.
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return f"{value}i"
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            raise ValueError(f"field value {value!r} is not representable in line protocol")
        return repr(value)
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    text = str(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{text}"'


def point_to_line(point: Point) -> str:
    """
    Serialize a single point.

    Raises:
        ValueError: If the point has no series name or no fields
    """
    if not point.series:
        raise ValueError("point has an empty series name")
    if not point.fields:
        raise ValueError(f"point {point.series!r} has no fields")

    parts = [escape_measurement(point.series)]
    for key in sorted(point.tags):
        value = point.tags[key]
        if key == "" or value in ("", None):
            continue
        parts.append(f",{escape_tag(key)}={escape_tag(str(value))}")

    field_set = ",".join(
        f"{escape_field_key(key)}={format_field_value(value)}"
        for key, value in point.fields.items()
    )
    line = "".join(parts) + " " + field_set
    if point.timestamp is not None:
        line += f" {int(point.timestamp)}"
    return line


def to_line_protocol(points: Iterable[Point]) -> str:
    return "\n".join(point_to_line(point) for point in points)
