# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Topic-to-tag mapping and message encoding.

A topic pattern is a '/'-delimited template such as ``weather/{loc}/{sensor}``.
Each segment is one of:

- a literal, which must equal the topic segment at the same position
  (``+`` matches any single segment, ``#`` matches the remainder)
- ``{name}``: binds the topic segment to tag ``name``
- ``{}``: binds to the next unused entry of tag_attribute_names
- ``{N}``: binds to tag_attribute_names[N]

Named placeholders are restricted to tag_attribute_names when that list is
non-empty. A topic shorter than the pattern yields only the tags it has
segments for.
"""

import re
import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Tuple

from ...capture.shared.models import Message, Point

logger = logging.getLogger(__name__)

TOPIC_TAG = "topic"
VALUE_FIELD = "value"
TOPIC_SEPARATOR = "/"

SINGLE_LEVEL_WILDCARD = "+"
MULTI_LEVEL_WILDCARD = "#"

_PLACEHOLDER_RE = re.compile(r"^\{([A-Za-z_][\w.\-]*|\d+)?\}$")


@dataclass(frozen=True)
class MappingConfig:
    """Immutable mapping policy handed to the encoder."""

    topic_patterns: Tuple[str, ...] = ()
    tag_attribute_names: Tuple[str, ...] = ()
    suppress_topic_tag: bool = False
    series_override: str = ""

    @classmethod
    def from_influxdb_conf(cls, conf) -> "MappingConfig":
        """Build from the influxdb configuration section."""
        return cls(
            topic_patterns=tuple(conf.topic_map or ()),
            tag_attribute_names=tuple(conf.tags_attributes or ()),
            suppress_topic_tag=bool(conf.no_topic_tag),
            series_override=conf.series or "",
        )


@dataclass(frozen=True)
class _Segment:
    literal: Optional[str] = None
    # None for literals and for placeholders that resolve to no tag
    tag_key: Optional[str] = None

    @property
    def is_placeholder(self) -> bool:
        return self.literal is None


@dataclass(frozen=True)
class TopicPattern:
    """A parsed topic pattern with placeholder positions resolved to tag keys."""

    template: str
    segments: Tuple[_Segment, ...] = field(default_factory=tuple)

    @classmethod
    def parse(cls, template: str, tag_attribute_names: Sequence[str] = ()) -> "TopicPattern":
        """
        Parse a pattern template.

        Args:
            template: Pattern such as ``weather/{loc}/{sensor}``
            tag_attribute_names: Ordered tag names for anonymous and indexed
                placeholders; also the allow-list for named ones

        Returns:
            Parsed TopicPattern
        """
        segments = []
        anonymous = 0
        for raw in template.split(TOPIC_SEPARATOR):
            match = _PLACEHOLDER_RE.match(raw)
            if match is None:
                segments.append(_Segment(literal=raw))
                continue

            name = match.group(1)
            if name is None:
                key = _nth(tag_attribute_names, anonymous)
                anonymous += 1
            elif name.isdigit():
                key = _nth(tag_attribute_names, int(name))
            elif tag_attribute_names and name not in tag_attribute_names:
                logger.debug(f"placeholder {{{name}}} in {template!r} not in tags_attributes, skipped")
                key = None
            else:
                key = name
            segments.append(_Segment(tag_key=key))

        return cls(template=template, segments=tuple(segments))

    def matches(self, topic_segments: Sequence[str]) -> bool:
        """Check literal segments against the topic's segments at the same positions."""
        for segment, value in zip(self.segments, topic_segments):
            if segment.is_placeholder or segment.literal == SINGLE_LEVEL_WILDCARD:
                continue
            if segment.literal == MULTI_LEVEL_WILDCARD:
                return True
            if segment.literal != value:
                return False
        return True

    def extract(self, topic_segments: Sequence[str]) -> List[Tuple[str, str]]:
        """
        Bind placeholders to topic segments, in pattern order.

        Returns:
            (tag_key, value) pairs; positions past the end of the topic and
            empty segments produce nothing
        """
        pairs = []
        for segment, value in zip(self.segments, topic_segments):
            if segment.literal == MULTI_LEVEL_WILDCARD:
                break
            if segment.tag_key is None or value == "":
                continue
            pairs.append((segment.tag_key, value))
        return pairs


def _nth(names: Sequence[str], index: int) -> Optional[str]:
    if 0 <= index < len(names):
        return names[index]
    return None


class SeriesEncoder:
    """
    Encodes bus messages into InfluxDB points.

    Stateless per call: the same message and mapping always produce the
    same point.
    """

    def __init__(self, mapping: Optional[MappingConfig] = None):
        """
        Initialize encoder.

        Args:
            mapping: Mapping policy (defaults to no patterns, topic tag on)
        """
        self.mapping = mapping or MappingConfig()
        self.patterns = [
            TopicPattern.parse(template, self.mapping.tag_attribute_names)
            for template in self.mapping.topic_patterns
        ]

    def series_name(self, topic: str) -> str:
        return self.mapping.series_override or topic

    def tags_for(self, topic: str) -> dict:
        """Extract tags for a topic; the first binding of a key wins."""
        topic_segments = topic.split(TOPIC_SEPARATOR)
        tags = {}
        for pattern in self.patterns:
            if not pattern.matches(topic_segments):
                continue
            for key, value in pattern.extract(topic_segments):
                tags.setdefault(key, value)

        if not self.mapping.suppress_topic_tag:
            tags[TOPIC_TAG] = topic
        return tags

    def encode(self, message: Message) -> Point:
        """
        Encode one message.

        Args:
            message: Message from the bus

        Returns:
            Point carrying the payload verbatim in the value field
        """
        return Point(
            series=self.series_name(message.topic),
            tags=self.tags_for(message.topic),
            fields={VALUE_FIELD: message.payload.decode("utf-8", errors="replace")},
            timestamp=message.timestamp,
        )

    def encode_batch(self, messages: Iterable[Message]) -> List[Point]:
        return [self.encode(message) for message in messages]
