# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

from .topic_mapping import MappingConfig, TopicPattern, SeriesEncoder, TOPIC_TAG, VALUE_FIELD

__all__ = ["MappingConfig", "TopicPattern", "SeriesEncoder", "TOPIC_TAG", "VALUE_FIELD"]
