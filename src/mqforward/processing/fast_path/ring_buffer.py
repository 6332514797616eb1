# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Bounded ring buffer used as the ingest buffer.

When full, appending evicts the oldest item: under sustained overload the
buffer keeps the freshest data instead of blocking the producer.
"""

from typing import Any, Iterator, List, Optional


class RingBuffer:
    """
    Fixed-capacity FIFO with drop-oldest eviction.

    Not thread-safe. The scheduler loop is the only reader and writer.
    """

    def __init__(self, capacity: int):
        """
        Initialize ring buffer.

        Args:
            capacity: Maximum number of items held at once

        Raises:
            ValueError: If capacity is not a positive integer
        """
        if not isinstance(capacity, int) or isinstance(capacity, bool) or capacity <= 0:
            raise ValueError(f"capacity must be a positive integer, got {capacity!r}")

        self._capacity = capacity
        self._slots: List[Any] = [None] * capacity
        self._head = 0
        self._size = 0
        self.dropped = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    def append(self, item: Any) -> Optional[Any]:
        """
        Add item to the tail.

        Args:
            item: Item to buffer

        Returns:
            The evicted oldest item if the buffer was full, otherwise None
        """
        evicted = None
        if self._size == self._capacity:
            evicted = self._slots[self._head]
            self._slots[self._head] = None
            self._head = (self._head + 1) % self._capacity
            self._size -= 1
            self.dropped += 1

        tail = (self._head + self._size) % self._capacity
        self._slots[tail] = item
        self._size += 1
        return evicted

    def pop_front(self) -> Optional[Any]:
        """
        Remove and return the head item.

        Returns:
            The oldest item, or None if the buffer is empty
        """
        if self._size == 0:
            return None

        item = self._slots[self._head]
        self._slots[self._head] = None
        self._head = (self._head + 1) % self._capacity
        self._size -= 1
        return item

    def size(self) -> int:
        return self._size

    def __len__(self) -> int:
        return self._size

    def is_empty(self) -> bool:
        return self._size == 0

    def is_full(self) -> bool:
        return self._size == self._capacity

    def clear(self) -> None:
        """Discard all buffered items. Does not count as eviction."""
        self._slots = [None] * self._capacity
        self._head = 0
        self._size = 0

    def __iter__(self) -> Iterator[Any]:
        # head to tail, without consuming
        for offset in range(self._size):
            yield self._slots[(self._head + offset) % self._capacity]
