# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Tests for the bounded ring buffer.
"""

import pytest

from mqforward.processing.fast_path.ring_buffer import RingBuffer


class TestRingBufferBasics:
    """Test FIFO behaviour below capacity."""

    def test_pop_returns_items_in_append_order(self):
        buf = RingBuffer(5)
        for i in range(5):
            buf.append(i)

        assert [buf.pop_front() for _ in range(5)] == [0, 1, 2, 3, 4]

    def test_pop_on_empty_returns_none(self):
        buf = RingBuffer(2)
        assert buf.pop_front() is None

        buf.append("a")
        buf.pop_front()
        assert buf.pop_front() is None

    def test_size_tracks_appends_and_pops(self):
        buf = RingBuffer(3)
        assert buf.size() == 0
        assert buf.is_empty()

        buf.append("a")
        buf.append("b")
        assert buf.size() == 2
        assert len(buf) == 2

        buf.pop_front()
        assert buf.size() == 1

    def test_wraps_around_the_underlying_slots(self):
        buf = RingBuffer(3)
        buf.append(1)
        buf.append(2)
        buf.pop_front()
        buf.append(3)
        buf.append(4)

        assert list(buf) == [2, 3, 4]
        assert buf.is_full()

    def test_iteration_does_not_consume(self):
        buf = RingBuffer(3)
        buf.append("x")
        buf.append("y")

        assert list(buf) == ["x", "y"]
        assert buf.size() == 2

    @pytest.mark.parametrize("capacity", [0, -1, 2.5, None, True])
    def test_rejects_invalid_capacity(self, capacity):
        with pytest.raises(ValueError):
            RingBuffer(capacity)


class TestRingBufferEviction:
    """Test drop-oldest eviction at capacity."""

    def test_append_at_capacity_evicts_oldest(self):
        buf = RingBuffer(3)
        for item in ("a", "b", "c"):
            assert buf.append(item) is None

        evicted = buf.append("d")

        assert evicted == "a"
        assert list(buf) == ["b", "c", "d"]
        assert buf.dropped == 1

    def test_size_never_exceeds_capacity(self):
        buf = RingBuffer(4)
        for i in range(50):
            buf.append(i)
            assert buf.size() <= buf.capacity

        assert buf.size() == 4
        assert buf.dropped == 46
        assert [buf.pop_front() for _ in range(4)] == [46, 47, 48, 49]

    def test_evicted_item_is_oldest_after_partial_drain(self):
        buf = RingBuffer(2)
        buf.append(1)
        buf.append(2)
        buf.pop_front()
        buf.append(3)

        assert buf.append(4) == 2
        assert list(buf) == [3, 4]

    def test_clear_empties_without_counting_drops(self):
        buf = RingBuffer(2)
        buf.append(1)
        buf.append(2)
        buf.clear()

        assert buf.is_empty()
        assert buf.dropped == 0
        assert buf.pop_front() is None
