"""Tests for the bounded history buffer."""

import pytest

from repsense.buffer import RingBuffer
from repsense.config import InvalidConfigError


class TestRingBuffer:
    def test_capacity_must_be_positive(self):
        with pytest.raises(InvalidConfigError, match="capacity"):
            RingBuffer(0)

    def test_empty(self):
        buf = RingBuffer(3)
        assert buf.is_empty
        assert len(buf) == 0
        assert buf.latest() is None
        assert buf.oldest() is None
        assert buf.items() == []

    def test_keeps_most_recent_in_insertion_order(self):
        buf = RingBuffer(5)
        for i in range(12):
            buf.add(i)
        assert len(buf) == 5
        assert buf.is_full
        assert buf.items() == [7, 8, 9, 10, 11]
        assert list(buf) == [7, 8, 9, 10, 11]

    def test_partial_fill(self):
        buf = RingBuffer(4)
        buf.add("a")
        buf.add("b")
        assert not buf.is_full
        assert buf.items() == ["a", "b"]
        assert buf.oldest() == "a"
        assert buf.latest() == "b"

    def test_at_bounds(self):
        buf = RingBuffer(3)
        for i in range(4):
            buf.add(i)
        assert buf.at(0) == 1
        assert buf.at(2) == 3
        assert buf.at(3) is None
        assert buf.at(-1) is None

    def test_last_n(self):
        buf = RingBuffer(4)
        for i in range(6):
            buf.add(i)
        assert buf.last(2) == [4, 5]
        assert buf.last(10) == [2, 3, 4, 5]
        assert buf.last(0) == []

    def test_clear(self):
        buf = RingBuffer(2)
        buf.add(1)
        buf.add(2)
        buf.clear()
        assert buf.is_empty
        buf.add(3)
        assert buf.items() == [3]

    def test_many_adds_never_raise(self):
        buf = RingBuffer(1)
        for i in range(10_000):
            buf.add(i)
        assert buf.items() == [9_999]
