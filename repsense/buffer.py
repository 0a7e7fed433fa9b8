"""
Fixed-capacity circular history buffer.
"""
from __future__ import annotations

from typing import Generic, Iterator, Optional, TypeVar

from .config import InvalidConfigError

T = TypeVar("T")


class RingBuffer(Generic[T]):
    """
    Keeps the most recent ``capacity`` items. ``add`` is O(1) and overwrites the
    oldest slot once full; index 0 is always the oldest stored item.
    """

    def __init__(self, capacity: int):
        if capacity <= 0:
            raise InvalidConfigError(f"RingBuffer capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._slots: list[Optional[T]] = [None] * capacity
        self._head = 0  # next write position
        self._size = 0

    def add(self, item: T) -> None:
        self._slots[self._head] = item
        self._head = (self._head + 1) % self.capacity
        if self._size < self.capacity:
            self._size += 1

    def clear(self) -> None:
        self._slots = [None] * self.capacity
        self._head = 0
        self._size = 0

    def __len__(self) -> int:
        return self._size

    @property
    def is_empty(self) -> bool:
        return self._size == 0

    @property
    def is_full(self) -> bool:
        return self._size == self.capacity

    def _start(self) -> int:
        return (self._head - self._size) % self.capacity

    def at(self, index: int) -> Optional[T]:
        if index < 0 or index >= self._size:
            return None
        return self._slots[(self._start() + index) % self.capacity]

    def items(self) -> list[T]:
        """Stored items, oldest first."""
        start = self._start()
        return [self._slots[(start + i) % self.capacity] for i in range(self._size)]

    def __iter__(self) -> Iterator[T]:
        return iter(self.items())

    def latest(self) -> Optional[T]:
        return self.at(self._size - 1) if self._size else None

    def oldest(self) -> Optional[T]:
        return self.at(0)

    def last(self, n: int) -> list[T]:
        """The ``n`` most recent items, oldest first."""
        if n <= 0:
            return []
        return self.items()[-n:]
