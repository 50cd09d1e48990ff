from __future__ import annotations

from collections.abc import Iterator
from typing import List, Optional

from .models import DisplaySample

DEFAULT_DISPLAY_CAPACITY = 30


class RollingBuffer:
    """
    Fixed-capacity FIFO of the most recent display samples.

    Slots are reused in place; once full, each append overwrites the oldest
    sample. Only the live chart reads from here. Statistics use the full
    session accumulation instead.
    """

    def __init__(self, capacity: int = DEFAULT_DISPLAY_CAPACITY) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._capacity = int(capacity)
        self._slots: List[Optional[DisplaySample]] = [None] * self._capacity
        self._head = 0  # index of the oldest sample
        self._count = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    def append(self, sample: DisplaySample) -> None:
        tail = (self._head + self._count) % self._capacity
        self._slots[tail] = sample
        if self._count == self._capacity:
            self._head = (self._head + 1) % self._capacity
        else:
            self._count += 1

    def clear(self) -> None:
        self._slots = [None] * self._capacity
        self._head = 0
        self._count = 0

    def snapshot(self) -> List[DisplaySample]:
        """Copy of the contents, oldest first."""
        return list(self)

    def latest(self) -> Optional[DisplaySample]:
        if self._count == 0:
            return None
        return self._slots[(self._head + self._count - 1) % self._capacity]

    def __len__(self) -> int:
        return self._count

    def __iter__(self) -> Iterator[DisplaySample]:
        for offset in range(self._count):
            sample = self._slots[(self._head + offset) % self._capacity]
            assert sample is not None
            yield sample
