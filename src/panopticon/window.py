"""Bounded sample history for charts."""

from collections import deque
from collections.abc import Iterable, Iterator
from typing import Generic, TypeVar

T = TypeVar("T")


class RollingWindow(Generic[T]):
    """
    Keeps the most recent samples of a metric.

    Eviction is checked before insertion, so a full window holds
    ``max_size + 1`` samples.
    """

    def __init__(self, max_size: int, initial: Iterable[T] = ()) -> None:
        if max_size < 0:
            raise ValueError("max_size must not be negative")
        self._max_size = max_size
        self._samples: deque[T] = deque()
        for sample in initial:
            self.push(sample)

    @property
    def max_size(self) -> int:
        return self._max_size

    def push(self, sample: T) -> None:
        """Append a sample, dropping the oldest one if the window is over capacity."""
        if len(self._samples) > self._max_size:
            self._samples.popleft()
        self._samples.append(sample)

    def seed(self, sample: T) -> None:
        """Fill an empty window with ``max_size`` copies of ``sample``."""
        if not self._samples:
            self._samples.extend([sample] * self._max_size)

    def to_sequence(self) -> list[T]:
        """Return the samples oldest first."""
        return list(self._samples)

    @property
    def latest(self) -> T | None:
        return self._samples[-1] if self._samples else None

    def __len__(self) -> int:
        return len(self._samples)

    def __iter__(self) -> Iterator[T]:
        return iter(self._samples)
