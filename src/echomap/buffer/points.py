"""Capacity-bounded, insertion-ordered store of display points.

Once the buffer holds ``capacity`` points further inserts are rejected;
nothing is ever evicted. A snapshot is a view bounded by the length at
call time, so points inserted afterwards (or a later :meth:`clear`)
never show up in it.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator, Sequence
from typing import TYPE_CHECKING, overload

from echomap.models.config import DEFAULT_CAPACITY

if TYPE_CHECKING:
    from echomap.stream.transform import Point

logger = logging.getLogger(__name__)


class PointSnapshot(Sequence["Point"]):
    """Read-only, restartable view of a buffer's contents at one instant."""

    def __init__(self, storage: list[Point], length: int) -> None:
        self._storage = storage
        self._length = length

    def __len__(self) -> int:
        return self._length

    @overload
    def __getitem__(self, index: int) -> Point: ...

    @overload
    def __getitem__(self, index: slice) -> list[Point]: ...

    def __getitem__(self, index: int | slice) -> Point | list[Point]:
        if isinstance(index, slice):
            return [self._storage[i] for i in range(*index.indices(self._length))]
        if index < 0:
            index += self._length
        if not 0 <= index < self._length:
            raise IndexError("snapshot index out of range")
        return self._storage[index]

    def __iter__(self) -> Iterator[Point]:
        for i in range(self._length):
            yield self._storage[i]

    def positions(self) -> list[tuple[float, float, float]]:
        """Return the ``(x, y, z)`` of every point, oldest first."""
        return [p.position for p in self]


class PointBuffer:
    """Fixed-capacity point store.

    Parameters:
        capacity: Maximum number of points held before inserts are rejected.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self._capacity = capacity
        self._storage: list[Point] = []
        self._rejected = 0
        self._lock = threading.Lock()

    # -- Properties -----------------------------------------------------------

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def is_full(self) -> bool:
        return len(self._storage) >= self._capacity

    @property
    def rejected_count(self) -> int:
        """Inserts discarded because the buffer was full."""
        return self._rejected

    def __len__(self) -> int:
        return len(self._storage)

    # -- Mutation -------------------------------------------------------------

    def insert(self, point: Point) -> bool:
        """Append *point* if there is room. Returns whether it was stored."""
        with self._lock:
            if len(self._storage) >= self._capacity:
                self._rejected += 1
                if self._rejected == 1:
                    logger.info(
                        "Point buffer full (%d points); dropping new points", self._capacity
                    )
                return False
            self._storage.append(point)
            return True

    def extend(self, points: Iterator[Point] | Sequence[Point]) -> int:
        """Insert each of *points* in order. Returns how many were stored."""
        return sum(1 for p in points if self.insert(p))

    def clear(self) -> None:
        """Drop every point.

        The old storage list is detached rather than emptied so existing
        snapshots keep their contents.
        """
        with self._lock:
            self._storage = []
            self._rejected = 0

    # -- Reads ----------------------------------------------------------------

    def snapshot(self) -> PointSnapshot:
        """Return an ordered view of the points held right now."""
        with self._lock:
            return PointSnapshot(self._storage, len(self._storage))
