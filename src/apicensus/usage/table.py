"""Thread-safe per-path usage counters.

:class:`UsageTable` maps a monitored path to a fixed-size list of counts,
one slot per :class:`~apicensus.models.DateSegment` plus
:data:`RESERVED_SLOTS` trailing slots. Collector threads call
:meth:`UsageTable.add` concurrently:

* inserting a new path is serialized by a table-wide lock;
* updating an existing path holds only that path's lock, so contributions
  to different paths never contend.

Once collection finishes the table is :meth:`frozen <UsageTable.freeze>`
and readers get copies, never the live lists.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator, Mapping

from apicensus.exceptions import UsageTableFrozenError

RESERVED_SLOTS = 10
"""Extra trailing capacity kept after the last segment slot."""


class _Counter:
    __slots__ = ("lock", "counts")

    def __init__(self, size: int) -> None:
        self.lock = threading.Lock()
        self.counts = [0] * size


class UsageTable:
    """Concurrent mapping of path -> per-segment call counts.

    Args:
        segment_count: Number of segments the counts are indexed by.

    Example::

        table = UsageTable(segment_count=3)
        table.add("/api/orders", 0, 12)
        table.add("/api/orders", 2, 5)
        table.counts("/api/orders")[:3]   # [12, 0, 5]
        table.total("/api/orders")        # 17
    """

    def __init__(self, segment_count: int) -> None:
        if segment_count < 0:
            raise ValueError("segment_count must not be negative")
        self._segment_count = segment_count
        self._capacity = segment_count + RESERVED_SLOTS
        self._insert_lock = threading.Lock()
        self._counters: dict[str, _Counter] = {}
        self._frozen = False

    @property
    def segment_count(self) -> int:
        return self._segment_count

    @property
    def capacity(self) -> int:
        """Slots per path (segments plus reserved capacity)."""
        return self._capacity

    @property
    def frozen(self) -> bool:
        return self._frozen

    def add(self, path: str, segment_index: int, count: int) -> None:
        """Add *count* to ``path``'s slot *segment_index*.

        Raises:
            UsageTableFrozenError: If the table has been frozen.
            IndexError: If *segment_index* is outside the slot range.
        """
        if self._frozen:
            raise UsageTableFrozenError("usage table is frozen; collection has finished")
        if not 0 <= segment_index < self._capacity:
            raise IndexError(
                f"segment index {segment_index} out of range (capacity {self._capacity})"
            )
        counter = self._counters.get(path)
        if counter is None:
            with self._insert_lock:
                counter = self._counters.setdefault(path, _Counter(self._capacity))
        with counter.lock:
            counter.counts[segment_index] += count

    def merge(self, segment_index: int, counts: Mapping[str, int]) -> None:
        """Add every ``path -> count`` of *counts* into *segment_index*."""
        for path, count in counts.items():
            self.add(path, segment_index, count)

    def freeze(self) -> UsageTable:
        """Reject further updates and return the table."""
        with self._insert_lock:
            self._frozen = True
        return self

    def counts(self, path: str) -> list[int]:
        """Return a copy of ``path``'s slots (all zeros if unknown)."""
        counter = self._counters.get(path)
        if counter is None:
            return [0] * self._capacity
        with counter.lock:
            return list(counter.counts)

    def total(self, path: str) -> int:
        """Sum of every slot of ``path`` (0 if unknown)."""
        return sum(self.counts(path))

    def snapshot(self) -> dict[str, list[int]]:
        """Copy of the whole table."""
        return {path: self.counts(path) for path in list(self._counters)}

    def paths(self) -> list[str]:
        return list(self._counters)

    def __contains__(self, path: object) -> bool:
        return path in self._counters

    def __len__(self) -> int:
        return len(self._counters)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._counters))
