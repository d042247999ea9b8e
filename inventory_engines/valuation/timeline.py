"""
inventory_engines.valuation.timeline -- Point-in-time cost lookup.

A SnapshotTimeline answers "which costs were in effect for this sku at
moment t": the latest basis with ``recorded_at <= t``, or the earliest basis
when ``t`` precedes the whole history.

The history is sorted on construction, ascending by (recorded_at, version),
whatever order it arrives in.  Lookups are a ``bisect`` over the sorted
timestamps: O(log n) each after one O(n log n) sort.
"""

from __future__ import annotations

from bisect import bisect_right
from collections.abc import Iterable
from datetime import datetime

from inventory_engines.valuation.records import CostBasis
from inventory_kernel.domain.values import utc


class SnapshotTimeline:
    """Sorted, immutable cost history of one sku."""

    __slots__ = ("_bases", "_times")

    def __init__(self, bases: Iterable[CostBasis]):
        self._bases: tuple[CostBasis, ...] = tuple(
            sorted(bases, key=lambda b: (b.recorded_at, b.version))
        )
        self._times: tuple[datetime, ...] = tuple(b.recorded_at for b in self._bases)

    @classmethod
    def from_snapshots(cls, snapshots: Iterable) -> SnapshotTimeline:
        return cls(CostBasis.from_snapshot(s) for s in snapshots)

    def __len__(self) -> int:
        return len(self._bases)

    def __bool__(self) -> bool:
        return bool(self._bases)

    @property
    def bases(self) -> tuple[CostBasis, ...]:
        return self._bases

    def at(self, moment: datetime) -> CostBasis | None:
        """
        The basis in effect at ``moment``.

        Returns:
            The last basis recorded at or before ``moment`` (the highest
            version among equal timestamps); the earliest basis if
            ``moment`` precedes them all; ``None`` for an empty history.
        """
        if not self._bases:
            return None
        index = bisect_right(self._times, utc(moment))
        if index == 0:
            return self._bases[0]
        return self._bases[index - 1]
