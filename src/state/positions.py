"""
Position snapshot store.

Per (series_id, chain_id) the node keeps the last position state reported for
that chain, and per series an aggregate across every registered chain.

Snapshot long/short fields are last-reported-wins: a sync overwrites them.
Locked collateral is maintained by lock/release on the owning chain and
overwritten by relayed syncs on the hub. Aggregates are never edited in
place; they are rebuilt by `src.core.aggregation.recompute_aggregate`.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Tuple

from ..core.errors import InvalidParameterError, SeriesAlreadySettled

SeriesId = int


def validate_amount(value: int, *, name: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        raise InvalidParameterError(f"{name} must be a non-negative int, got {value!r}")
    return value


def validate_series_id(series_id: int) -> int:
    if not isinstance(series_id, int) or isinstance(series_id, bool) or series_id < 0:
        raise InvalidParameterError(f"series_id must be a non-negative int, got {series_id!r}")
    return series_id


@dataclass(frozen=True)
class ChainPositionSnapshot:
    """Position state of one series on one chain."""

    chain_id: int
    long_amount: int = 0
    short_amount: int = 0
    locked_collateral: int = 0
    # Zero until settlement assigns it.
    settlement_delta: int = 0

    @property
    def has_position(self) -> bool:
        return self.long_amount != 0 or self.short_amount != 0


@dataclass(frozen=True)
class AggregatedPosition:
    """Series totals across every registered chain."""

    series_id: SeriesId
    total_long: int = 0
    total_short: int = 0
    total_collateral: int = 0
    net_settlement: int = 0
    settled: bool = False


class SnapshotStore:
    """
    Mutable tables: (series_id, chain_id) -> snapshot, series_id -> aggregate.

    Entries are created lazily and never removed.
    """

    def __init__(self) -> None:
        self._snapshots: Dict[Tuple[SeriesId, int], ChainPositionSnapshot] = {}
        self._aggregates: Dict[SeriesId, AggregatedPosition] = {}

    # -- snapshots -----------------------------------------------------------

    def snapshot(self, series_id: SeriesId, chain_id: int) -> ChainPositionSnapshot:
        """Return the snapshot, or an all-zero snapshot if none was recorded."""
        snap = self._snapshots.get((series_id, chain_id))
        if snap is None:
            return ChainPositionSnapshot(chain_id=chain_id)
        return snap

    def has_snapshot(self, series_id: SeriesId, chain_id: int) -> bool:
        return (series_id, chain_id) in self._snapshots

    def overwrite_position(
        self,
        series_id: SeriesId,
        chain_id: int,
        *,
        long_amount: int,
        short_amount: int,
        locked_collateral: Optional[int] = None,
    ) -> ChainPositionSnapshot:
        """
        Replace long/short (and optionally collateral) with reported values.

        On a settled series only a report identical to the stored snapshot is
        accepted, as a no-op.
        """
        validate_amount(long_amount, name="long_amount")
        validate_amount(short_amount, name="short_amount")
        current = self.snapshot(series_id, chain_id)
        updated = replace(current, long_amount=long_amount, short_amount=short_amount)
        if locked_collateral is not None:
            validate_amount(locked_collateral, name="locked_collateral")
            updated = replace(updated, locked_collateral=locked_collateral)
        if self.is_settled(series_id):
            if updated != current:
                raise SeriesAlreadySettled(series_id)
            return current
        self._snapshots[(series_id, chain_id)] = updated
        return updated

    def add_collateral(self, series_id: SeriesId, chain_id: int, delta: int) -> ChainPositionSnapshot:
        """Add (or, with a negative delta, remove) locked collateral."""
        current = self.snapshot(series_id, chain_id)
        new_locked = current.locked_collateral + delta
        if new_locked < 0:
            raise InvalidParameterError(
                f"locked collateral for series {series_id} on chain {chain_id} would go negative"
            )
        updated = replace(current, locked_collateral=new_locked)
        self._snapshots[(series_id, chain_id)] = updated
        return updated

    def set_settlement_delta(self, series_id: SeriesId, chain_id: int, delta: int) -> ChainPositionSnapshot:
        updated = replace(self.snapshot(series_id, chain_id), settlement_delta=delta)
        self._snapshots[(series_id, chain_id)] = updated
        return updated

    def snapshots_for_series(self, series_id: SeriesId) -> List[ChainPositionSnapshot]:
        return [s for (sid, _cid), s in sorted(self._snapshots.items()) if sid == series_id]

    def all_snapshots(self) -> Dict[Tuple[SeriesId, int], ChainPositionSnapshot]:
        return dict(self._snapshots)

    # -- aggregates ----------------------------------------------------------

    def aggregate(self, series_id: SeriesId) -> AggregatedPosition:
        agg = self._aggregates.get(series_id)
        if agg is None:
            return AggregatedPosition(series_id=series_id)
        return agg

    def put_aggregate(self, aggregate: AggregatedPosition) -> None:
        current = self._aggregates.get(aggregate.series_id)
        if current is not None and current.settled and aggregate != current:
            raise SeriesAlreadySettled(aggregate.series_id)
        self._aggregates[aggregate.series_id] = aggregate

    def is_settled(self, series_id: SeriesId) -> bool:
        return self.aggregate(series_id).settled

    def all_aggregates(self) -> Dict[SeriesId, AggregatedPosition]:
        return dict(self._aggregates)

    def __repr__(self) -> str:
        return f"SnapshotStore({len(self._snapshots)} snapshots, {len(self._aggregates)} series)"
