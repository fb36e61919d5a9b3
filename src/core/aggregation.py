"""Aggregation engine.

``recompute_aggregate`` is the only way an ``AggregatedPosition``'s totals
change. It is a full resummation over every registered chain (active or not),
so it may run any number of times, in any order, after any mutating event:
with unchanged snapshots it is a no-op.

Locks, releases and syncs all call it; there is no separate incremental
collateral path to drift out of agreement with the snapshots.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Iterable

from ..state.positions import AggregatedPosition, SnapshotStore


def sum_snapshots(store: SnapshotStore, series_id: int, chain_ids: Iterable[int]) -> tuple[int, int, int]:
    """Return (total_long, total_short, total_collateral) across `chain_ids`."""
    total_long = 0
    total_short = 0
    total_collateral = 0
    for chain_id in chain_ids:
        snap = store.snapshot(series_id, chain_id)
        total_long += snap.long_amount
        total_short += snap.short_amount
        total_collateral += snap.locked_collateral
    return total_long, total_short, total_collateral


def recompute_aggregate(store: SnapshotStore, series_id: int, chain_ids: Iterable[int]) -> AggregatedPosition:
    """Overwrite the series aggregate's three totals with fresh sums.

    Settlement fields (``net_settlement``, ``settled``) are preserved.
    """
    total_long, total_short, total_collateral = sum_snapshots(store, series_id, chain_ids)
    updated = replace(
        store.aggregate(series_id),
        total_long=total_long,
        total_short=total_short,
        total_collateral=total_collateral,
    )
    store.put_aggregate(updated)
    return updated
