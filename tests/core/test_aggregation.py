from __future__ import annotations

from dataclasses import replace

from src.core.aggregation import recompute_aggregate, sum_snapshots
from src.state.positions import SnapshotStore

CHAINS = [1, 10, 137, 42161]


def _store_with(reports) -> SnapshotStore:
    store = SnapshotStore()
    for chain_id, long_amount, short_amount, collateral in reports:
        store.overwrite_position(
            7,
            chain_id,
            long_amount=long_amount,
            short_amount=short_amount,
            locked_collateral=collateral,
        )
    return store


# ---------------------------------------------------------------------------
# Unit
# ---------------------------------------------------------------------------


def test_recompute_sums_every_listed_chain() -> None:
    store = _store_with([(1, 100, 40, 500), (42161, 20, 80, 250)])
    agg = recompute_aggregate(store, 7, CHAINS)
    assert (agg.total_long, agg.total_short, agg.total_collateral) == (120, 120, 750)
    assert store.aggregate(7) == agg


def test_recompute_ignores_unlisted_chains() -> None:
    store = _store_with([(1, 100, 0, 0), (999, 50, 0, 0)])
    assert sum_snapshots(store, 7, [1]) == (100, 0, 0)


def test_recompute_is_idempotent() -> None:
    store = _store_with([(1, 5, 6, 7)])
    first = recompute_aggregate(store, 7, CHAINS)
    second = recompute_aggregate(store, 7, CHAINS)
    assert first == second


def test_recompute_preserves_settlement_fields() -> None:
    store = _store_with([(1, 5, 5, 0)])
    recompute_aggregate(store, 7, CHAINS)
    store.put_aggregate(replace(store.aggregate(7), net_settlement=-3))
    store.overwrite_position(7, 1, long_amount=9, short_amount=9)
    agg = recompute_aggregate(store, 7, CHAINS)
    assert agg.net_settlement == -3
    assert agg.total_long == 9


def test_recompute_touches_only_its_series() -> None:
    store = _store_with([(1, 5, 5, 5)])
    store.overwrite_position(8, 1, long_amount=1, short_amount=2, locked_collateral=3)
    recompute_aggregate(store, 7, CHAINS)
    assert store.aggregate(8).total_long == 0
