"""Settlement engine: per-chain deltas and the global balance check.

Settlement is split the way the rest of the core is split:

1. ``plan_settlement`` checks guards, prices every chain's book and runs the
   balance check. It is pure with respect to the store and raises on failure,
   so a rejected settlement leaves no trace.
2. ``apply_settlement_plan`` writes the deltas and marks the series settled.
   It is terminal: a settled aggregate never changes again.

One side's gain is another's loss system-wide, so the per-chain deltas must
net to ~zero across all chains. The check is a point-in-time audit on the
hub: it can only see the snapshots that have been relayed so far.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Iterable

from ..state.positions import AggregatedPosition, SnapshotStore
from .errors import InvalidParameterError, InvalidSettlementPrice, SeriesAlreadySettled, SettlementImbalance
from .params import SETTLEMENT_IMBALANCE_TOLERANCE_E18
from .settlement_math import chain_delta, imbalance_e18, option_payoff_e18, position_size, within_tolerance


@dataclass(frozen=True)
class ChainSettlement:
    """One chain's leg of a series settlement."""

    chain_id: int
    long_amount: int
    short_amount: int
    delta: int


@dataclass(frozen=True)
class SettlementPlan:
    """Fully priced settlement of one series, ready to apply."""

    series_id: int
    settlement_price_e18: int
    strike_e18: int
    is_call: bool
    payoff_e18: int
    legs: tuple[ChainSettlement, ...]
    net_settlement: int
    total_position_size: int
    imbalance_e18: int

    def delta_for(self, chain_id: int) -> int:
        for leg in self.legs:
            if leg.chain_id == chain_id:
                return leg.delta
        return 0


def plan_settlement(
    store: SnapshotStore,
    series_id: int,
    chain_ids: Iterable[int],
    *,
    settlement_price_e18: int,
    strike_e18: int,
    is_call: bool,
    tolerance_e18: int = SETTLEMENT_IMBALANCE_TOLERANCE_E18,
) -> SettlementPlan:
    """Price every registered chain's book for `series_id`.

    Chains with neither a long nor a short position are skipped.

    Raises:
        InvalidSettlementPrice: settlement price is not strictly positive.
        SeriesAlreadySettled: the series is already settled on this node.
        SettlementImbalance: relative imbalance exceeds `tolerance_e18`.
    """
    if not isinstance(settlement_price_e18, int) or isinstance(settlement_price_e18, bool):
        raise InvalidSettlementPrice(settlement_price_e18)
    if settlement_price_e18 <= 0:
        raise InvalidSettlementPrice(settlement_price_e18)
    if not isinstance(strike_e18, int) or isinstance(strike_e18, bool) or strike_e18 < 0:
        raise InvalidParameterError(f"strike must be a non-negative int, got {strike_e18!r}")
    if store.is_settled(series_id):
        raise SeriesAlreadySettled(series_id)

    payoff = option_payoff_e18(settlement_price_e18, strike_e18, is_call)

    legs: list[ChainSettlement] = []
    net = 0
    size = 0
    for chain_id in chain_ids:
        snap = store.snapshot(series_id, chain_id)
        if not snap.has_position:
            continue
        delta = chain_delta(snap.long_amount, snap.short_amount, payoff)
        legs.append(
            ChainSettlement(
                chain_id=chain_id,
                long_amount=snap.long_amount,
                short_amount=snap.short_amount,
                delta=delta,
            )
        )
        net += delta
        size += position_size(snap.long_amount, snap.short_amount, payoff)

    if not within_tolerance(net, size, tolerance_e18):
        raise SettlementImbalance(series_id, net, imbalance_e18(net, size), tolerance_e18)

    return SettlementPlan(
        series_id=series_id,
        settlement_price_e18=settlement_price_e18,
        strike_e18=strike_e18,
        is_call=bool(is_call),
        payoff_e18=payoff,
        legs=tuple(legs),
        net_settlement=net,
        total_position_size=size,
        imbalance_e18=imbalance_e18(net, size) if size else 0,
    )


def apply_settlement_plan(store: SnapshotStore, plan: SettlementPlan) -> AggregatedPosition:
    """Record every leg's delta and mark the series settled (terminal)."""
    if store.is_settled(plan.series_id):
        raise SeriesAlreadySettled(plan.series_id)
    for leg in plan.legs:
        store.set_settlement_delta(plan.series_id, leg.chain_id, leg.delta)
    settled = replace(
        store.aggregate(plan.series_id),
        net_settlement=plan.net_settlement,
        settled=True,
    )
    store.put_aggregate(settled)
    return settled


def apply_relayed_settlement(store: SnapshotStore, series_id: int, chain_id: int, delta: int) -> AggregatedPosition:
    """Spoke side: accept the hub-computed delta for the local chain as final.

    No recomputation happens here; correctness rests on the relayer.
    """
    if not isinstance(delta, int) or isinstance(delta, bool):
        raise InvalidParameterError(f"delta must be an int, got {delta!r}")
    if store.is_settled(series_id):
        raise SeriesAlreadySettled(series_id)
    store.set_settlement_delta(series_id, chain_id, delta)
    settled = replace(store.aggregate(series_id), net_settlement=delta, settled=True)
    store.put_aggregate(settled)
    return settled
