from __future__ import annotations

import pytest

from src.core.errors import InvalidParameterError, InvalidSettlementPrice, SeriesAlreadySettled, SettlementImbalance
from src.core.params import SCALE_E18, SETTLEMENT_IMBALANCE_TOLERANCE_E18
from src.core.settlement_engine import apply_relayed_settlement, apply_settlement_plan, plan_settlement
from src.core.settlement_math import (
    chain_delta,
    imbalance_e18,
    leg_value,
    option_payoff_e18,
    position_size,
    within_tolerance,
)
from src.state.positions import SnapshotStore

HUB = 1
SPOKE = 42161
CHAINS = [HUB, SPOKE]


def _store(**books) -> SnapshotStore:
    """books: chain_<id>=(long, short)"""
    store = SnapshotStore()
    for key, (long_amount, short_amount) in books.items():
        chain_id = int(key.split("_", 1)[1])
        store.overwrite_position(7, chain_id, long_amount=long_amount, short_amount=short_amount)
    return store


def _plan(store: SnapshotStore, price: int, strike: int, is_call: bool = True, **kw):
    return plan_settlement(
        store,
        7,
        CHAINS,
        settlement_price_e18=price,
        strike_e18=strike,
        is_call=is_call,
        **kw,
    )


# ---------------------------------------------------------------------------
# Fixed-point math
# ---------------------------------------------------------------------------


def test_option_payoff_call_and_put() -> None:
    assert option_payoff_e18(2_000 * SCALE_E18, 1_800 * SCALE_E18, True) == 200 * SCALE_E18
    assert option_payoff_e18(1_700 * SCALE_E18, 1_800 * SCALE_E18, True) == 0
    assert option_payoff_e18(1_700 * SCALE_E18, 1_800 * SCALE_E18, False) == 100 * SCALE_E18
    assert option_payoff_e18(2_000 * SCALE_E18, 1_800 * SCALE_E18, False) == 0


def test_leg_value_floors() -> None:
    assert leg_value(3, SCALE_E18 // 2) == 1
    assert leg_value(0, 10 * SCALE_E18) == 0


def test_chain_delta_sign() -> None:
    payoff = 2 * SCALE_E18
    assert chain_delta(10, 4, payoff) == 12
    assert chain_delta(4, 10, payoff) == -12
    assert position_size(10, 4, payoff) == 28


def test_imbalance_ratio_and_tolerance() -> None:
    # |1| / (99 + 1) = 1%
    assert imbalance_e18(1, 99) == SCALE_E18 // 100
    assert imbalance_e18(-1, 99) == SCALE_E18 // 100
    assert within_tolerance(1, 99, SETTLEMENT_IMBALANCE_TOLERANCE_E18)
    assert not within_tolerance(2, 99, SETTLEMENT_IMBALANCE_TOLERANCE_E18)
    assert within_tolerance(0, 0, 0)


# ---------------------------------------------------------------------------
# plan / apply
# ---------------------------------------------------------------------------


def test_balanced_cross_chain_book_settles() -> None:
    # Longs on the spoke, matching shorts on the hub.
    store = _store(chain_1=(0, 100), chain_42161=(100, 0))
    plan = _plan(store, 2_000 * SCALE_E18, 1_800 * SCALE_E18)
    assert plan.payoff_e18 == 200 * SCALE_E18
    assert plan.delta_for(SPOKE) == 20_000
    assert plan.delta_for(HUB) == -20_000
    assert plan.net_settlement == 0
    assert plan.total_position_size == 40_000

    agg = apply_settlement_plan(store, plan)
    assert agg.settled is True
    assert agg.net_settlement == 0
    assert store.snapshot(7, SPOKE).settlement_delta == 20_000
    assert store.snapshot(7, HUB).settlement_delta == -20_000


def test_chains_without_positions_are_skipped() -> None:
    store = _store(chain_42161=(5, 5))
    plan = _plan(store, 2 * SCALE_E18, SCALE_E18)
    assert [leg.chain_id for leg in plan.legs] == [SPOKE]
    assert plan.delta_for(HUB) == 0


def test_imbalanced_book_is_rejected_without_changes() -> None:
    store = _store(chain_1=(0, 50), chain_42161=(100, 0))
    with pytest.raises(SettlementImbalance) as exc:
        _plan(store, 2 * SCALE_E18, SCALE_E18)
    assert exc.value.series_id == 7
    assert exc.value.net_settlement == 50
    assert exc.value.tolerance_e18 == SETTLEMENT_IMBALANCE_TOLERANCE_E18
    assert exc.value.imbalance_e18 > SETTLEMENT_IMBALANCE_TOLERANCE_E18
    assert not store.is_settled(7)
    assert store.snapshot(7, SPOKE).settlement_delta == 0


def test_out_of_the_money_settles_to_zero() -> None:
    store = _store(chain_1=(0, 50), chain_42161=(100, 0))
    plan = _plan(store, SCALE_E18, 2 * SCALE_E18)
    assert plan.payoff_e18 == 0
    assert plan.net_settlement == 0
    assert all(leg.delta == 0 for leg in plan.legs)


def test_guards() -> None:
    store = _store(chain_1=(1, 1))
    with pytest.raises(InvalidSettlementPrice):
        _plan(store, 0, SCALE_E18)
    with pytest.raises(InvalidSettlementPrice):
        _plan(store, -5, SCALE_E18)
    with pytest.raises(InvalidParameterError):
        _plan(store, SCALE_E18, -1)

    apply_settlement_plan(store, _plan(store, SCALE_E18, 0))
    with pytest.raises(SeriesAlreadySettled):
        _plan(store, SCALE_E18, 0)


def test_relayed_settlement_is_trusted_and_terminal() -> None:
    store = SnapshotStore()
    agg = apply_relayed_settlement(store, 7, SPOKE, -123)
    assert agg.settled is True
    assert agg.net_settlement == -123
    assert store.snapshot(7, SPOKE).settlement_delta == -123
    with pytest.raises(SeriesAlreadySettled):
        apply_relayed_settlement(store, 7, SPOKE, 0)
