"""Pure fixed-point arithmetic for cross-chain settlement.

Every function is stateless and operates on plain Python ints. Prices and
ratios carry 18 decimal digits (``SCALE_E18``); position amounts are raw
option units.

Rounding is explicit: each leg (long or short) is valued with ``//`` on a
non-negative product, so a chain with ``long == short`` always nets to exactly
zero regardless of price.
"""

from __future__ import annotations

from .params import SCALE_E18


def abs_val(x: int) -> int:
    """Absolute value of *x*."""
    return x if x >= 0 else -x


def option_payoff_e18(settlement_price_e18: int, strike_e18: int, is_call: bool) -> int:
    """Per-option intrinsic value at expiry.

    Call: ``max(spot - strike, 0)``; put: ``max(strike - spot, 0)``.
    """
    if is_call:
        return max(settlement_price_e18 - strike_e18, 0)
    return max(strike_e18 - settlement_price_e18, 0)


def leg_value(amount: int, payoff_e18: int) -> int:
    """Value of `amount` options at `payoff_e18`, floored to whole units."""
    return (amount * payoff_e18) // SCALE_E18


def chain_delta(long_amount: int, short_amount: int, payoff_e18: int) -> int:
    """Signed amount a chain receives (> 0) or pays (< 0): long legs minus short legs."""
    return leg_value(long_amount, payoff_e18) - leg_value(short_amount, payoff_e18)


def position_size(long_amount: int, short_amount: int, payoff_e18: int) -> int:
    """Gross (long + short) position value at `payoff_e18`."""
    return leg_value(long_amount, payoff_e18) + leg_value(short_amount, payoff_e18)


def imbalance_e18(net_settlement: int, total_position_size: int) -> int:
    """Relative imbalance ``|net| / (|size| + 1)`` in SCALE_E18 units.

    The ``+ 1`` base unit keeps the ratio defined for an empty book.
    """
    return (abs_val(net_settlement) * SCALE_E18) // (abs_val(total_position_size) + 1)


def within_tolerance(net_settlement: int, total_position_size: int, tolerance_e18: int) -> bool:
    """True when the book is trivially empty or its imbalance is within tolerance."""
    if total_position_size == 0:
        return True
    return imbalance_e18(net_settlement, total_position_size) <= tolerance_e18
