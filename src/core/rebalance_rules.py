"""Rebalance coordinator rules.

Pure helpers: request validation and the collateral legs a node applies when
a rebalance is executed locally.
"""

from __future__ import annotations

from typing import List, Tuple

from ..state.rebalance import RebalanceRequest
from .errors import InvalidParameterError, SelfTarget, ZeroAmount


def validate_rebalance_request(from_chain: int, to_chain: int, amount: int) -> None:
    """Shape checks only; registry/activity checks belong to the caller."""
    if not isinstance(amount, int) or isinstance(amount, bool) or amount < 0:
        raise InvalidParameterError(f"amount must be a non-negative int, got {amount!r}")
    if amount == 0:
        raise ZeroAmount()
    if from_chain == to_chain:
        raise SelfTarget(from_chain)


def rebalance_legs(request: RebalanceRequest, local_chain_id: int) -> List[Tuple[int, int]]:
    """Collateral adjustments (chain_id, signed delta) to apply on `local_chain_id`.

    The source and destination legs are independent: a node that is both
    applies the debit first and then the credit.
    """
    legs: List[Tuple[int, int]] = []
    if request.from_chain == local_chain_id:
        legs.append((local_chain_id, -request.amount))
    if request.to_chain == local_chain_id:
        legs.append((local_chain_id, request.amount))
    return legs
