"""
Rebalance request book.

Ids are allocated from a node-local counter starting at 1 and never reused.
A request is executed at most once.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict, List, Optional

from ..core.errors import RebalanceAlreadyExecuted, RebalanceNotFound
from ..core.params import REBALANCE_ID_START


@dataclass(frozen=True)
class RebalanceRequest:
    rebalance_id: int
    from_chain: int
    to_chain: int
    token: str
    amount: int
    executed: bool = False
    requested_at: int = 0
    executed_at: int = 0


class RebalanceBook:
    """Mutable mapping: rebalance_id -> RebalanceRequest."""

    def __init__(self, *, next_id: int = REBALANCE_ID_START) -> None:
        self._next_id = int(next_id)
        self._requests: Dict[int, RebalanceRequest] = {}

    @property
    def next_id(self) -> int:
        return self._next_id

    def create(self, *, from_chain: int, to_chain: int, token: str, amount: int, now: int) -> RebalanceRequest:
        req = RebalanceRequest(
            rebalance_id=self._next_id,
            from_chain=from_chain,
            to_chain=to_chain,
            token=token,
            amount=amount,
            requested_at=now,
        )
        self._requests[req.rebalance_id] = req
        self._next_id += 1
        return req

    def get(self, rebalance_id: int) -> Optional[RebalanceRequest]:
        return self._requests.get(rebalance_id)

    def require_executable(self, rebalance_id: int) -> RebalanceRequest:
        req = self._requests.get(rebalance_id)
        # A zero amount is the "does not exist" sentinel.
        if req is None or req.amount == 0:
            raise RebalanceNotFound(rebalance_id)
        if req.executed:
            raise RebalanceAlreadyExecuted(rebalance_id)
        return req

    def mark_executed(self, rebalance_id: int, *, now: int) -> RebalanceRequest:
        req = self.require_executable(rebalance_id)
        done = replace(req, executed=True, executed_at=now)
        self._requests[rebalance_id] = done
        return done

    def all(self) -> List[RebalanceRequest]:
        return [self._requests[k] for k in sorted(self._requests)]

    def __len__(self) -> int:
        return len(self._requests)
