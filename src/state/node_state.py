"""
Complete mutable state owned by one settlement node.

Nothing outside the owning node reads or writes these tables. The shell takes
a deep copy before each entrypoint and restores it if the call raises, so a
failing call never leaves a partial effect.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict

from .canonical import ZERO_ADDRESS
from .messages import MessageLedger
from .positions import SnapshotStore
from .rebalance import RebalanceBook
from .registry import ChainRegistry
from .replay import ReplayTable


@dataclass
class NodeState:
    registry: ChainRegistry
    ledger: MessageLedger
    positions: SnapshotStore = field(default_factory=SnapshotStore)
    rebalances: RebalanceBook = field(default_factory=RebalanceBook)
    replay: ReplayTable = field(default_factory=ReplayTable)
    relayers: Dict[str, bool] = field(default_factory=dict)
    paused: bool = False
    collateral_asset: str = ZERO_ADDRESS
    total_local_collateral: int = 0

    def is_relayer(self, address: str) -> bool:
        return bool(self.relayers.get(address, False))
