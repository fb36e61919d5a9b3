"""
State tables owned by one settlement node
"""

from .registry import ChainDeployment, ChainRegistry
from .messages import CrossChainMessage, MessageKind, MessageLedger, MessageStatus
from .positions import AggregatedPosition, ChainPositionSnapshot, SnapshotStore
from .rebalance import RebalanceBook, RebalanceRequest
from .replay import ReplayTable
from .node_state import NodeState

__all__ = [
    "ChainDeployment",
    "ChainRegistry",
    "CrossChainMessage",
    "MessageKind",
    "MessageLedger",
    "MessageStatus",
    "AggregatedPosition",
    "ChainPositionSnapshot",
    "SnapshotStore",
    "RebalanceBook",
    "RebalanceRequest",
    "ReplayTable",
    "NodeState",
]
