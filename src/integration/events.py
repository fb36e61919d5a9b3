"""
Node event log.

Events are what an off-chain relayer observes on a source node. They are
appended only by committed entrypoints; a rolled-back call leaves no event.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, unique
from typing import Any, Dict, List, Mapping


@unique
class Event(Enum):
    CHAIN_REGISTERED = "ChainRegistered"
    CHAIN_DEACTIVATED = "ChainDeactivated"
    CHAIN_ACTIVATED = "ChainActivated"
    RELAYER_SET = "RelayerSet"
    PAUSED = "Paused"
    UNPAUSED = "Unpaused"
    COLLATERAL_ASSET_SET = "CollateralAssetSet"
    EMERGENCY_WITHDRAWAL = "EmergencyWithdrawal"
    COLLATERAL_LOCKED = "CollateralLocked"
    COLLATERAL_RELEASED = "CollateralReleased"
    POSITION_SYNCED = "PositionSynced"
    POSITION_SYNC_RECEIVED = "PositionSyncReceived"
    SETTLEMENT_INITIATED = "SettlementInitiated"
    SETTLEMENT_EXECUTED = "SettlementExecuted"
    MESSAGE_SENT = "MessageSent"
    MESSAGE_CONFIRMED = "MessageConfirmed"
    MESSAGE_FAILED = "MessageFailed"
    REBALANCE_REQUESTED = "RebalanceRequested"
    REBALANCE_EXECUTED = "RebalanceExecuted"


@dataclass(frozen=True)
class NodeEvent:
    seq: int
    event: Event
    timestamp: int
    fields: Mapping[str, Any] = field(default_factory=dict)


class EventLog:
    def __init__(self) -> None:
        self._events: List[NodeEvent] = []

    def emit(self, event: Event, *, timestamp: int, **fields: Any) -> NodeEvent:
        ev = NodeEvent(seq=len(self._events), event=event, timestamp=timestamp, fields=dict(fields))
        self._events.append(ev)
        return ev

    def truncate(self, length: int) -> None:
        del self._events[length:]

    def since(self, seq: int) -> List[NodeEvent]:
        return self._events[seq:]

    def of(self, event: Event) -> List[NodeEvent]:
        return [e for e in self._events if e.event is event]

    def counts(self) -> Dict[Event, int]:
        out: Dict[Event, int] = {}
        for e in self._events:
            out[e.event] = out.get(e.event, 0) + 1
        return out

    def __len__(self) -> int:
        return len(self._events)
