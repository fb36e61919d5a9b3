"""
Outbound message ledger (append-only).

Every state change that must propagate to another chain appends one
`CrossChainMessage` here. The ledger is a log: it does not move value or apply
effects. A relayer observes Pending entries, invokes the matching entrypoint
on the destination node, and then records its attestation here via
confirm/fail.

Two identifiers per message:
- `message_id` = H(source || destination || nonce || created_at) is unique per
  send, so retransmitting the same logical event yields a fresh id.
- `event_key` = H(source || destination || kind || series || amount || payload)
  is a pure function of the logical event, so retries can be detected.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum, unique
from typing import Dict, List, Optional

from ..core.errors import (
    InvariantViolationError,
    MessageAlreadyProcessed,
    MessageExpired,
    MessageNotFound,
)
from ..core.params import MESSAGE_EXPIRY_SECONDS, MESSAGE_NONCE_START
from .canonical import (
    domain_sep_bytes,
    encode_str,
    encode_svarint,
    encode_uvarint,
    sha256_hex,
)

MessageId = str


@unique
class MessageKind(Enum):
    LOCK_COLLATERAL = "LockCollateral"
    RELEASE_COLLATERAL = "ReleaseCollateral"
    SYNC_POSITION = "SyncPosition"
    SETTLE = "Settle"
    LIQUIDITY_REBALANCE = "LiquidityRebalance"


@unique
class MessageStatus(Enum):
    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    FAILED = "Failed"


_KIND_CODE: dict[MessageKind, int] = {
    MessageKind.LOCK_COLLATERAL: 1,
    MessageKind.RELEASE_COLLATERAL: 2,
    MessageKind.SYNC_POSITION: 3,
    MessageKind.SETTLE: 4,
    MessageKind.LIQUIDITY_REBALANCE: 5,
}


@dataclass(frozen=True)
class CrossChainMessage:
    """
    One outbound coordination event.

    Attributes:
        message_id: Unique ledger id (0x-prefixed sha256)
        event_key: Logical event key used for retry detection
        source_chain: Chain the event originates from
        destination_chain: Chain the relayer must deliver to
        kind: Operation kind
        series_id: Subject series (0 for rebalances)
        amount: Operation amount (long amount for Settle messages)
        sender: Originating caller
        status: Pending until confirmed or failed (terminal)
        created_at: Creation timestamp
        executed_at: Confirmation timestamp (0 until confirmed)
        delta: Settlement delta carried by Settle messages
        rebalance_id: Rebalance request id carried by LiquidityRebalance messages
    """

    message_id: MessageId
    event_key: str
    source_chain: int
    destination_chain: int
    kind: MessageKind
    series_id: int
    amount: int
    sender: str
    status: MessageStatus = MessageStatus.PENDING
    created_at: int = 0
    executed_at: int = 0
    delta: int = 0
    rebalance_id: int = 0

    @property
    def is_pending(self) -> bool:
        return self.status is MessageStatus.PENDING

    def to_envelope(self) -> dict:
        """JSON-safe envelope as observed by a relayer."""
        return {
            "message_id": self.message_id,
            "event_key": self.event_key,
            "source_chain": self.source_chain,
            "destination_chain": self.destination_chain,
            "kind": self.kind.value,
            "series_id": self.series_id,
            "amount": self.amount,
            "sender": self.sender,
            "created_at": self.created_at,
            "delta": self.delta,
            "rebalance_id": self.rebalance_id,
        }


def derive_message_id(*, source: int, destination: int, nonce: int, timestamp: int) -> MessageId:
    payload = (
        domain_sep_bytes("message_id")
        + encode_uvarint(source)
        + encode_uvarint(destination)
        + encode_uvarint(nonce)
        + encode_uvarint(timestamp)
    )
    return sha256_hex(payload)


def derive_event_key(
    *,
    source: int,
    destination: int,
    kind: MessageKind,
    series_id: int,
    amount: int,
    delta: int = 0,
    rebalance_id: int = 0,
    sender: str = "",
) -> str:
    payload = (
        domain_sep_bytes("event_key")
        + encode_uvarint(source)
        + encode_uvarint(destination)
        + encode_uvarint(_KIND_CODE[kind])
        + encode_uvarint(series_id)
        + encode_uvarint(amount)
        + encode_svarint(delta)
        + encode_uvarint(rebalance_id)
        + encode_str(sender)
    )
    return sha256_hex(payload)


def kind_code(kind: MessageKind) -> int:
    return _KIND_CODE[kind]


class MessageLedger:
    """
    Mutable mapping: message_id -> CrossChainMessage, plus the node's message nonce.

    Entries are never removed.
    """

    def __init__(self, *, expiry_s: int = MESSAGE_EXPIRY_SECONDS, nonce: int = MESSAGE_NONCE_START) -> None:
        self._expiry_s = int(expiry_s)
        self._nonce = int(nonce)
        self._messages: Dict[MessageId, CrossChainMessage] = {}
        self._order: List[MessageId] = []

    @property
    def nonce(self) -> int:
        return self._nonce

    @property
    def expiry_s(self) -> int:
        return self._expiry_s

    def send(
        self,
        *,
        source: int,
        destination: int,
        kind: MessageKind,
        series_id: int,
        amount: int,
        sender: str,
        now: int,
        delta: int = 0,
        rebalance_id: int = 0,
    ) -> CrossChainMessage:
        """Append a Pending message and advance the nonce."""
        message_id = derive_message_id(
            source=source, destination=destination, nonce=self._nonce, timestamp=now
        )
        if message_id in self._messages:
            raise InvariantViolationError(f"message id collision: {message_id}")
        msg = CrossChainMessage(
            message_id=message_id,
            event_key=derive_event_key(
                source=source,
                destination=destination,
                kind=kind,
                series_id=series_id,
                amount=amount,
                delta=delta,
                rebalance_id=rebalance_id,
                sender=sender,
            ),
            source_chain=source,
            destination_chain=destination,
            kind=kind,
            series_id=series_id,
            amount=amount,
            sender=sender,
            created_at=now,
            delta=delta,
            rebalance_id=rebalance_id,
        )
        self._messages[message_id] = msg
        self._order.append(message_id)
        self._nonce += 1
        return msg

    def require(self, message_id: MessageId) -> CrossChainMessage:
        msg = self._messages.get(message_id)
        if msg is None:
            raise MessageNotFound(message_id)
        return msg

    def get(self, message_id: MessageId) -> Optional[CrossChainMessage]:
        return self._messages.get(message_id)

    def _require_pending(self, message_id: MessageId) -> CrossChainMessage:
        msg = self.require(message_id)
        if not msg.is_pending:
            raise MessageAlreadyProcessed(message_id, msg.status.value)
        return msg

    def confirm(self, message_id: MessageId, *, now: int) -> CrossChainMessage:
        msg = self._require_pending(message_id)
        expires_at = msg.created_at + self._expiry_s
        if now > expires_at:
            raise MessageExpired(message_id, msg.created_at, expires_at)
        confirmed = replace(msg, status=MessageStatus.CONFIRMED, executed_at=now)
        self._messages[message_id] = confirmed
        return confirmed

    def fail(self, message_id: MessageId) -> CrossChainMessage:
        msg = self._require_pending(message_id)
        failed = replace(msg, status=MessageStatus.FAILED)
        self._messages[message_id] = failed
        return failed

    def is_expired(self, message_id: MessageId, *, now: int) -> bool:
        msg = self.require(message_id)
        return now > msg.created_at + self._expiry_s

    def pending(self) -> List[CrossChainMessage]:
        return [m for m in self.all() if m.is_pending]

    def find_by_event_key(self, event_key: str) -> List[CrossChainMessage]:
        return [m for m in self.all() if m.event_key == event_key]

    def all(self) -> List[CrossChainMessage]:
        return [self._messages[mid] for mid in self._order]

    def __len__(self) -> int:
        return len(self._order)

    def __repr__(self) -> str:
        return f"MessageLedger({len(self._order)} messages, nonce={self._nonce})"
