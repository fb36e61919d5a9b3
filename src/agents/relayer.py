"""
Message batching and relay between settlement nodes.

The relayer is the only thing that moves information between chains. It reads
Pending entries from a source node's ledger, replays each one into the
destination node through the matching relayer-gated entrypoint, and then
records the outcome back on the source ledger (confirm or fail).
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from ..core.errors import DuplicateDelivery, SettlementError
from ..integration.attestation import sign_attestation
from ..integration.node import SettlementNode
from ..state.canonical import canonical_address
from ..state.messages import CrossChainMessage, MessageKind

logger = logging.getLogger(__name__)

_TO_HUB = (MessageKind.LOCK_COLLATERAL, MessageKind.RELEASE_COLLATERAL, MessageKind.SYNC_POSITION)


def batch_messages(
    messages: List[CrossChainMessage],
    max_batch_size: int = 100,
) -> List[List[CrossChainMessage]]:
    """
    Group pending messages into batches.

    Groups by destination chain (first-seen order) and keeps ledger order
    inside each group, so per-destination delivery order matches send order.

    Args:
        messages: Messages in ledger order
        max_batch_size: Maximum messages per batch

    Returns:
        List of batches (each batch targets a single destination chain)
    """
    if max_batch_size <= 0:
        raise ValueError("max_batch_size must be positive")
    by_destination: Dict[int, List[CrossChainMessage]] = defaultdict(list)
    for msg in messages:
        if msg.is_pending:
            by_destination[msg.destination_chain].append(msg)

    batches: List[List[CrossChainMessage]] = []
    for group in by_destination.values():
        for i in range(0, len(group), max_batch_size):
            batches.append(group[i:i + max_batch_size])
    return batches


def create_batch(messages: List[CrossChainMessage], batch_ref: str = "") -> Dict[str, Any]:
    """JSON-ready batch object for submission or archival."""
    destinations = {m.destination_chain for m in messages}
    if len(destinations) > 1:
        raise ValueError("a batch must target a single destination chain")
    return {
        "module": "XChainSettlement",
        "version": "0.1",
        "batch_ref": batch_ref,
        "destination_chain": next(iter(destinations)) if destinations else None,
        "messages": [m.to_envelope() for m in messages],
    }


@dataclass
class RelayReport:
    delivered: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.delivered) + len(self.failed) + len(self.skipped)


class Relayer:
    """
    One authorized relayer identity operating across a set of nodes.

    When `privkey` is set every relayed call carries a BLS attestation over
    the same payload the receiving node checks.
    """

    def __init__(
        self,
        address: str,
        nodes: Mapping[int, SettlementNode],
        *,
        privkey: Optional[int] = None,
    ) -> None:
        self.address = canonical_address(address, name="relayer address")
        self.nodes: Dict[int, SettlementNode] = dict(nodes)
        self._privkey = privkey

    def _proof(self, node: SettlementNode, action: str, payload: Dict[str, Any]) -> Optional[str]:
        if self._privkey is None:
            return None
        return sign_attestation(self._privkey, action, {"node_chain_id": node.chain_id, **payload})

    # -- delivery ------------------------------------------------------------

    def deliver(self, source: SettlementNode, msg: CrossChainMessage) -> None:
        """Invoke the destination entrypoint for one message. Raises on rejection."""
        if msg.kind in _TO_HUB:
            hub = self.nodes[msg.destination_chain]
            snap = source.get_snapshot(msg.series_id, source.chain_id)
            payload = {
                "source_chain_id": source.chain_id,
                "series_id": msg.series_id,
                "long_amount": snap.long_amount,
                "short_amount": snap.short_amount,
                "locked_collateral": snap.locked_collateral,
                "message_id": msg.message_id,
            }
            hub.receive_position_sync(
                source.chain_id,
                msg.series_id,
                snap.long_amount,
                snap.short_amount,
                snap.locked_collateral,
                caller=self.address,
                message_id=msg.message_id,
                proof=self._proof(hub, "receive_position_sync", payload),
            )
        elif msg.kind is MessageKind.SETTLE:
            spoke = self.nodes[msg.destination_chain]
            payload = {"series_id": msg.series_id, "delta": msg.delta, "message_id": msg.message_id}
            spoke.execute_settlement(
                msg.series_id,
                msg.delta,
                caller=self.address,
                message_id=msg.message_id,
                proof=self._proof(spoke, "execute_settlement", payload),
            )
        elif msg.kind is MessageKind.LIQUIDITY_REBALANCE:
            # Rebalance requests live in the requesting node's book.
            payload = {"rebalance_id": msg.rebalance_id}
            source.execute_rebalance(
                msg.rebalance_id,
                caller=self.address,
                proof=self._proof(source, "execute_rebalance", payload),
            )
        else:
            raise ValueError(f"unsupported message kind: {msg.kind}")

    def _confirm(self, source: SettlementNode, message_id: str) -> None:
        payload = {"message_id": message_id}
        source.confirm_message(
            message_id,
            caller=self.address,
            proof=self._proof(source, "confirm_message", payload),
        )

    def _fail(self, source: SettlementNode, message_id: str) -> None:
        payload = {"message_id": message_id}
        source.fail_message(
            message_id,
            caller=self.address,
            proof=self._proof(source, "fail_message", payload),
        )

    def relay_message(self, source: SettlementNode, msg: CrossChainMessage, report: RelayReport) -> None:
        needs_destination = msg.kind is not MessageKind.LIQUIDITY_REBALANCE
        if needs_destination and msg.destination_chain not in self.nodes:
            logger.warning(
                "relayer %s: no node for chain %s, leaving %s pending",
                self.address,
                msg.destination_chain,
                msg.message_id,
            )
            report.skipped.append(msg.message_id)
            return
        if source.is_message_expired(msg.message_id):
            # Past its confirmation window: never apply it on the destination.
            logger.warning("relayer %s: %s expired, marking failed", self.address, msg.message_id)
            self._fail(source, msg.message_id)
            report.failed.append(msg.message_id)
            return
        try:
            try:
                self.deliver(source, msg)
            except DuplicateDelivery:
                # Delivered on a previous pass whose confirmation did not land.
                logger.info("relayer %s: %s already delivered, confirming", self.address, msg.message_id)
            self._confirm(source, msg.message_id)
        except SettlementError as exc:
            logger.warning(
                "relayer %s: %s %s -> %s failed: %s",
                self.address,
                msg.kind.value,
                msg.source_chain,
                msg.destination_chain,
                exc,
            )
            self._fail(source, msg.message_id)
            report.failed.append(msg.message_id)
            return
        report.delivered.append(msg.message_id)

    def relay_once(self, source: SettlementNode) -> RelayReport:
        """Drain every Pending message on `source` once, batch by batch."""
        report = RelayReport()
        for batch in batch_messages(source.pending_messages()):
            for msg in batch:
                self.relay_message(source, msg, report)
        if report.total:
            logger.info(
                "relayer %s: chain %s delivered=%d failed=%d skipped=%d",
                self.address,
                source.chain_id,
                len(report.delivered),
                len(report.failed),
                len(report.skipped),
            )
        return report

    def relay_all(self) -> RelayReport:
        """One pass over every known node, in chain id order."""
        combined = RelayReport()
        for chain_id in sorted(self.nodes):
            r = self.relay_once(self.nodes[chain_id])
            combined.delivered.extend(r.delivered)
            combined.failed.extend(r.failed)
            combined.skipped.extend(r.skipped)
        return combined
