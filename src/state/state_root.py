"""
Deterministic node state root (v1).

This is intended for:
- audit (stable hashes for the same logical node state),
- tests asserting that a rejected entrypoint left state untouched,
- operators comparing a node's view before and after relayer activity.
"""

from __future__ import annotations

from .canonical import (
    domain_sep_bytes,
    encode_bytes,
    encode_str,
    encode_svarint,
    encode_uvarint,
    hex_to_bytes_fixed,
    sha256_hex,
)
from .messages import MessageLedger, MessageStatus, kind_code
from .node_state import NodeState
from .positions import SnapshotStore
from .rebalance import RebalanceBook
from .registry import ChainRegistry


STATE_ROOT_VERSION = 1

_STATUS_CODE: dict[MessageStatus, int] = {
    MessageStatus.PENDING: 1,
    MessageStatus.CONFIRMED: 2,
    MessageStatus.FAILED: 3,
}


def _encode_registry_section(registry: ChainRegistry) -> bytes:
    out = bytearray()
    deployments = sorted(registry.deployments(), key=lambda d: d.chain_id)
    out += encode_uvarint(len(deployments))
    for d in deployments:
        out += encode_uvarint(d.chain_id)
        out += hex_to_bytes_fixed(d.handle, nbytes=20, name="handle")
        out += encode_uvarint(1 if d.active else 0)
        out += encode_uvarint(d.total_collateral_locked)
        out += encode_svarint(d.total_position_value)
        out += encode_uvarint(d.last_sync_timestamp)
    return bytes(out)


def _encode_positions_section(positions: SnapshotStore) -> bytes:
    out = bytearray()
    snapshots = sorted(positions.all_snapshots().items())
    out += encode_uvarint(len(snapshots))
    for (series_id, chain_id), snap in snapshots:
        out += encode_uvarint(series_id)
        out += encode_uvarint(chain_id)
        out += encode_uvarint(snap.long_amount)
        out += encode_uvarint(snap.short_amount)
        out += encode_uvarint(snap.locked_collateral)
        out += encode_svarint(snap.settlement_delta)

    aggregates = sorted(positions.all_aggregates().items())
    out += encode_uvarint(len(aggregates))
    for series_id, agg in aggregates:
        out += encode_uvarint(series_id)
        out += encode_uvarint(agg.total_long)
        out += encode_uvarint(agg.total_short)
        out += encode_uvarint(agg.total_collateral)
        out += encode_svarint(agg.net_settlement)
        out += encode_uvarint(1 if agg.settled else 0)
    return bytes(out)


def _encode_ledger_section(ledger: MessageLedger) -> bytes:
    out = bytearray()
    out += encode_uvarint(ledger.nonce)
    messages = sorted(ledger.all(), key=lambda m: m.message_id)
    out += encode_uvarint(len(messages))
    for m in messages:
        out += hex_to_bytes_fixed(m.message_id, nbytes=32, name="message_id")
        out += encode_uvarint(kind_code(m.kind))
        out += encode_uvarint(_STATUS_CODE[m.status])
        out += encode_uvarint(m.executed_at)
    return bytes(out)


def _encode_rebalance_section(rebalances: RebalanceBook) -> bytes:
    out = bytearray()
    out += encode_uvarint(rebalances.next_id)
    requests = rebalances.all()
    out += encode_uvarint(len(requests))
    for r in requests:
        out += encode_uvarint(r.rebalance_id)
        out += encode_uvarint(r.from_chain)
        out += encode_uvarint(r.to_chain)
        out += encode_str(r.token)
        out += encode_uvarint(r.amount)
        out += encode_uvarint(1 if r.executed else 0)
    return bytes(out)


def _encode_control_section(state: NodeState) -> bytes:
    out = bytearray()
    relayers = sorted(addr for addr, ok in state.relayers.items() if ok)
    out += encode_uvarint(len(relayers))
    for addr in relayers:
        out += hex_to_bytes_fixed(addr, nbytes=20, name="relayer")
    out += encode_uvarint(1 if state.paused else 0)
    out += hex_to_bytes_fixed(state.collateral_asset, nbytes=20, name="collateral_asset")
    out += encode_uvarint(state.total_local_collateral)
    delivered = state.replay.get_all()
    out += encode_uvarint(len(delivered))
    for chain_id in sorted(delivered):
        out += encode_uvarint(chain_id)
        ids = sorted(delivered[chain_id])
        out += encode_uvarint(len(ids))
        for mid in ids:
            out += hex_to_bytes_fixed(mid, nbytes=32, name="message_id")
    return bytes(out)


def compute_node_state_root(state: NodeState) -> str:
    """
    Compute a deterministic state root hash for a settlement node.

    Returns a 0x-prefixed sha256 digest.
    """
    if not isinstance(state, NodeState):
        raise TypeError("state must be a NodeState")

    payload = (
        domain_sep_bytes("node_state_root", version=STATE_ROOT_VERSION)
        + b"REG"
        + encode_bytes(_encode_registry_section(state.registry))
        + b"POS"
        + encode_bytes(_encode_positions_section(state.positions))
        + b"MSG"
        + encode_bytes(_encode_ledger_section(state.ledger))
        + b"RBL"
        + encode_bytes(_encode_rebalance_section(state.rebalances))
        + b"CTL"
        + encode_bytes(_encode_control_section(state))
    )
    return sha256_hex(payload)
