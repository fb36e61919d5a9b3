"""
Inbound delivery table for replay protection.

Tracks, per source chain, the message ids a relayer has already delivered to
this node. Only receive-side entrypoints that are given a `message_id` consult
it; without one the node keeps the plain last-writer-wins semantics.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Mapping, Set

from ..core.errors import DuplicateDelivery
from .canonical import canonical_hex_fixed_allow_0x


@dataclass
class ReplayTable:
    """
    Mutable mapping: source_chain_id -> set of delivered message ids.

    Intentionally similar in spirit to the other state tables: small, explicit,
    with copy-on-read accessors.
    """

    _seen: Dict[int, Set[str]] = field(default_factory=dict)

    def seen(self, source_chain: int, message_id: str) -> bool:
        mid = canonical_hex_fixed_allow_0x(message_id, nbytes=32, name="message_id")
        return mid in self._seen.get(source_chain, set())

    def record(self, source_chain: int, message_id: str) -> None:
        """Record a delivery. Raises DuplicateDelivery if already recorded."""
        mid = canonical_hex_fixed_allow_0x(message_id, nbytes=32, name="message_id")
        delivered = self._seen.setdefault(source_chain, set())
        if mid in delivered:
            raise DuplicateDelivery(mid)
        delivered.add(mid)

    def get_all(self) -> Mapping[int, Set[str]]:
        # Return copies to avoid accidental mutation during iteration.
        return {chain: set(ids) for chain, ids in self._seen.items()}

    def __len__(self) -> int:
        return sum(len(ids) for ids in self._seen.values())
