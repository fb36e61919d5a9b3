"""
Chain registry: the set of known peer deployments (self included).

The registry is the single source of truth for "which chains exist" when
aggregating positions. Registered chains are never removed; deactivation only
gates *new* locks and rebalances, and inactive chains still contribute to
aggregation and settlement.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict, List, Optional

from ..core.errors import (
    CapacityExceeded,
    ChainAlreadyRegistered,
    ChainNotRegistered,
    InvalidParameterError,
)
from ..core.params import MAX_REGISTERED_CHAINS
from .canonical import ZERO_ADDRESS, canonical_address

ChainId = int


def validate_chain_id(chain_id: int, *, name: str = "chain_id") -> int:
    if not isinstance(chain_id, int) or isinstance(chain_id, bool) or chain_id <= 0:
        raise InvalidParameterError(f"{name} must be a positive int, got {chain_id!r}")
    return chain_id


@dataclass(frozen=True)
class ChainDeployment:
    """One registered chain.

    Attributes:
        chain_id: Immutable chain identifier
        handle: Remote deployment address (zero address = not registered)
        active: Whether new locks / rebalances may touch this chain
        total_collateral_locked: Collateral tracked for this chain
        total_position_value: Signed sum of settlement deltas applied to this chain
        last_sync_timestamp: Last accepted position sync (0 = never)
    """

    chain_id: ChainId
    handle: str = ZERO_ADDRESS
    active: bool = False
    total_collateral_locked: int = 0
    total_position_value: int = 0
    last_sync_timestamp: int = 0

    @property
    def registered(self) -> bool:
        return self.handle != ZERO_ADDRESS


class ChainRegistry:
    """
    Mutable mapping: chain_id -> ChainDeployment.

    Construction registers the owning node's own chain, which counts toward
    the capacity limit. Iteration follows registration order.
    """

    def __init__(
        self,
        *,
        self_chain_id: ChainId,
        self_handle: str,
        max_chains: int = MAX_REGISTERED_CHAINS,
    ) -> None:
        if not isinstance(max_chains, int) or isinstance(max_chains, bool) or max_chains <= 0:
            raise InvalidParameterError("max_chains must be a positive int")
        self._max_chains = max_chains
        self._chains: Dict[ChainId, ChainDeployment] = {}
        self._order: List[ChainId] = []
        self.self_chain_id = validate_chain_id(self_chain_id, name="self_chain_id")
        self.register(self_chain_id, self_handle)

    @property
    def max_chains(self) -> int:
        return self._max_chains

    def register(self, chain_id: ChainId, handle: str) -> ChainDeployment:
        """
        Register a chain deployment.

        Raises:
            ChainAlreadyRegistered: chain_id already has a non-zero handle
            CapacityExceeded: the registry already holds max_chains entries
            InvalidParameterError: bad chain id or zero/malformed handle
        """
        validate_chain_id(chain_id)
        try:
            h = canonical_address(handle, name="handle")
        except (TypeError, ValueError) as exc:
            raise InvalidParameterError(str(exc)) from exc
        if h == ZERO_ADDRESS:
            raise InvalidParameterError("handle must not be the zero address")

        existing = self._chains.get(chain_id)
        if existing is not None and existing.registered:
            raise ChainAlreadyRegistered(chain_id, existing.handle)
        if len(self._order) >= self._max_chains:
            raise CapacityExceeded(self._max_chains)

        deployment = ChainDeployment(chain_id=chain_id, handle=h, active=True)
        self._chains[chain_id] = deployment
        self._order.append(chain_id)
        return deployment

    def get(self, chain_id: ChainId) -> Optional[ChainDeployment]:
        return self._chains.get(chain_id)

    def require(self, chain_id: ChainId) -> ChainDeployment:
        deployment = self._chains.get(chain_id)
        if deployment is None or not deployment.registered:
            raise ChainNotRegistered(chain_id)
        return deployment

    def is_registered(self, chain_id: ChainId) -> bool:
        deployment = self._chains.get(chain_id)
        return deployment is not None and deployment.registered

    def is_active(self, chain_id: ChainId) -> bool:
        deployment = self._chains.get(chain_id)
        return deployment is not None and deployment.registered and deployment.active

    def set_active(self, chain_id: ChainId, active: bool) -> bool:
        """Set the active flag. Returns True iff the flag changed."""
        deployment = self.require(chain_id)
        if deployment.active == active:
            return False
        self._chains[chain_id] = replace(deployment, active=active)
        return True

    def record_sync(self, chain_id: ChainId, timestamp: int) -> None:
        deployment = self.require(chain_id)
        self._chains[chain_id] = replace(deployment, last_sync_timestamp=int(timestamp))

    def adjust_collateral(self, chain_id: ChainId, delta: int) -> int:
        """
        Add `delta` to the chain's tracked collateral, flooring at zero.

        Returns the amount actually applied (may be smaller than a negative delta).
        """
        deployment = self.require(chain_id)
        current = deployment.total_collateral_locked
        applied = delta if delta >= 0 else -min(-delta, current)
        self._chains[chain_id] = replace(deployment, total_collateral_locked=current + applied)
        return applied

    def add_position_value(self, chain_id: ChainId, delta: int) -> None:
        deployment = self.require(chain_id)
        self._chains[chain_id] = replace(
            deployment, total_position_value=deployment.total_position_value + delta
        )

    def chain_ids(self) -> List[ChainId]:
        return list(self._order)

    def deployments(self) -> List[ChainDeployment]:
        return [self._chains[cid] for cid in self._order]

    def total_collateral(self) -> int:
        return sum(d.total_collateral_locked for d in self.deployments())

    def __len__(self) -> int:
        return len(self._order)

    def __repr__(self) -> str:
        return f"ChainRegistry({len(self._order)}/{self._max_chains} chains)"
