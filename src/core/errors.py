"""Exception types for the cross-chain settlement node.

Grouped by what the caller can do about them:

- ``AuthorizationError``: the caller lacks a role. Never retry.
- ``NotFoundError``: a referenced chain / message / rebalance does not exist.
- ``StateConflictError``: the request is stale or a duplicate.
- ``TimingError``: the same call may succeed later.
- ``InvariantViolationError``: data integrity problem; operator investigation.
- ``InvalidParameterError``: malformed input (also a ``ValueError``).

Every error keeps the offending identifiers as attributes so relayers and
operators can diagnose a failure without reading node storage.
"""

from __future__ import annotations


class SettlementError(Exception):
    """Base class for every protocol-level failure."""


class AuthorizationError(SettlementError):
    pass


class NotFoundError(SettlementError):
    pass


class StateConflictError(SettlementError):
    pass


class TimingError(SettlementError):
    pass


class InvariantViolationError(SettlementError):
    pass


class InvalidParameterError(SettlementError, ValueError):
    pass


# -- authorization -----------------------------------------------------------


class NotOwner(AuthorizationError):
    def __init__(self, caller: str) -> None:
        self.caller = caller
        super().__init__(f"caller {caller} is not the node owner")


class NotRelayer(AuthorizationError):
    def __init__(self, caller: str) -> None:
        self.caller = caller
        super().__init__(f"caller {caller} is not an authorized relayer")


class NotHub(AuthorizationError):
    def __init__(self, chain_id: int) -> None:
        self.chain_id = chain_id
        super().__init__(f"chain {chain_id} is not the hub")


class NotSpoke(AuthorizationError):
    def __init__(self, chain_id: int) -> None:
        self.chain_id = chain_id
        super().__init__(f"chain {chain_id} is the hub, not a spoke")


class AttestationRejected(AuthorizationError):
    def __init__(self, caller: str, action: str, reason: str) -> None:
        self.caller = caller
        self.action = action
        self.reason = reason
        super().__init__(f"attestation by {caller} for {action} rejected: {reason}")


# -- not found ---------------------------------------------------------------


class ChainNotRegistered(NotFoundError):
    def __init__(self, chain_id: int) -> None:
        self.chain_id = chain_id
        super().__init__(f"chain {chain_id} is not registered")


class MessageNotFound(NotFoundError):
    def __init__(self, message_id: str) -> None:
        self.message_id = message_id
        super().__init__(f"message {message_id} not found")


class RebalanceNotFound(NotFoundError):
    def __init__(self, rebalance_id: int) -> None:
        self.rebalance_id = rebalance_id
        super().__init__(f"rebalance request {rebalance_id} not found")


# -- state conflicts ---------------------------------------------------------


class ChainAlreadyRegistered(StateConflictError):
    def __init__(self, chain_id: int, handle: str) -> None:
        self.chain_id = chain_id
        self.handle = handle
        super().__init__(f"chain {chain_id} already registered at {handle}")


class ChainNotActive(StateConflictError):
    def __init__(self, chain_id: int) -> None:
        self.chain_id = chain_id
        super().__init__(f"chain {chain_id} is not active")


class MessageAlreadyProcessed(StateConflictError):
    def __init__(self, message_id: str, status: str) -> None:
        self.message_id = message_id
        self.status = status
        super().__init__(f"message {message_id} already processed (status={status})")


class SeriesAlreadySettled(StateConflictError):
    def __init__(self, series_id: int) -> None:
        self.series_id = series_id
        super().__init__(f"series {series_id} is already settled")


class RebalanceAlreadyExecuted(StateConflictError):
    def __init__(self, rebalance_id: int) -> None:
        self.rebalance_id = rebalance_id
        super().__init__(f"rebalance request {rebalance_id} already executed")


class DuplicateDelivery(StateConflictError):
    def __init__(self, message_id: str) -> None:
        self.message_id = message_id
        super().__init__(f"message {message_id} was already delivered to this node")


class NodePaused(StateConflictError):
    def __init__(self) -> None:
        super().__init__("node is paused")


class NodeNotPaused(StateConflictError):
    def __init__(self) -> None:
        super().__init__("node is not paused")


# -- timing ------------------------------------------------------------------


class SyncTooFrequent(TimingError):
    def __init__(self, chain_id: int, last_sync: int, retry_at: int) -> None:
        self.chain_id = chain_id
        self.last_sync = last_sync
        self.retry_at = retry_at
        super().__init__(
            f"chain {chain_id} synced at {last_sync}; next sync allowed at {retry_at}"
        )


class MessageExpired(TimingError):
    def __init__(self, message_id: str, created_at: int, expired_at: int) -> None:
        self.message_id = message_id
        self.created_at = created_at
        self.expired_at = expired_at
        super().__init__(f"message {message_id} created at {created_at} expired at {expired_at}")


# -- invariant violations ----------------------------------------------------


class CapacityExceeded(InvariantViolationError):
    def __init__(self, max_chains: int) -> None:
        self.max_chains = max_chains
        super().__init__(f"chain registry is full ({max_chains} chains)")


class SettlementImbalance(InvariantViolationError):
    def __init__(self, series_id: int, net_settlement: int, imbalance_e18: int, tolerance_e18: int) -> None:
        self.series_id = series_id
        self.net_settlement = net_settlement
        self.imbalance_e18 = imbalance_e18
        self.tolerance_e18 = tolerance_e18
        super().__init__(
            f"series {series_id}: net settlement {net_settlement} gives imbalance "
            f"{imbalance_e18}e-18 > tolerance {tolerance_e18}e-18"
        )


class InsufficientCollateral(InvariantViolationError):
    def __init__(self, requested: int, available: int) -> None:
        self.requested = requested
        self.available = available
        super().__init__(f"requested {requested} but only {available} collateral available")


# -- invalid parameters ------------------------------------------------------


class ZeroAmount(InvalidParameterError):
    def __init__(self, name: str = "amount") -> None:
        self.name = name
        super().__init__(f"{name} must be positive")


class SelfTarget(InvalidParameterError):
    def __init__(self, chain_id: int) -> None:
        self.chain_id = chain_id
        super().__init__(f"rebalance source and destination are both chain {chain_id}")


class InvalidSettlementPrice(InvalidParameterError):
    def __init__(self, price_e18: int) -> None:
        self.price_e18 = price_e18
        super().__init__(f"settlement price must be positive, got {price_e18}")
