"""
Core settlement rules (pure functions over state tables).

Only the dependency-free pieces are re-exported here; the engines that read
state tables are imported from their own modules.
"""

from .errors import (
    AuthorizationError,
    InvalidParameterError,
    InvariantViolationError,
    NotFoundError,
    SettlementError,
    StateConflictError,
    TimingError,
)
from .params import (
    MAX_REGISTERED_CHAINS,
    MESSAGE_EXPIRY_SECONDS,
    MIN_SYNC_INTERVAL_SECONDS,
    SCALE_E18,
    SETTLEMENT_IMBALANCE_TOLERANCE_E18,
)
from .settlement_math import chain_delta, imbalance_e18, option_payoff_e18, within_tolerance

__all__ = [
    "AuthorizationError",
    "InvalidParameterError",
    "InvariantViolationError",
    "NotFoundError",
    "SettlementError",
    "StateConflictError",
    "TimingError",
    "MAX_REGISTERED_CHAINS",
    "MESSAGE_EXPIRY_SECONDS",
    "MIN_SYNC_INTERVAL_SECONDS",
    "SCALE_E18",
    "SETTLEMENT_IMBALANCE_TOLERANCE_E18",
    "chain_delta",
    "imbalance_e18",
    "option_payoff_e18",
    "within_tolerance",
]
