"""Fixed protocol parameters.

These values must match on every deployment; nodes with different parameters
cannot interoperate.
"""

from __future__ import annotations

# Fixed-point scale for prices and ratios (18 decimal digits).
SCALE_E18: int = 10**18

MAX_REGISTERED_CHAINS: int = 32
MESSAGE_EXPIRY_SECONDS: int = 24 * 60 * 60
MIN_SYNC_INTERVAL_SECONDS: int = 5 * 60

# 1% relative imbalance, in SCALE_E18 units.
SETTLEMENT_IMBALANCE_TOLERANCE_E18: int = SCALE_E18 // 100

MESSAGE_NONCE_START: int = 0
REBALANCE_ID_START: int = 1
