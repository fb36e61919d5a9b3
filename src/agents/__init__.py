"""
Off-chain agents that move messages between settlement nodes
"""

from .relayer import (
    Relayer,
    RelayReport,
    batch_messages,
    create_batch,
)

__all__ = [
    "Relayer",
    "RelayReport",
    "batch_messages",
    "create_batch",
]
