"""
Settlement node shell: configuration, relayer attestation, events
"""

from .config import DeploymentConfig, NodeConfig, load_deployment_yaml
from .node import SettlementNode, build_nodes_from_deployment

__all__ = [
    "DeploymentConfig",
    "NodeConfig",
    "load_deployment_yaml",
    "SettlementNode",
    "build_nodes_from_deployment",
]
