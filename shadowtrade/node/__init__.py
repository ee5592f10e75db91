"""
ShadowTrade Node

Configuration and the node orchestrator.
"""

from shadowtrade.node.config import NodeConfig, setup_logging

__all__ = [
    "NodeConfig",
    "setup_logging",
]
