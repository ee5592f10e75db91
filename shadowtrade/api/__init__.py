"""
ShadowTrade JSON-RPC API
"""

from shadowtrade.api.methods import METHOD_REGISTRY, RPCError, get_method, list_methods
from shadowtrade.api.server import APIServer, RPCResponse

__all__ = [
    "METHOD_REGISTRY",
    "RPCError",
    "get_method",
    "list_methods",
    "APIServer",
    "RPCResponse",
]
