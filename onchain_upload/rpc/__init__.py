"""
JSON-RPC transport (`http`) and the Ethereum method surface (`eth`).
"""

from .eth import EthRpc  # noqa: F401
from .http import RpcClient  # noqa: F401

__all__ = ["RpcClient", "EthRpc"]
