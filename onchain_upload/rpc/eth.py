"""
Typed helpers over the Ethereum JSON-RPC methods the uploader consumes:
network identity, code lookup, fee signals, call simulation, submission and
receipt polling. Quantities come back from the node as 0x-hex and are returned
as ints here.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Protocol

from ..errors import JsonRpcCode, RpcError
from ..fees.envelope import FeeSignals, suggest_fee_signals


class _RpcClient(Protocol):
    def call(self, method: str, params: Any = None) -> Any: ...


def to_int(val: Any) -> int:
    """Decode a JSON-RPC quantity (0x-hex str or int)."""
    if isinstance(val, int):
        return val
    if isinstance(val, str):
        s = val.strip()
        return int(s, 16) if s[:2].lower() == "0x" else int(s)
    raise RpcError(code=JsonRpcCode.INTERNAL_ERROR, message=f"not a quantity: {val!r}")


def to_hex(data: bytes) -> str:
    return "0x" + bytes(data).hex()


def hex_to_bytes(val: str) -> bytes:
    s = val[2:] if val[:2].lower() == "0x" else val
    return bytes.fromhex(s)


class EthRpc:
    """Ethereum method surface on top of an RpcClient."""

    def __init__(self, rpc: _RpcClient) -> None:
        self._rpc = rpc

    @property
    def rpc(self) -> _RpcClient:
        return self._rpc

    # --- identity / state --------------------------------------------------

    def chain_id(self) -> int:
        return to_int(self._rpc.call("eth_chainId", []))

    def get_code(self, address: str, block: str = "latest") -> bytes:
        return hex_to_bytes(self._rpc.call("eth_getCode", [address, block]) or "0x")

    def get_nonce(self, address: str, block: str = "pending") -> int:
        return to_int(self._rpc.call("eth_getTransactionCount", [address, block]))

    # --- fees --------------------------------------------------------------

    def gas_price(self) -> Optional[int]:
        res = self._rpc.call("eth_gasPrice", [])
        return to_int(res) if res is not None else None

    def max_priority_fee(self) -> Optional[int]:
        """eth_maxPriorityFeePerGas, or None when the node does not implement it."""
        try:
            res = self._rpc.call("eth_maxPriorityFeePerGas", [])
        except RpcError as e:
            if not e.from_node:
                raise
            return None
        return to_int(res) if res is not None else None

    def latest_base_fee(self) -> Optional[int]:
        block = self._rpc.call("eth_getBlockByNumber", ["latest", False])
        if not isinstance(block, dict) or block.get("baseFeePerGas") is None:
            return None
        return to_int(block["baseFeePerGas"])

    def fee_signals(self) -> FeeSignals:
        base_fee = self.latest_base_fee()
        return suggest_fee_signals(
            gas_price=self.gas_price(),
            base_fee=base_fee,
            priority_fee=self.max_priority_fee() if base_fee is not None else None,
        )

    # --- execution ---------------------------------------------------------

    def estimate_gas(self, tx: Dict[str, Any]) -> int:
        return to_int(self._rpc.call("eth_estimateGas", [tx]))

    def call(self, tx: Dict[str, Any], block: str = "latest") -> bytes:
        return hex_to_bytes(self._rpc.call("eth_call", [tx, block]) or "0x")

    def send_raw_transaction(self, raw: bytes) -> str:
        res = self._rpc.call("eth_sendRawTransaction", [to_hex(raw)])
        if not isinstance(res, str):
            raise RpcError(
                code=JsonRpcCode.INTERNAL_ERROR,
                message="unexpected eth_sendRawTransaction result",
                data=res,
                method="eth_sendRawTransaction",
            )
        return res if res.startswith("0x") else "0x" + res

    def get_receipt(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        """Receipt dict, or None while the transaction is pending."""
        res = self._rpc.call("eth_getTransactionReceipt", [tx_hash])
        if res in (None, False, ""):
            return None
        if not isinstance(res, dict):
            raise RpcError(
                code=JsonRpcCode.INTERNAL_ERROR,
                message="unexpected receipt payload",
                data=res,
                method="eth_getTransactionReceipt",
            )
        return res


__all__ = ["EthRpc", "to_int", "to_hex", "hex_to_bytes"]
