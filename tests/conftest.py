"""Shared pytest fixtures for onchain-upload tests."""

from __future__ import annotations

import base64
import json
from typing import Any, Callable, Dict, List, Optional

import pytest
import rlp
from eth_abi import decode as abi_decode
from eth_abi import encode as abi_encode
from eth_account import Account
from eth_utils import function_signature_to_4byte_selector

from onchain_upload.errors import RevertedError, SimulationFailure
from onchain_upload.fees.envelope import ONE_GWEI, FeeEnvelope, FeeSignals

# Hardhat's well-known account #0
DEV_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
DEV_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
OTHER_ADDRESS = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"
CONTRACT = "0x5FbDB2315678afecb367f032d93F642f64180aa3"


# ---------------------------------------------------------------------------
# Engine-level fake: the ChunkSink protocol without any RPC underneath
# ---------------------------------------------------------------------------


class FakeSink:
    """
    In-memory ChunkSink.

    fails(length) decides whether a simulation of `length` bytes fails;
    `fail_once` maps lengths to the number of times they should fail before
    succeeding.
    """

    def __init__(
        self,
        *,
        fails: Optional[Callable[[int], bool]] = None,
        fail_once: Optional[Dict[int, int]] = None,
        signals: Optional[FeeSignals] = None,
        gas_per_byte: int = 16,
        base_gas: int = 21_000,
        revert_at: Optional[int] = None,
    ) -> None:
        self._fails = fails or (lambda n: False)
        self._fail_once = dict(fail_once or {})
        self.signals = signals or FeeSignals(max_fee_per_gas=2 * ONE_GWEI, max_priority_fee_per_gas=ONE_GWEI)
        self.gas_per_byte = gas_per_byte
        self.base_gas = base_gas
        self.revert_at = revert_at
        self.simulated: List[int] = []
        self.sent: List[bytes] = []
        self.envelopes: List[FeeEnvelope] = []
        self.fee_queries = 0

    def gas_for(self, length: int) -> int:
        return self.base_gas + self.gas_per_byte * length

    def simulate(self, chunk: bytes) -> int:
        n = len(chunk)
        self.simulated.append(n)
        if self._fail_once.get(n, 0) > 0:
            self._fail_once[n] -= 1
            raise SimulationFailure(message="execution reverted", length=n)
        if self._fails(n):
            raise SimulationFailure(message="execution reverted", length=n)
        return self.gas_for(n)

    def fee_signals(self) -> FeeSignals:
        self.fee_queries += 1
        return self.signals

    def send(self, chunk: bytes, envelope: FeeEnvelope) -> str:
        self.sent.append(bytes(chunk))
        self.envelopes.append(envelope)
        return "0x%064x" % len(self.sent)

    def wait(self, tx_hash: str) -> Dict[str, Any]:
        if self.revert_at is not None and len(self.sent) - 1 == self.revert_at:
            raise RevertedError(tx_hash=tx_hash, receipt={"status": "0x0"})
        return {"transactionHash": tx_hash, "status": "0x1"}

    @property
    def sent_lengths(self) -> List[int]:
        return [len(c) for c in self.sent]


@pytest.fixture
def sink() -> FakeSink:
    return FakeSink()


# ---------------------------------------------------------------------------
# Node-level fake: Ethereum JSON-RPC plus a logo contract behind it
# ---------------------------------------------------------------------------


def selector(signature: str) -> str:
    return "0x" + function_signature_to_4byte_selector(signature).hex()


SEL = {
    "owner": selector("owner()"),
    "setLogoMIME": selector("setLogoMIME(string)"),
    "resetLogo": selector("resetLogo()"),
    "appendLogoChunk": selector("appendLogoChunk(bytes)"),
    "finalizeLogo": selector("finalizeLogo()"),
    "logoInfo": selector("logoInfo()"),
    "tokenURI": selector("tokenURI(uint256)"),
}


class RpcFault(Exception):
    """Raised by FakeNode handlers; converted into a JSON-RPC error by call()."""

    def __init__(self, code: int, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


class FakeNode:
    """
    Minimal Ethereum node holding one logo contract.

    - appendLogoChunk simulations revert above `max_chunk` bytes
    - `owner=None` makes owner() revert (non-Ownable contract)
    - `has_logo_info=False` makes logoInfo() revert
    - `revert_sends` lists 0-based write indices whose receipts report status 0
    - tokenURI(id) serves JSON metadata embedding the stored logo for minted ids
    """

    def __init__(
        self,
        *,
        chain_id: int = 8453,
        owner: Optional[str] = DEV_ADDRESS,
        max_chunk: int = 1 << 30,
        base_fee: Optional[int] = ONE_GWEI,
        gas_price: int = 2 * ONE_GWEI,
        priority_fee: Optional[int] = ONE_GWEI,
        has_code: bool = True,
        has_logo_info: bool = True,
        revert_sends: Optional[List[int]] = None,
        pending_polls: int = 1,
    ) -> None:
        self.chain_id = chain_id
        self.owner = owner
        self.max_chunk = max_chunk
        self.base_fee = base_fee
        self.gas_price = gas_price
        self.priority_fee = priority_fee
        self.has_code = has_code
        self.has_logo_info = has_logo_info
        self.revert_sends = set(revert_sends or [])
        self.pending_polls = pending_polls

        self.calls: List[tuple] = []
        self.mime = ""
        self.logo = bytearray()
        self.sealed = False
        self.nonce = 0
        self.minted = {1}
        self.txs: List[Dict[str, Any]] = []
        self.receipts: Dict[str, Dict[str, Any]] = {}
        self._polls: Dict[str, int] = {}

    # --- context manager, so the node can stand in for RpcClient -----------

    def __enter__(self) -> "FakeNode":
        return self

    def __exit__(self, *exc: Any) -> None:
        return None

    def close(self) -> None:
        return None

    # --- JSON-RPC entry ----------------------------------------------------

    def call(self, method: str, params: Any = None) -> Any:
        from onchain_upload.errors import from_jsonrpc_error

        self.calls.append((method, params))
        handler = getattr(self, "_" + method, None)
        if handler is None:
            raise from_jsonrpc_error({"code": -32601, "message": "method not found"}, method=method)
        try:
            return handler(*(params or []))
        except RpcFault as f:
            raise from_jsonrpc_error({"code": f.code, "message": f.message}, method=method)

    @property
    def methods(self) -> List[str]:
        return [m for m, _ in self.calls]

    # --- contract semantics ------------------------------------------------

    def _execute(self, data: str, sender: Optional[str], *, commit: bool) -> bytes:
        sel, body = data[:10], bytes.fromhex(data[10:])
        if sel == SEL["owner"]:
            if self.owner is None:
                raise RpcFault(3, "execution reverted")
            return abi_encode(["address"], [self.owner])
        if sel == SEL["logoInfo"]:
            if not self.has_logo_info:
                raise RpcFault(3, "execution reverted")
            return abi_encode(
                ["string", "uint256", "uint256", "bool"], [self.mime, len(self.logo), 0, self.sealed]
            )
        if sel == SEL["tokenURI"]:
            (token_id,) = abi_decode(["uint256"], body)
            if token_id not in self.minted:
                raise RpcFault(3, "execution reverted: nonexistent token")
            return abi_encode(["string"], [self.token_uri(token_id)])
        if sel in (SEL["setLogoMIME"], SEL["resetLogo"], SEL["appendLogoChunk"], SEL["finalizeLogo"]):
            if self.owner is not None and (sender or "").lower() != self.owner.lower():
                raise RpcFault(3, "execution reverted: not owner")
            if self.sealed:
                raise RpcFault(3, "execution reverted: sealed")
            if sel == SEL["appendLogoChunk"]:
                (chunk,) = abi_decode(["bytes"], body)
                if len(chunk) > self.max_chunk:
                    raise RpcFault(-32000, "gas required exceeds allowance")
                if commit:
                    self.logo.extend(chunk)
            elif commit and sel == SEL["setLogoMIME"]:
                (self.mime,) = abi_decode(["string"], body)
            elif commit and sel == SEL["resetLogo"]:
                self.logo = bytearray()
            elif commit and sel == SEL["finalizeLogo"]:
                self.sealed = True
            return b""
        raise RpcFault(3, "execution reverted")

    def token_uri(self, token_id: int) -> str:
        image = "data:%s;base64,%s" % (self.mime, base64.b64encode(bytes(self.logo)).decode())
        meta = json.dumps({"name": "#%d" % token_id, "image": image})
        return "data:application/json;base64," + base64.b64encode(meta.encode()).decode()

    def gas_for(self, data: str) -> int:
        return 21_000 + 16 * (len(data) - 2) // 2

    # --- eth_* handlers ----------------------------------------------------

    def _eth_chainId(self) -> str:
        return hex(self.chain_id)

    def _eth_getCode(self, address: str, block: str) -> str:
        return "0x6080604052" if self.has_code else "0x"

    def _eth_getTransactionCount(self, address: str, block: str) -> str:
        return hex(self.nonce)

    def _eth_gasPrice(self) -> str:
        return hex(self.gas_price)

    def _eth_maxPriorityFeePerGas(self) -> str:
        if self.priority_fee is None:
            raise RpcFault(-32601, "method not found")
        return hex(self.priority_fee)

    def _eth_getBlockByNumber(self, tag: str, full: bool) -> Dict[str, Any]:
        block: Dict[str, Any] = {"number": "0x10"}
        if self.base_fee is not None:
            block["baseFeePerGas"] = hex(self.base_fee)
        return block

    def _eth_call(self, tx: Dict[str, Any], block: str) -> str:
        return "0x" + self._execute(tx["data"], tx.get("from"), commit=False).hex()

    def _eth_estimateGas(self, tx: Dict[str, Any]) -> str:
        self._execute(tx["data"], tx.get("from"), commit=False)
        return hex(self.gas_for(tx["data"]))

    def _eth_sendRawTransaction(self, raw_hex: str) -> str:
        raw = bytes.fromhex(raw_hex[2:])
        assert raw[0] == 2, "expected an EIP-1559 transaction"
        fields = rlp.decode(raw[1:])
        sender = Account.recover_transaction(raw_hex)
        tx = {
            "chainId": int.from_bytes(fields[0], "big"),
            "nonce": int.from_bytes(fields[1], "big"),
            "maxPriorityFeePerGas": int.from_bytes(fields[2], "big"),
            "maxFeePerGas": int.from_bytes(fields[3], "big"),
            "gas": int.from_bytes(fields[4], "big"),
            "to": "0x" + fields[5].hex(),
            "data": "0x" + fields[7].hex(),
            "from": sender,
        }
        assert tx["nonce"] == self.nonce, "nonce mismatch"
        index = len(self.txs)
        self.txs.append(tx)
        self.nonce += 1
        tx_hash = "0x%064x" % (index + 1)
        status = "0x1"
        if index in self.revert_sends:
            status = "0x0"
        else:
            self._execute(tx["data"], sender, commit=True)
        self.receipts[tx_hash] = {
            "transactionHash": tx_hash,
            "status": status,
            "blockNumber": hex(100 + index),
            "gasUsed": hex(self.gas_for(tx["data"])),
        }
        return tx_hash

    def _eth_getTransactionReceipt(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        seen = self._polls.get(tx_hash, 0)
        self._polls[tx_hash] = seen + 1
        if seen < self.pending_polls:
            return None
        return self.receipts.get(tx_hash)

    # --- helpers for assertions -------------------------------------------

    def calldata_for(self, name: str) -> List[bytes]:
        return [bytes.fromhex(t["data"][10:]) for t in self.txs if t["data"].startswith(SEL[name])]

    def appended_chunks(self) -> List[bytes]:
        return [abi_decode(["bytes"], body)[0] for body in self.calldata_for("appendLogoChunk")]


@pytest.fixture
def node() -> FakeNode:
    return FakeNode()


@pytest.fixture(autouse=True)
def _no_sleep(monkeypatch: pytest.MonkeyPatch) -> None:
    """Receipt polling and RPC backoff should not slow the suite down."""
    import onchain_upload.rpc.http as http_mod
    import onchain_upload.tx.send as send_mod

    monkeypatch.setattr(send_mod.time, "sleep", lambda s: None)
    monkeypatch.setattr(http_mod.time, "sleep", lambda s: None)
