"""
onchain_upload.contracts.logo
=============================

Client for a contract that stores its logo on-chain in appended chunks:

    function owner() view returns (address)
    function setLogoMIME(string mime)
    function resetLogo()
    function appendLogoChunk(bytes chunk)
    function finalizeLogo()
    function logoInfo() view returns (string mime, uint256 rawBytes,
                                      uint256 legacyB64Chars, bool isSealed)
    function tokenURI(uint256 id) view returns (string)

Every write goes through the same capped path: estimate gas, fetch fee
signals, clamp the envelope under the fee cap, sign, send, wait.

`LogoContract.chunk_sink()` exposes `appendLogoChunk` to the chunk engine.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from eth_abi import decode as abi_decode
from eth_abi import encode as abi_encode
from eth_abi.exceptions import DecodingError
from eth_utils import function_signature_to_4byte_selector, to_checksum_address

from ..errors import (
    AuthorizationError,
    ConfigError,
    ContractNotFoundError,
    RpcError,
    SimulationFailure,
)
from ..fees.envelope import FeeEnvelope, FeeSignals
from ..logging import get_logger
from ..rpc.eth import EthRpc, to_hex
from ..tx.send import Signer, send_capped, send_with_envelope, wait_for_receipt

log = get_logger(__name__)

# (signature, argument types)
OWNER = ("owner()", ())
SET_LOGO_MIME = ("setLogoMIME(string)", ("string",))
RESET_LOGO = ("resetLogo()", ())
APPEND_LOGO_CHUNK = ("appendLogoChunk(bytes)", ("bytes",))
FINALIZE_LOGO = ("finalizeLogo()", ())
LOGO_INFO = ("logoInfo()", ())
TOKEN_URI = ("tokenURI(uint256)", ("uint256",))

LOGO_INFO_TYPES = ("string", "uint256", "uint256", "bool")


def encode_call(fn: Tuple[str, Sequence[str]], *args: Any) -> bytes:
    """4-byte selector followed by the ABI-encoded arguments."""
    signature, types = fn
    selector = function_signature_to_4byte_selector(signature)
    if not types:
        return selector
    return selector + abi_encode(list(types), list(args))


@dataclass(frozen=True)
class LogoInfo:
    mime: str
    raw_bytes: int
    legacy_b64_chars: int
    is_sealed: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mime": self.mime,
            "rawBytes": self.raw_bytes,
            "legacyB64Chars": self.legacy_b64_chars,
            "isSealed": self.is_sealed,
        }


def _unsupported(e: RpcError) -> bool:
    """Node answered with an error object (revert, missing method)."""
    return e.from_node


class LogoContract:
    """
    Parameters
    ----------
    eth : EthRpc bound to the node.
    address : target contract (any case; checksummed internally).
    signer : Signer used for every write and as `from` for simulations;
        may be None for a read-only client.
    chain_id : chain id placed into signed transactions; fetched from the
        node on first use when omitted.
    cap_wei : fee cap applied to every write.
    receipt_timeout : None waits for receipts indefinitely.
    """

    def __init__(
        self,
        eth: EthRpc,
        address: str,
        signer: Optional[Signer],
        *,
        cap_wei: int,
        chain_id: Optional[int] = None,
        receipt_timeout: Optional[float] = None,
        poll_interval: float = 1.0,
    ) -> None:
        self._eth = eth
        self._address = to_checksum_address(address)
        self._signer = signer
        self._chain_id = int(chain_id) if chain_id is not None else None
        self._cap = int(cap_wei)
        self._receipt_timeout = receipt_timeout
        self._poll_interval = float(poll_interval)

    # ------------------------------------------------------------------ accessors

    @property
    def address(self) -> str:
        return self._address

    @property
    def signer(self) -> Signer:
        if self._signer is None:
            raise ConfigError("a signer is required for writes", field="private_key")
        return self._signer

    @property
    def eth(self) -> EthRpc:
        return self._eth

    @property
    def chain_id(self) -> int:
        if self._chain_id is None:
            self._chain_id = self._eth.chain_id()
        return self._chain_id

    # ------------------------------------------------------------------ reads

    def _tx(self, data: bytes) -> Dict[str, Any]:
        tx = {"to": self._address, "data": to_hex(data)}
        if self._signer is not None:
            tx["from"] = self._signer.address
        return tx

    def _read(self, data: bytes) -> bytes:
        return self._eth.call({"to": self._address, "data": to_hex(data)})

    def ensure_deployed(self) -> None:
        if not self._eth.get_code(self._address):
            raise ContractNotFoundError(self._address)

    def owner(self) -> Optional[str]:
        """owner() if the contract exposes it, else None."""
        try:
            out = self._read(encode_call(OWNER))
            (owner,) = abi_decode(["address"], out)
        except RpcError as e:
            if not _unsupported(e):
                raise
            return None
        except DecodingError:
            return None
        return to_checksum_address(owner)

    def check_owner(self) -> Optional[str]:
        """
        Best-effort authorization check. Returns the owner, or None when the
        contract has no owner() accessor; raises AuthorizationError on mismatch.
        """
        owner = self.owner()
        if owner is None:
            log.warning("owner() not callable; setters may revert if the contract is access-controlled")
            return None
        log.info("owner: %s", owner)
        if owner.lower() != self.signer.address.lower():
            raise AuthorizationError(owner=owner, signer=self.signer.address)
        return owner

    def logo_info(self) -> Optional[LogoInfo]:
        try:
            out = self._read(encode_call(LOGO_INFO))
            mime, raw, legacy, sealed = abi_decode(list(LOGO_INFO_TYPES), out)
        except RpcError as e:
            if not _unsupported(e):
                raise
            return None
        except DecodingError:
            return None
        return LogoInfo(mime=mime, raw_bytes=int(raw), legacy_b64_chars=int(legacy), is_sealed=bool(sealed))

    def token_uri(self, token_id: int) -> str:
        (uri,) = abi_decode(["string"], self._read(encode_call(TOKEN_URI, int(token_id))))
        return uri

    def probe_selectors(self, mime: str) -> List[Tuple[str, bool]]:
        """
        Diagnostic pre-flight: eth_call each write selector once.
        Returns (name, answered_without_revert) pairs; never raises on reverts.
        """
        probes = [
            ("setLogoMIME", encode_call(SET_LOGO_MIME, mime)),
            ("resetLogo", encode_call(RESET_LOGO)),
            ("appendLogoChunk", encode_call(APPEND_LOGO_CHUNK, b"\x01")),
            ("finalizeLogo", encode_call(FINALIZE_LOGO)),
        ]
        results: List[Tuple[str, bool]] = []
        for name, data in probes:
            try:
                self._eth.call(self._tx(data))
                ok = True
                log.info("%s: selector exists", name)
            except RpcError as e:
                if not _unsupported(e):
                    raise
                ok = False
                log.info("%s: selector likely exists but reverted on call (ok for non-view)", name)
            results.append((name, ok))
        return results

    # ------------------------------------------------------------------ writes

    def estimate(self, data: bytes) -> int:
        return self._eth.estimate_gas(self._tx(data))

    def fee_signals(self) -> FeeSignals:
        return self._eth.fee_signals()

    def send(self, data: bytes, envelope: FeeEnvelope) -> str:
        return send_with_envelope(
            self._eth,
            self.signer,
            to=self._address,
            data=data,
            envelope=envelope,
            chain_id=self.chain_id,
        )

    def wait(self, tx_hash: str) -> Dict[str, Any]:
        return wait_for_receipt(
            self._eth,
            tx_hash,
            timeout_s=self._receipt_timeout,
            poll_interval_s=self._poll_interval,
        )

    def write(self, name: str, data: bytes) -> Dict[str, Any]:
        """Estimate, cap, send and confirm one write; returns its receipt."""
        signer = self.signer
        gas = self.estimate(data)
        tx_hash, envelope = send_capped(
            self._eth,
            signer,
            to=self._address,
            data=data,
            gas=gas,
            cap_wei=self._cap,
            chain_id=self.chain_id,
        )
        log.info("%s...", name, extra={"gas": gas, "max_fee": envelope.max_fee_per_gas, "tx_hash": tx_hash})
        return self.wait(tx_hash)

    def set_logo_mime(self, mime: str) -> Dict[str, Any]:
        return self.write(f'setLogoMIME("{mime}")', encode_call(SET_LOGO_MIME, mime))

    def reset_logo(self) -> Dict[str, Any]:
        return self.write("resetLogo()", encode_call(RESET_LOGO))

    def finalize_logo(self) -> Dict[str, Any]:
        return self.write("finalizeLogo()", encode_call(FINALIZE_LOGO))

    def chunk_sink(self) -> "LogoChunkSink":
        return LogoChunkSink(self)


class LogoChunkSink:
    """appendLogoChunk as a ChunkSink for upload.engine.ChunkSubmitter."""

    def __init__(self, contract: LogoContract) -> None:
        self._contract = contract

    def simulate(self, chunk: bytes) -> int:
        try:
            return self._contract.estimate(encode_call(APPEND_LOGO_CHUNK, bytes(chunk)))
        except RpcError as e:
            if not _unsupported(e):
                raise
            raise SimulationFailure(message=e.message, length=len(chunk), cause=e) from e

    def fee_signals(self) -> FeeSignals:
        return self._contract.fee_signals()

    def send(self, chunk: bytes, envelope: FeeEnvelope) -> str:
        return self._contract.send(encode_call(APPEND_LOGO_CHUNK, bytes(chunk)), envelope)

    def wait(self, tx_hash: str) -> Dict[str, Any]:
        return self._contract.wait(tx_hash)


__all__ = [
    "LogoContract",
    "LogoChunkSink",
    "LogoInfo",
    "encode_call",
]
