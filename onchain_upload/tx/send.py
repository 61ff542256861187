"""
onchain_upload.tx.send
======================

Sign EIP-1559 transactions with a local key, submit them, and await receipts.

Primary entry points
--------------------
- Signer.from_key(hex_key)
- build_dynamic_fee_tx(...) -> dict
- send_with_envelope(eth, signer, to, data, envelope, chain_id) -> tx hash
- send_capped(eth, signer, to, data, gas, cap_wei, chain_id) -> (tx hash, envelope)
- wait_for_receipt(eth, tx_hash, *, timeout_s=None, ...) -> receipt
    Status 0 receipts raise RevertedError. With timeout_s=None the wait is
    unbounded: once a transaction is out, only its outcome ends the wait.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from eth_account import Account
from eth_account.signers.local import LocalAccount
from eth_utils import to_checksum_address

from ..errors import ConfigError, RevertedError
from ..fees.envelope import FeeEnvelope, compute_envelope
from ..logging import get_logger
from ..rpc.eth import EthRpc, to_hex, to_int

log = get_logger(__name__)


@dataclass(frozen=True)
class Signer:
    """Local secp256k1 signer backed by eth-account."""

    account: LocalAccount

    @classmethod
    def from_key(cls, private_key: str) -> "Signer":
        try:
            return cls(Account.from_key(private_key))
        except (ValueError, TypeError) as e:
            raise ConfigError("private key is not a valid secp256k1 key", field="private_key") from e

    @property
    def address(self) -> str:
        return self.account.address

    def sign(self, tx: Dict[str, Any]) -> bytes:
        return bytes(self.account.sign_transaction(tx).raw_transaction)


def build_dynamic_fee_tx(
    *,
    chain_id: int,
    nonce: int,
    to: str,
    data: bytes,
    envelope: FeeEnvelope,
    value: int = 0,
) -> Dict[str, Any]:
    """EIP-1559 (type 2) transaction dict with explicit gas and fees."""
    tx: Dict[str, Any] = {
        "type": 2,
        "chainId": int(chain_id),
        "nonce": int(nonce),
        "to": to_checksum_address(to),
        "value": int(value),
        "data": to_hex(data),
    }
    tx.update(envelope.as_tx_fields())
    return tx


def send_with_envelope(
    eth: EthRpc,
    signer: Signer,
    *,
    to: str,
    data: bytes,
    envelope: FeeEnvelope,
    chain_id: int,
) -> str:
    """Sign and broadcast; returns the 0x-prefixed tx hash."""
    nonce = eth.get_nonce(signer.address)
    tx = build_dynamic_fee_tx(chain_id=chain_id, nonce=nonce, to=to, data=data, envelope=envelope)
    tx_hash = eth.send_raw_transaction(signer.sign(tx))
    log.debug("tx sent", extra={"tx_hash": tx_hash, "nonce": nonce, "gas": envelope.gas_limit})
    return tx_hash


def send_capped(
    eth: EthRpc,
    signer: Signer,
    *,
    to: str,
    data: bytes,
    gas: int,
    cap_wei: int,
    chain_id: int,
) -> Tuple[str, FeeEnvelope]:
    """Envelope from fresh fee signals, clamped under `cap_wei`, then sign and send."""
    envelope = compute_envelope(gas, eth.fee_signals(), cap_wei)
    tx_hash = send_with_envelope(eth, signer, to=to, data=data, envelope=envelope, chain_id=chain_id)
    return tx_hash, envelope


def receipt_succeeded(receipt: Dict[str, Any]) -> bool:
    status = receipt.get("status")
    if status is None:
        # pre-Byzantium receipts carry no status; treat inclusion as success
        return True
    return to_int(status) == 1


def wait_for_receipt(
    eth: EthRpc,
    tx_hash: str,
    *,
    timeout_s: Optional[float] = None,
    poll_interval_s: float = 1.0,
    max_interval_s: float = 5.0,
    backoff: float = 1.25,
) -> Dict[str, Any]:
    """
    Poll for a receipt until it arrives (or timeout, when one is given).

    Raises:
        RevertedError when the receipt reports status 0
        TimeoutError when `timeout_s` elapses first
    """
    deadline = None if timeout_s is None else time.monotonic() + float(timeout_s)
    interval = float(poll_interval_s)

    while True:
        rec = eth.get_receipt(tx_hash)
        if rec is not None:
            if not receipt_succeeded(rec):
                raise RevertedError(tx_hash=tx_hash, receipt=rec)
            return rec

        if deadline is not None and time.monotonic() >= deadline:
            raise TimeoutError(f"timeout waiting for receipt (tx={tx_hash}, timeout_s={timeout_s})")

        time.sleep(interval)
        interval = min(interval * float(backoff), float(max_interval_s))


__all__ = [
    "Signer",
    "build_dynamic_fee_tx",
    "send_with_envelope",
    "send_capped",
    "receipt_succeeded",
    "wait_for_receipt",
]
