"""
onchain_upload.fees.envelope
============================

Capped EIP-1559 fee envelopes.

Network fee suggestions are treated as untrusted upper bounds: whatever the
node proposes, the per-gas price is clamped so that ``gas_limit * max_fee``
stays under a fixed cap. The cap is the safety ceiling against gas-price
spikes; the 1 gwei tip floor keeps the transaction minable.

Primary entry points
--------------------
- compute_envelope(gas_estimate, signals, cap_wei) -> FeeEnvelope
- suggest_fee_signals(gas_price, base_fee, priority_fee) -> FeeSignals
- estimated_cost(gas, signals) -> int | None
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

ONE_GWEI = 10**9

# ethers' getFeeData() default when the node has no priority-fee opinion
DEFAULT_PRIORITY_FEE = ONE_GWEI


@dataclass(frozen=True)
class FeeSignals:
    """
    Current fee suggestions from the node. Any field may be None when the
    node does not expose it (legacy chains have no base fee).
    """

    max_fee_per_gas: Optional[int] = None
    max_priority_fee_per_gas: Optional[int] = None
    gas_price: Optional[int] = None
    base_fee_per_gas: Optional[int] = None

    @property
    def suggested_max_fee(self) -> Optional[int]:
        """Suggested per-gas ceiling: EIP-1559 max fee if known, else legacy gas price."""
        if self.max_fee_per_gas:
            return self.max_fee_per_gas
        return self.gas_price or None


@dataclass(frozen=True)
class FeeEnvelope:
    gas_limit: int
    max_fee_per_gas: int
    max_priority_fee_per_gas: int

    @property
    def max_cost(self) -> int:
        """Worst-case wei spent by a transaction carrying this envelope."""
        return self.gas_limit * self.max_fee_per_gas

    def within(self, cap_wei: int) -> bool:
        return self.max_cost <= cap_wei

    def as_tx_fields(self) -> Dict[str, Any]:
        return {
            "gas": self.gas_limit,
            "maxFeePerGas": self.max_fee_per_gas,
            "maxPriorityFeePerGas": self.max_priority_fee_per_gas,
        }


def suggest_fee_signals(
    *,
    gas_price: Optional[int],
    base_fee: Optional[int],
    priority_fee: Optional[int],
) -> FeeSignals:
    """
    Derive fee signals the way ethers' getFeeData() does.

    With a base fee (London+): max fee = 2 * base fee + tip, tip defaulting to
    1 gwei. Without one only the legacy gas price is available and the tip is
    left unknown.
    """
    if base_fee is None:
        return FeeSignals(gas_price=gas_price, max_priority_fee_per_gas=None)
    tip = priority_fee if priority_fee is not None else DEFAULT_PRIORITY_FEE
    return FeeSignals(
        max_fee_per_gas=2 * base_fee + tip,
        max_priority_fee_per_gas=tip,
        gas_price=gas_price,
        base_fee_per_gas=base_fee,
    )


def estimated_cost(gas: int, signals: FeeSignals) -> Optional[int]:
    """Unclamped cost at the node's suggested fee; None when the node suggests nothing."""
    fee = signals.suggested_max_fee
    if not fee:
        return None
    return int(gas) * int(fee)


def compute_envelope(gas_estimate: int, signals: FeeSignals, cap_wei: int) -> FeeEnvelope:
    """
    Bound the suggested fees so that ``gas_estimate * max_fee <= cap_wei``.

    Never fails. A tip is only re-derived when it exceeds the clamped max fee,
    and the final ordering raise (max fee at least 1 gwei above the tip) can
    then push the max fee past the per-gas cap: whenever the kept tip sits
    within 1 gwei of it, or ``cap_wei // gas_estimate`` is below 2 gwei.
    Callers can check `FeeEnvelope.within()`.
    """
    gas = max(int(gas_estimate), 1)
    per_gas_cap = int(cap_wei) // gas

    max_fee = signals.suggested_max_fee
    tip = signals.max_priority_fee_per_gas
    if tip is None and max_fee:
        tip = max_fee // 5

    if not max_fee or max_fee > per_gas_cap:
        max_fee = per_gas_cap
    if tip is None or tip > max_fee:
        tip = max_fee // 5

    if tip < ONE_GWEI:
        tip = ONE_GWEI
    if max_fee < tip + ONE_GWEI:
        max_fee = tip + ONE_GWEI

    return FeeEnvelope(gas_limit=gas, max_fee_per_gas=max_fee, max_priority_fee_per_gas=tip)


__all__ = [
    "ONE_GWEI",
    "FeeSignals",
    "FeeEnvelope",
    "compute_envelope",
    "suggest_fee_signals",
    "estimated_cost",
]
