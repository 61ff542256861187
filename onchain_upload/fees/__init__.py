from .envelope import (  # noqa: F401
    ONE_GWEI,
    FeeEnvelope,
    FeeSignals,
    compute_envelope,
    estimated_cost,
    suggest_fee_signals,
)

__all__ = [
    "ONE_GWEI",
    "FeeEnvelope",
    "FeeSignals",
    "compute_envelope",
    "estimated_cost",
    "suggest_fee_signals",
]
