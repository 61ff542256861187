from .send import (  # noqa: F401
    Signer,
    build_dynamic_fee_tx,
    send_capped,
    send_with_envelope,
    wait_for_receipt,
)

__all__ = ["Signer", "build_dynamic_fee_tx", "send_capped", "send_with_envelope", "wait_for_receipt"]
