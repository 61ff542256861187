"""
onchain_upload.upload.engine
============================

Adaptive, fee-capped chunk submission.

`ChunkSubmitter.submit()` drives a payload through a sequence of write calls,
one outstanding chunk at a time:

- SIZING        start at the configured chunk size (or the remaining tail)
- ESTIMATING    simulate the write; on failure halve and retry, fatal at the floor
- BUDGET_CHECK  gas * suggested fee over the cap and above the floor: halve
- SENDING       capped envelope from the estimate already obtained, submit, wait
- CONFIRMED     advance the offset, restart sizing at the full configured size

The offset moves only after a confirmed receipt, so a crash anywhere leaves the
contract holding exactly the whole chunks confirmed so far; re-invoking with
``start_offset`` equal to that count resumes the upload.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Protocol, Union

from ..config import UploadConfig
from ..errors import SimulationFailure
from ..fees.envelope import FeeEnvelope, FeeSignals, compute_envelope, estimated_cost
from ..logging import get_logger
from . import states
from .states import CandidateChunk, Phase


class ChunkSink(Protocol):
    """
    The write side of the target contract as the engine sees it.

    - simulate(chunk) -> gas estimate; raises SimulationFailure
    - fee_signals()   -> current network fee suggestions
    - send(chunk, envelope) -> tx hash
    - wait(tx_hash)   -> receipt; raises RevertedError
    """

    def simulate(self, chunk: bytes) -> int: ...

    def fee_signals(self) -> FeeSignals: ...

    def send(self, chunk: bytes, envelope: FeeEnvelope) -> str: ...

    def wait(self, tx_hash: str) -> Dict[str, Any]: ...


@dataclass(frozen=True)
class ChunkRecord:
    """One confirmed chunk."""

    offset: int
    length: int
    gas: int
    envelope: FeeEnvelope
    tx_hash: str
    shrinks: int = 0
    receipt: Optional[Dict[str, Any]] = None

    @property
    def end(self) -> int:
        return self.offset + self.length


Payload = Union[bytes, bytearray, memoryview]


class ChunkSubmitter:
    """
    Sequential chunk uploader bound to a sink and an UploadConfig.

    Parameters
    ----------
    sink : ChunkSink implementation (see contracts.logo.LogoChunkSink).
    config : fee cap, chunk size and floor for this run.
    on_confirmed : optional callback invoked with each ChunkRecord after
        its receipt arrives (useful for persisting the resume offset).
    """

    def __init__(
        self,
        sink: ChunkSink,
        config: UploadConfig,
        *,
        on_confirmed: Optional[Callable[[ChunkRecord], None]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._sink = sink
        self._config = config
        self._on_confirmed = on_confirmed
        self._log = logger or get_logger(__name__)
        self.records: List[ChunkRecord] = []

    @property
    def config(self) -> UploadConfig:
        return self._config

    def submit(
        self,
        payload: Payload,
        start_offset: int = 0,
        chunk_size: Optional[int] = None,
        floor: Optional[int] = None,
    ) -> int:
        """
        Upload ``payload[start_offset:]`` and return the final confirmed offset.

        Raises ChunkTooSmallError when a floor-sized chunk still fails to
        simulate; RevertedError and RpcError propagate unchanged.
        """
        view = memoryview(payload).cast("B").toreadonly()
        total = len(view)
        size = int(chunk_size or self._config.chunk_size)
        floor = int(floor or self._config.min_chunk)
        if size < 1 or floor < 1:
            raise ValueError("chunk size and floor must be positive")
        if not 0 <= start_offset <= total:
            raise ValueError(f"start offset {start_offset} outside payload of {total} bytes")

        offset = start_offset
        if offset:
            self._log.info("resuming upload", extra={"offset": offset, "total": total})
        while offset < total:
            record = self._submit_one(view, offset, total, size, floor)
            offset = record.end
            self.records.append(record)
            if self._on_confirmed is not None:
                self._on_confirmed(record)
        return offset

    # ------------------------------------------------------------------ internals

    def _submit_one(
        self, view: memoryview, offset: int, total: int, size: int, floor: int
    ) -> ChunkRecord:
        cap = self._config.fee_cap_wei
        chunk: CandidateChunk = states.size_chunk(offset, total, size)
        phase = Phase.ESTIMATING
        shrinks = 0
        gas = 0
        data = b""

        while True:
            if phase is Phase.SIZING:
                phase = Phase.ESTIMATING

            elif phase is Phase.ESTIMATING:
                data = chunk.slice(view)
                try:
                    gas = int(self._sink.simulate(data))
                except SimulationFailure as e:
                    chunk = self._shrunk(chunk, floor, e, reason="simulation failed")
                    shrinks += 1
                    phase = Phase.SIZING
                    continue
                phase = Phase.BUDGET_CHECK

            elif phase is Phase.BUDGET_CHECK:
                signals = self._sink.fee_signals()
                phase = states.budget_decision(chunk, gas, signals.suggested_max_fee, cap, floor)
                if phase is Phase.SIZING:
                    self._log.info(
                        "estimated cost over cap",
                        extra={"cost": estimated_cost(gas, signals), "cap": cap, "gas": gas},
                    )
                    chunk = self._shrunk(chunk, floor, None, reason="over fee cap")
                    shrinks += 1

            elif phase is Phase.SENDING:
                envelope = compute_envelope(gas, self._sink.fee_signals(), cap)
                if not envelope.within(cap):
                    self._log.warning(
                        "fee envelope exceeds cap after the tip ordering raise",
                        extra={"max_cost": envelope.max_cost, "cap": cap},
                    )
                self._log.info(
                    "appendLogoChunk %d..%d (%d)",
                    chunk.offset,
                    chunk.end - 1,
                    chunk.length,
                    extra={"gas": gas, "max_fee": envelope.max_fee_per_gas},
                )
                tx_hash = self._sink.send(data, envelope)
                receipt = self._sink.wait(tx_hash)
                phase = Phase.CONFIRMED

            else:  # Phase.CONFIRMED
                states.advance(offset, chunk)
                self._log.debug("chunk confirmed", extra={"tx_hash": tx_hash, "end": chunk.end})
                return ChunkRecord(
                    offset=chunk.offset,
                    length=chunk.length,
                    gas=gas,
                    envelope=envelope,
                    tx_hash=tx_hash,
                    shrinks=shrinks,
                    receipt=receipt,
                )

    def _shrunk(
        self,
        chunk: CandidateChunk,
        floor: int,
        cause: Optional[BaseException],
        *,
        reason: str,
    ) -> CandidateChunk:
        if cause is not None:
            smaller = states.after_simulation_failure(chunk, floor, cause)
        else:
            smaller = states.shrink(chunk, floor)
        self._log.info(
            "%s, shrinking chunk %d -> %d",
            reason,
            chunk.length,
            smaller.length,
            extra={"offset": chunk.offset},
        )
        return smaller


__all__ = ["ChunkSink", "ChunkRecord", "ChunkSubmitter"]
