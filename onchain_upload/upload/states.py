"""
Pure transition functions for the chunk submission state machine.

Per outstanding chunk:

    SIZING -> ESTIMATING -> BUDGET_CHECK -> SENDING -> CONFIRMED
                 |               |
                 +---> SIZING <--+          (shrink)

Nothing here talks to the network; the engine feeds results in and acts on
the returned phase/chunk, which keeps every shrink decision testable on its own.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional

from ..errors import ChunkTooSmallError


class Phase(Enum):
    SIZING = auto()
    ESTIMATING = auto()
    BUDGET_CHECK = auto()
    SENDING = auto()
    CONFIRMED = auto()


@dataclass(frozen=True)
class CandidateChunk:
    """Half-open byte range ``[offset, offset + length)`` into the payload."""

    offset: int
    length: int

    @property
    def end(self) -> int:
        return self.offset + self.length

    def slice(self, view: memoryview) -> bytes:
        return bytes(view[self.offset:self.end])

    def with_length(self, length: int) -> "CandidateChunk":
        return CandidateChunk(self.offset, length)


def size_chunk(offset: int, total: int, chunk_size: int) -> CandidateChunk:
    """SIZING: the full configured size, or the remaining tail if shorter."""
    if not 0 <= offset < total:
        raise ValueError(f"offset {offset} outside payload of {total} bytes")
    return CandidateChunk(offset, min(chunk_size, total - offset))


def can_shrink(chunk: CandidateChunk, floor: int) -> bool:
    return chunk.length > floor


def shrink(chunk: CandidateChunk, floor: int, cause: Optional[BaseException] = None) -> CandidateChunk:
    """
    Halve the candidate (floor division), never going below `floor`.

    Raises ChunkTooSmallError when the chunk is already at or below the floor.
    """
    if not can_shrink(chunk, floor):
        raise ChunkTooSmallError(offset=chunk.offset, length=chunk.length, floor=floor, cause=cause)
    return chunk.with_length(max(chunk.length // 2, floor))


def after_simulation_failure(chunk: CandidateChunk, floor: int, cause: BaseException) -> CandidateChunk:
    """ESTIMATING failed: back to SIZING with a smaller chunk, or fatal at the floor."""
    return shrink(chunk, floor, cause)


def over_budget(gas: int, suggested_max_fee: Optional[int], cap_wei: int) -> bool:
    """True when the unclamped cost at the node's suggested fee exceeds the cap."""
    if not suggested_max_fee:
        return False
    return gas * suggested_max_fee > cap_wei


def budget_decision(
    chunk: CandidateChunk,
    gas: int,
    suggested_max_fee: Optional[int],
    cap_wei: int,
    floor: int,
) -> Phase:
    """
    BUDGET_CHECK: SIZING (shrink) when over budget and still above the floor,
    else SENDING. At the floor we send anyway; the envelope clamps the fee.
    """
    if over_budget(gas, suggested_max_fee, cap_wei) and can_shrink(chunk, floor):
        return Phase.SIZING
    return Phase.SENDING


def advance(offset: int, chunk: CandidateChunk) -> int:
    """CONFIRMED: the only place the running offset moves."""
    if chunk.offset != offset:
        raise ValueError(f"chunk at {chunk.offset} does not start at confirmed offset {offset}")
    return chunk.end


def max_reductions(chunk_size: int, floor: int) -> int:
    """Upper bound on shrinks for one chunk: ceil(log2(chunk_size / floor)) + 1."""
    if chunk_size <= floor:
        return 1
    return math.ceil(math.log2(chunk_size / floor)) + 1


__all__ = [
    "Phase",
    "CandidateChunk",
    "size_chunk",
    "can_shrink",
    "shrink",
    "after_simulation_failure",
    "over_budget",
    "budget_decision",
    "advance",
    "max_reductions",
]
