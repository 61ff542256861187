"""
Typed error classes for onchain-upload.

These are raised by the decoder, rpc/http, tx/send, the contract surface and
the chunk submission engine so callers can catch specific failure modes while
still being able to catch the base `UploadError`.

Propagation policy
------------------
- `SimulationFailure` is local to chunk sizing and is absorbed by the shrink
  loop; it only escapes wrapped in `ChunkTooSmallError`.
- Everything else is fatal for the run and propagates to the CLI, which logs
  it and exits non-zero.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Dict, Optional

__all__ = [
    "UploadError",
    "ConfigError",
    "DecodeError",
    "RpcError",
    "JsonRpcCode",
    "SimulationFailure",
    "ChunkTooSmallError",
    "RevertedError",
    "AuthorizationError",
    "ContractNotFoundError",
    "from_jsonrpc_error",
]


class UploadError(Exception):
    """Base class for all onchain-upload errors."""


class JsonRpcCode(IntEnum):
    # JSON-RPC 2.0 spec
    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603

    # Server errors (implementation-defined range: -32099 to -32000)
    SERVER_ERROR = -32000

    # Local: transport failed before a JSON-RPC answer arrived
    TRANSPORT = -32098

    # geth/erigon/reth: eth_call / eth_estimateGas hit a REVERT
    EXECUTION_REVERTED = 3


@dataclass
class ConfigError(UploadError):
    """Missing or malformed configuration value."""

    message: str
    field: Optional[str] = None

    def __str__(self) -> str:  # pragma: no cover - trivial
        where = f" [{self.field}]" if self.field else ""
        return f"ConfigError{where}: {self.message}"


@dataclass
class DecodeError(UploadError):
    """Input file could not be read or its encoding is not recognised."""

    message: str
    path: Optional[str] = None

    def __str__(self) -> str:  # pragma: no cover - trivial
        where = f" ({self.path})" if self.path else ""
        return f"DecodeError{where}: {self.message}"


@dataclass
class RpcError(UploadError):
    """Raised when a JSON-RPC call returns an error object or the transport fails."""

    code: int
    message: str
    data: Optional[Any] = None
    method: Optional[str] = None
    http_status: Optional[int] = None
    # set when the node answered with an error object
    from_node: bool = False

    def __str__(self) -> str:  # pragma: no cover - trivial
        parts = [f"RPC[{self.method or '-'}] code={self.code} msg={self.message!r}"]
        if self.http_status is not None:
            parts.append(f"http={self.http_status}")
        if self.data is not None:
            parts.append(f"data={self.data!r}")
        return " ".join(parts)

    @property
    def code_enum(self) -> Optional[JsonRpcCode]:
        try:
            return JsonRpcCode(self.code)
        except ValueError:
            return None

    @property
    def is_transport(self) -> bool:
        return self.code == JsonRpcCode.TRANSPORT


@dataclass
class SimulationFailure(UploadError):
    """
    The node refused to estimate gas for a candidate chunk.

    Recovered locally by halving the chunk; never surfaces on its own.
    """

    message: str
    offset: int = 0
    length: int = 0
    cause: Optional[BaseException] = None

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"SimulationFailure [{self.offset}+{self.length}]: {self.message}"


@dataclass
class ChunkTooSmallError(UploadError):
    """Even a floor-sized chunk could not be simulated."""

    offset: int
    length: int
    floor: int
    cause: Optional[BaseException] = None

    def __str__(self) -> str:  # pragma: no cover - trivial
        msg = (
            f"ChunkTooSmallError: chunk at offset {self.offset} failed at "
            f"{self.length} bytes (floor {self.floor})"
        )
        if self.cause is not None:
            msg += f": {self.cause}"
        return msg


@dataclass
class RevertedError(UploadError):
    """
    A submitted transaction was mined but failed on-chain (status 0).

    Fields:
      - tx_hash: 0x-prefixed transaction hash
      - receipt: the receipt as returned by the node
    """

    tx_hash: str
    receipt: Optional[Dict[str, Any]] = None
    message: str = "transaction reverted"

    def __str__(self) -> str:  # pragma: no cover - trivial
        block = (self.receipt or {}).get("blockNumber")
        suffix = f" block={block}" if block is not None else ""
        return f"RevertedError tx={self.tx_hash}{suffix}: {self.message}"


@dataclass
class AuthorizationError(UploadError):
    """The signer is not the contract owner."""

    owner: str
    signer: str

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"AuthorizationError: signer {self.signer} is not owner {self.owner}"


@dataclass
class ContractNotFoundError(UploadError):
    """No bytecode deployed at the target address."""

    address: str

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"ContractNotFoundError: no bytecode at {self.address}"


def from_jsonrpc_error(
    err_obj: Dict[str, Any],
    *,
    method: Optional[str] = None,
    http_status: Optional[int] = None,
) -> RpcError:
    """
    Convert a JSON-RPC error object into RpcError.

    `err_obj` should resemble: {"code": int, "message": str, "data": any?}
    """
    try:
        code = int(err_obj.get("code", JsonRpcCode.SERVER_ERROR))
    except (TypeError, ValueError):
        code = int(JsonRpcCode.SERVER_ERROR)
    return RpcError(
        code=code,
        message=str(err_obj.get("message", "Unknown JSON-RPC error")),
        data=err_obj.get("data"),
        method=method,
        http_status=http_status,
        from_node=True,
    )
