"""
Uploader configuration: fee budget, chunk sizing, node endpoint and signer.

- `UploadConfig` carries the engine constants (fee cap, chunk size, floor). It is
  passed into the submission engine at construction; nothing in the engine
  reads the environment.
- `NodeConfig` carries the RPC endpoint, signing key and timeouts.
- Both load defaults and support overrides via environment variables
  (UPLOADER_*, with the legacy names TX_FEE_CAP_WEI / MIN_CHUNK / BASE_RPC /
  PRIVATE_KEY still honoured).
"""

from __future__ import annotations

import os
import re
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional, Sequence

from .errors import ConfigError

DEFAULT_FEE_CAP_WEI = 10**18  # 1 ETH, the usual node-side RPC fee cap
DEFAULT_CHUNK_SIZE = 20_000
DEFAULT_MIN_CHUNK = 512
DEFAULT_CHAIN_ID = 8453  # Base mainnet

_HEX_RE = re.compile(r"^0x[0-9a-fA-F]+$")


def parse_int(val: Any, *, name: str = "value") -> int:
    """
    Accepts int, decimal str, or 0x-hex str and returns int.
    Underscores are allowed in decimal strings (``1_000``).
    """
    if isinstance(val, bool):
        raise ConfigError("expected integer, got bool", field=name)
    if isinstance(val, int):
        return val
    s = str(val).strip()
    try:
        if _HEX_RE.match(s):
            return int(s, 16)
        return int(s.replace("_", ""), 10)
    except ValueError as e:
        raise ConfigError(f"not an integer: {val!r}", field=name) from e


def _env(names: Sequence[str], default: Optional[str] = None) -> Optional[str]:
    for name in names:
        v = os.getenv(name)
        if v is not None and v != "":
            return v
    return default


def _ensure_scheme(url: Optional[str], allowed: tuple[str, ...]) -> Optional[str]:
    if not url:
        return url
    lower = url.lower()
    if not any(lower.startswith(f"{sch}://") for sch in allowed):
        raise ConfigError(f"URL must start with {allowed}, got: {url!r}", field="rpc_url")
    return url


@dataclass(frozen=True)
class UploadConfig:
    """
    Engine constants for one run.

    fee_cap_wei : hard upper bound on gas * price for a single transaction
    chunk_size  : bytes attempted per appendLogoChunk before any shrinking
    min_chunk   : smallest chunk tried before a failure is fatal
    """

    fee_cap_wei: int = DEFAULT_FEE_CAP_WEI
    chunk_size: int = DEFAULT_CHUNK_SIZE
    min_chunk: int = DEFAULT_MIN_CHUNK

    def __post_init__(self) -> None:
        if self.fee_cap_wei < 1:
            raise ConfigError("fee cap must be positive", field="fee_cap_wei")
        if self.min_chunk < 1:
            raise ConfigError("min chunk must be at least 1 byte", field="min_chunk")
        # a chunk size below the floor is allowed; such chunks are never shrunk
        if self.chunk_size < 1:
            raise ConfigError("chunk size must be at least 1 byte", field="chunk_size")

    @classmethod
    def from_env(cls, prefix: str = "UPLOADER_") -> "UploadConfig":
        """
        Create config from environment variables:

        UPLOADER_FEE_CAP_WEI   (int or 0x-hex; alias TX_FEE_CAP_WEI)
        UPLOADER_CHUNK_SIZE    (int)
        UPLOADER_MIN_CHUNK     (int; alias MIN_CHUNK)
        """
        cap = _env([f"{prefix}FEE_CAP_WEI", "TX_FEE_CAP_WEI"])
        chunk = _env([f"{prefix}CHUNK_SIZE"])
        floor = _env([f"{prefix}MIN_CHUNK", "MIN_CHUNK"])
        return cls(
            fee_cap_wei=parse_int(cap, name="fee_cap_wei") if cap else DEFAULT_FEE_CAP_WEI,
            chunk_size=parse_int(chunk, name="chunk_size") if chunk else DEFAULT_CHUNK_SIZE,
            min_chunk=parse_int(floor, name="min_chunk") if floor else DEFAULT_MIN_CHUNK,
        )

    @classmethod
    def with_overrides(
        cls, base: Optional["UploadConfig"] = None, **overrides: Any
    ) -> "UploadConfig":
        """
        Build from an existing config plus keyword overrides.
        Unknown keys and None values are ignored.
        """
        base = base or cls.from_env()
        data = base.to_dict()
        for k, v in overrides.items():
            if k in data and v is not None:
                data[k] = parse_int(v, name=k)
        return cls(**data)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class NodeConfig:
    rpc_url: str
    private_key: Optional[str] = field(default=None, repr=False)
    expected_chain_id: int = DEFAULT_CHAIN_ID
    request_timeout: float = 30.0
    max_retries: int = 3
    # None: wait for a receipt for as long as it takes
    receipt_timeout: Optional[float] = None
    poll_interval: float = 1.0

    def __post_init__(self) -> None:
        _ensure_scheme(self.rpc_url, ("http", "https"))

    @classmethod
    def from_env(cls, prefix: str = "UPLOADER_", **overrides: Any) -> "NodeConfig":
        """
        Create config from environment variables, then apply non-None overrides:

        UPLOADER_RPC_URL          (http/https; alias BASE_RPC)
        UPLOADER_PRIVATE_KEY      (0x-hex; alias PRIVATE_KEY)
        UPLOADER_CHAIN_ID         (int or 0x-hex)
        UPLOADER_TIMEOUT          (float seconds, HTTP)
        UPLOADER_MAX_RETRIES      (int)
        UPLOADER_RECEIPT_TIMEOUT  (float seconds; unset = unbounded)
        UPLOADER_POLL_INTERVAL    (float seconds between receipt polls)
        """
        data: Dict[str, Any] = {
            "rpc_url": _env([f"{prefix}RPC_URL", "BASE_RPC"]),
            "private_key": _env([f"{prefix}PRIVATE_KEY", "PRIVATE_KEY"]),
            "expected_chain_id": parse_int(
                _env([f"{prefix}CHAIN_ID"], str(DEFAULT_CHAIN_ID)), name="chain_id"
            ),
            "request_timeout": _float(_env([f"{prefix}TIMEOUT"], "30.0"), "request_timeout"),
            "max_retries": parse_int(_env([f"{prefix}MAX_RETRIES"], "3"), name="max_retries"),
            "receipt_timeout": _float(_env([f"{prefix}RECEIPT_TIMEOUT"]), "receipt_timeout"),
            "poll_interval": _float(_env([f"{prefix}POLL_INTERVAL"], "1.0"), "poll_interval"),
        }
        data.update({k: v for k, v in overrides.items() if k in data and v is not None})
        if not data["rpc_url"]:
            raise ConfigError("missing RPC URL (--rpc or UPLOADER_RPC_URL)", field="rpc_url")
        return cls(**data)

    def require_private_key(self) -> str:
        if not self.private_key:
            raise ConfigError(
                "missing signing key (--pk or UPLOADER_PRIVATE_KEY)", field="private_key"
            )
        return self.private_key


def _float(val: Optional[str], name: str) -> Optional[float]:
    if val is None:
        return None
    try:
        return float(val)
    except ValueError as e:
        raise ConfigError(f"not a number: {val!r}", field=name) from e


__all__ = [
    "UploadConfig",
    "NodeConfig",
    "parse_int",
    "DEFAULT_FEE_CAP_WEI",
    "DEFAULT_CHUNK_SIZE",
    "DEFAULT_MIN_CHUNK",
    "DEFAULT_CHAIN_ID",
]
