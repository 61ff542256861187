from __future__ import annotations

"""
HTTP JSON-RPC client (sync) on httpx.

- Retries transient transport failures and 429/502/503/504 with exponential
  backoff plus jitter.
- Never retries a JSON-RPC error object: the node answered, the answer is final.

Example:
    from onchain_upload.rpc.http import RpcClient
    with RpcClient("https://mainnet.base.org") as rpc:
        print(int(rpc.call("eth_chainId"), 16))
"""

import json
import random
import time
from dataclasses import dataclass, field
from itertools import count
from typing import Any, Dict, Iterator, Mapping, Optional, Sequence, Union

import httpx

from ..errors import JsonRpcCode, RpcError, from_jsonrpc_error
from ..logging import get_logger
from ..version import __version__

JSON = Union[dict, list, str, int, float, bool, None]
Params = Union[Sequence[Any], Mapping[str, Any], None]

log = get_logger(__name__)


def _is_retriable_http(status: int) -> bool:
    return status in (429, 502, 503, 504)


def _jitter_backoff(base: float, factor: float, attempt: int, jitter: float) -> float:
    return base * (factor ** max(attempt - 1, 0)) + random.random() * jitter


class _RetriableHttp(Exception):
    def __init__(self, status: int) -> None:
        super().__init__(f"HTTP {status}")
        self.status = status


@dataclass
class RpcClient:
    """Synchronous JSON-RPC 2.0 client over HTTP."""

    url: str
    timeout: float = 30.0
    max_retries: int = 3
    backoff_base: float = 0.15
    backoff_factor: float = 1.8
    backoff_jitter: float = 0.2
    headers: Optional[Mapping[str, str]] = None
    transport: Optional[httpx.BaseTransport] = None
    _ids: Iterator[int] = field(default_factory=lambda: count(1))
    _client: httpx.Client = field(init=False, repr=False)

    def __post_init__(self) -> None:
        merged: Dict[str, str] = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": f"onchain-upload/{__version__}",
        }
        if self.headers:
            merged.update(dict(self.headers))
        self._client = httpx.Client(timeout=self.timeout, headers=merged, transport=self.transport)

    # --- context manager -------------------------------------------------

    def __enter__(self) -> "RpcClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        self.close()

    def close(self) -> None:
        self._client.close()

    # --- public API ------------------------------------------------------

    def call(self, method: str, params: Params = None) -> JSON:
        """Perform a single JSON-RPC request and return `result` or raise RpcError."""
        payload = self._make_payload(method, params)
        resp = self._send_with_retries(payload, method)
        if not isinstance(resp, dict):
            raise RpcError(
                code=JsonRpcCode.INTERNAL_ERROR,
                message="Invalid JSON-RPC response type",
                data=type(resp).__name__,
                method=method,
            )
        return self._unwrap(resp, method)

    # --- internals -------------------------------------------------------

    def _make_payload(self, method: str, params: Params) -> Dict[str, Any]:
        if params is None:
            params = []
        elif isinstance(params, Mapping):
            params = dict(params)
        elif isinstance(params, Sequence) and not isinstance(params, (str, bytes, bytearray)):
            params = list(params)
        else:
            params = [params]
        return {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}

    @staticmethod
    def _unwrap(resp: Dict[str, Any], method: str) -> JSON:
        if resp.get("error") is not None:
            raise from_jsonrpc_error(resp["error"], method=method)
        if "result" not in resp:
            raise RpcError(
                code=JsonRpcCode.INTERNAL_ERROR,
                message="Malformed JSON-RPC response",
                data=resp,
                method=method,
            )
        return resp["result"]

    def _send_with_retries(self, payload: Dict[str, Any], method: str) -> JSON:
        last_exc: Optional[Exception] = None
        for attempt in range(1, self.max_retries + 2):  # N retries -> N+1 attempts
            try:
                return self._send_once(payload, method)
            except (httpx.TimeoutException, httpx.NetworkError, _RetriableHttp) as e:
                last_exc = e
                if attempt > self.max_retries:
                    break
                delay = _jitter_backoff(self.backoff_base, self.backoff_factor, attempt, self.backoff_jitter)
                log.debug("rpc retry", extra={"method": method, "attempt": attempt, "error": str(e)})
                time.sleep(delay)
        raise RpcError(
            code=JsonRpcCode.TRANSPORT,
            message="RPC transport failed",
            data=str(last_exc),
            method=method,
        )

    def _send_once(self, payload: Dict[str, Any], method: str) -> JSON:
        body = json.dumps(payload, separators=(",", ":"))
        r = self._client.post(self.url, content=body)
        if _is_retriable_http(r.status_code):
            raise _RetriableHttp(r.status_code)
        # Avoid raise_for_status() to keep the error body visible below
        try:
            return r.json()
        except ValueError as e:
            raise RpcError(
                code=JsonRpcCode.INTERNAL_ERROR,
                message="Non-JSON response from RPC",
                data=f"HTTP {r.status_code}: {r.text[:256]}",
                method=method,
                http_status=r.status_code,
            ) from e


__all__ = ["RpcClient"]
