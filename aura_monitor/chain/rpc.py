"""
Chain RPC capability: the narrow interface the monitor consumes.

Responsibilities:
- ChainRpc: the exact set of node operations the reconciliation logic needs,
  so it can be driven by a scripted fake in tests.
- SubstrateRpcClient: Substrate JSON-RPC over HTTP (httpx). Connection-level
  failures are retried with exponential backoff. Other request errors, HTTP
  errors, JSON-RPC error objects, and undecodable payloads raise
  TransportError immediately.
"""

from __future__ import annotations

import time
from typing import Any, Protocol

import httpx

from aura_monitor.chain.models import Header
from aura_monitor.chain.scale import decode_public_keys, decode_u64, hex_to_bytes
from aura_monitor.core.exceptions import TransportError
from aura_monitor.monitor_logging import get_logger

logger = get_logger(__name__)

# twox128("Timestamp") ++ twox128("Now")
TIMESTAMP_NOW_KEY = "0xf0c365c3cf59d671eb72da0e7a4113c49f1f0515f462cdcf84e0f1d6045dfcbb"
AURA_KEY_TYPE = "aura"

DEFAULT_TIMEOUT_SEC = 30.0
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_MIN_RETRY_DELAY_SEC = 0.5
DEFAULT_MAX_RETRY_DELAY_SEC = 5.0


class ChainRpc(Protocol):
    """Node operations used by the monitor. Every call may raise TransportError."""

    def timestamp_now(self, at: str | None = None) -> int | None:
        """Timestamp.Now in milliseconds at a block (best block if None); None if unset."""
        ...

    def slot_duration(self) -> int:
        """Aura slot duration in milliseconds."""
        ...

    def authorities(self, at: str | None = None) -> list[bytes]:
        """Ordered Aura authority public keys (32 bytes each)."""
        ...

    def block_hash(self, number: int | None = None) -> str | None:
        """Hash of block `number`, or of the best block when number is None."""
        ...

    def header(self, block_hash: str) -> Header | None:
        ...

    def finalized_head(self) -> str | None:
        ...

    def has_key(self, public_key_hex: str, key_type: str) -> bool:
        """author_hasKey: whether the node's keystore holds this key for the role."""
        ...


class SubstrateRpcClient:
    """
    Blocking Substrate JSON-RPC client over HTTP.

    One request at a time; request ids are per-client and increasing.
    Use as a context manager or call close() to release the connection pool.
    """

    def __init__(
        self,
        rpc_url: str,
        *,
        timeout_sec: float = DEFAULT_TIMEOUT_SEC,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        min_retry_delay_sec: float = DEFAULT_MIN_RETRY_DELAY_SEC,
        max_retry_delay_sec: float = DEFAULT_MAX_RETRY_DELAY_SEC,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """
        Args:
            rpc_url: Node HTTP RPC endpoint (e.g. http://127.0.0.1:9944).
            timeout_sec: HTTP timeout for each request.
            max_attempts: Attempts per call for connection-level failures (>= 1).
            min_retry_delay_sec: Initial backoff delay between attempts.
            max_retry_delay_sec: Cap for backoff delay.
            transport: Optional httpx transport (tests use httpx.MockTransport).
        """
        if not rpc_url.strip():
            raise ValueError("rpc_url must be non-empty")
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._rpc_url = rpc_url.rstrip("/")
        self._max_attempts = max_attempts
        self._min_retry_delay = min_retry_delay_sec
        self._max_retry_delay = max_retry_delay_sec
        self._request_id = 0
        self._client = httpx.Client(
            timeout=httpx.Timeout(timeout_sec),
            transport=transport,
        )

    def __enter__(self) -> "SubstrateRpcClient":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def _next_id(self) -> int:
        self._request_id += 1
        return self._request_id

    def _post(self, body: dict[str, Any]) -> httpx.Response:
        """POST with retry on connection-level errors only."""
        method = body["method"]
        delay = self._min_retry_delay
        for attempt in range(self._max_attempts):
            try:
                resp = self._client.post(self._rpc_url, json=body)
                resp.raise_for_status()
                return resp
            except httpx.HTTPStatusError as e:
                raise TransportError(
                    f"{method}: HTTP {e.response.status_code} from {self._rpc_url}",
                    method=method,
                ) from e
            except httpx.TransportError as e:
                if attempt + 1 >= self._max_attempts:
                    logger.error(
                        "rpc_give_up",
                        method=method,
                        attempts=self._max_attempts,
                        error=str(e),
                    )
                    raise TransportError(
                        f"{method}: request to {self._rpc_url} failed: {e}",
                        method=method,
                    ) from e
                logger.warning(
                    "rpc_retry",
                    method=method,
                    attempt=attempt + 1,
                    max_attempts=self._max_attempts,
                    error=str(e),
                )
                time.sleep(delay)
                delay = min(delay * 2, self._max_retry_delay)
            except httpx.RequestError as e:
                # Redirect loops, undecodable bodies: not retried
                raise TransportError(
                    f"{method}: request to {self._rpc_url} failed: {e}",
                    method=method,
                ) from e
        raise TransportError(f"{method}: no attempt made", method=method)

    def request(self, method: str, params: list[Any] | None = None) -> Any:
        """Perform one JSON-RPC call and return its result (may be None)."""
        body = {
            "jsonrpc": "2.0",
            "id": self._next_id(),
            "method": method,
            "params": params or [],
        }
        resp = self._post(body)
        try:
            data = resp.json()
        except ValueError as e:
            raise TransportError(f"{method}: invalid JSON response", method=method) from e
        if not isinstance(data, dict):
            raise TransportError(f"{method}: unexpected response shape", method=method)
        if "error" in data:
            err = data["error"] or {}
            message = err.get("message", err) if isinstance(err, dict) else err
            code = err.get("code") if isinstance(err, dict) else None
            raise TransportError(f"{method}: RPC error: {message} (code={code})", method=method)
        return data.get("result")

    def _decode(self, method: str, fn: Any, raw: str) -> Any:
        try:
            return fn(hex_to_bytes(raw))
        except ValueError as e:
            raise TransportError(f"{method}: cannot decode result: {e}", method=method) from e

    # --- ChainRpc ---

    def timestamp_now(self, at: str | None = None) -> int | None:
        params: list[Any] = [TIMESTAMP_NOW_KEY]
        if at is not None:
            params.append(at)
        raw = self.request("state_getStorage", params)
        if raw is None:
            return None
        return self._decode("state_getStorage", decode_u64, raw)

    def slot_duration(self) -> int:
        raw = self.request("state_call", ["AuraApi_slot_duration", "0x"])
        if raw is None:
            raise TransportError("state_call: AuraApi_slot_duration returned nothing", method="state_call")
        return self._decode("state_call", decode_u64, raw)

    def authorities(self, at: str | None = None) -> list[bytes]:
        params: list[Any] = ["AuraApi_authorities", "0x"]
        if at is not None:
            params.append(at)
        raw = self.request("state_call", params)
        if raw is None:
            return []
        return self._decode("state_call", decode_public_keys, raw)

    def block_hash(self, number: int | None = None) -> str | None:
        return self.request("chain_getBlockHash", [] if number is None else [number])

    def header(self, block_hash: str) -> Header | None:
        raw = self.request("chain_getHeader", [block_hash])
        if raw is None:
            return None
        try:
            return Header.from_rpc(raw)
        except (KeyError, TypeError, ValueError) as e:
            raise TransportError(f"chain_getHeader: malformed header: {e}", method="chain_getHeader") from e

    def finalized_head(self) -> str | None:
        return self.request("chain_getFinalizedHead")

    def has_key(self, public_key_hex: str, key_type: str = AURA_KEY_TYPE) -> bool:
        return bool(self.request("author_hasKey", [public_key_hex, key_type]))
