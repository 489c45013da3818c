import logging
import threading
import time
from typing import Any, Dict, List, Mapping, Optional, Tuple

import requests

from .abi import MULTICALL3, decode_multicall_addresses, encode_aggregate3_result

logger = logging.getLogger(__name__)


def _rpc_error_detail(error_obj: Dict[str, Any]) -> str:
    parts: List[str] = []
    code = error_obj.get("code")
    if code is not None:
        parts.append(f"code {code}")
    if error_obj.get("message"):
        parts.append(str(error_obj["message"]))
    if error_obj.get("data"):
        parts.append(str(error_obj["data"]))
    return ": ".join(parts) if parts else "unknown error"


class RpcClient:
    """JSON-RPC 2.0 client for an EVM node (HTTP POST) with linear-backoff retry."""

    def __init__(
        self,
        rpc_url: str,
        timeout: int = 10,
        max_retries: int = 3,
        backoff_seconds: float = 0.5,
        headers: Optional[Mapping[str, str]] = None,
    ) -> None:
        url = (rpc_url or "").strip()
        if not url:
            raise ValueError("rpc_url must be a non-empty string.")

        self.rpc_url = url
        self.timeout = timeout
        self.max_retries = max(1, int(max_retries))
        self.backoff_seconds = float(backoff_seconds)
        self.session = requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})
        if headers:
            self.session.headers.update(dict(headers))
        self._next_id = 1

    def _backoff(self, attempt: int) -> None:
        time.sleep(self.backoff_seconds * attempt)

    def call(self, method: str, params: Optional[List[Any]] = None) -> Any:
        if not isinstance(method, str) or not method.strip():
            raise ValueError("method must be a non-empty string.")
        payload = {
            "jsonrpc": "2.0",
            "id": self._next_id,
            "method": method,
            "params": params or [],
        }
        self._next_id += 1

        for attempt in range(1, self.max_retries + 1):
            last_attempt = attempt == self.max_retries
            try:
                response = self.session.post(self.rpc_url, json=payload, timeout=self.timeout)
                if (response.status_code == 429 or response.status_code >= 500) and not last_attempt:
                    logger.debug("%s: HTTP %s, retrying", method, response.status_code)
                    self._backoff(attempt)
                    continue

                response.raise_for_status()
                data = response.json()
                if not isinstance(data, dict):
                    raise ValueError("Unexpected JSON-RPC response (non-object).")
                if isinstance(data.get("error"), dict):
                    raise ValueError(f"RPC error: {_rpc_error_detail(data['error'])}.")
                if "result" not in data:
                    raise ValueError("Unexpected JSON-RPC response (missing result).")
                return data["result"]
            except (requests.RequestException, ValueError) as exc:
                if last_attempt:
                    raise
                logger.debug("%s: attempt %d failed: %s", method, attempt, exc)
                self._backoff(attempt)

        raise RuntimeError("RPC request failed without raising an exception.")

    def eth_call(self, to: str, data: str, block: str = "latest") -> str:
        result = self.call("eth_call", [{"to": to, "data": data}, block])
        if not isinstance(result, str) or not result.startswith("0x"):
            raise ValueError("RPC error: eth_call returned unexpected result.")
        return result


class RpcTransport:
    """
    Runs the aggregate3 ``eth_call`` against Multicall3.

    One ``RpcClient`` (and so one HTTP session) is kept per endpoint and
    header set.
    """

    def __init__(self, timeout: int = 10, max_retries: int = 3, backoff_seconds: float = 0.5) -> None:
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff_seconds = backoff_seconds
        self._clients: Dict[Tuple[str, Tuple[Tuple[str, str], ...]], RpcClient] = {}
        self._lock = threading.Lock()

    def _client(self, endpoint: str, headers: Mapping[str, str]) -> RpcClient:
        key = (endpoint, tuple(sorted(headers.items())))
        with self._lock:
            client = self._clients.get(key)
            if client is None:
                client = RpcClient(
                    endpoint,
                    timeout=self.timeout,
                    max_retries=self.max_retries,
                    backoff_seconds=self.backoff_seconds,
                    headers=headers,
                )
                self._clients[key] = client
            return client

    def call(self, endpoint: str, calldata: str, headers: Mapping[str, str]) -> str:
        logger.debug("eth_call to %s, calldata length %d", endpoint, len(calldata))
        return self._client(endpoint, headers).eth_call(MULTICALL3, calldata)


class DryRunTransport:
    """Answers aggregate3 calls locally from a fixed address -> name table."""

    def __init__(self, names: Optional[Mapping[str, str]] = None) -> None:
        self.names = {address.lower(): name for address, name in (names or {}).items()}
        self.calls: List[str] = []

    def call(self, endpoint: str, calldata: str, headers: Mapping[str, str]) -> str:
        self.calls.append(calldata)
        addresses = decode_multicall_addresses(calldata)
        return encode_aggregate3_result([self.names.get(address) for address in addresses])
