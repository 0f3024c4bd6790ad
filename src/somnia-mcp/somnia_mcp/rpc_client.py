import logging
import time
from typing import Any, Dict, List, Optional

import requests

from .errors import RpcError, TransportError
from .ports import BlockId

log = logging.getLogger(__name__)


def to_quantity(value: int) -> str:
    return hex(int(value))


def from_quantity(value: Any) -> Optional[int]:
    """Coerce a JSON-RPC quantity (0x-hex string or int) to int."""
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError("quantity must be a hex string or integer.")
    if isinstance(value, int):
        return value
    text = str(value).strip().lower()
    if text.startswith("0x"):
        return int(text, 16) if len(text) > 2 else 0
    return int(text, 10)


def block_param(block: BlockId) -> str:
    if isinstance(block, bool):
        raise ValueError("block must be a number or tag.")
    if isinstance(block, int):
        return to_quantity(block)
    return str(block)


class RpcClient:
    """Minimal JSON-RPC 2.0 client for EVM nodes (HTTP POST)."""

    def __init__(
        self,
        rpc_url: str,
        timeout: int = 10,
        max_retries: int = 3,
        backoff_seconds: float = 0.5,
        headers: Optional[Dict[str, str]] = None,
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

    def call(self, method: str, params: Optional[List[Any]] = None) -> Any:
        if not isinstance(method, str) or not method.strip():
            raise ValueError("method must be a non-empty string.")
        if params is None:
            params = []
        if not isinstance(params, list):
            raise ValueError("params must be a list.")

        payload = {
            "jsonrpc": "2.0",
            "id": self._next_id,
            "method": method,
            "params": params,
        }
        self._next_id += 1

        last_error: Optional[Exception] = None
        for attempt in range(1, self.max_retries + 1):
            try:
                response = self.session.post(
                    self.rpc_url,
                    json=payload,
                    timeout=self.timeout,
                )
                if response.status_code in {429} or response.status_code >= 500:
                    if attempt < self.max_retries:
                        log.debug("%s http=%s, retry %d/%d", method, response.status_code, attempt, self.max_retries)
                        time.sleep(self.backoff_seconds * attempt)
                        continue

                response.raise_for_status()
                data = response.json()
            except requests.RequestException as exc:
                last_error = exc
                if attempt < self.max_retries:
                    time.sleep(self.backoff_seconds * attempt)
                    continue
                raise TransportError(f"RPC request {method} failed: {exc}") from exc
            except ValueError as exc:
                last_error = exc
                if attempt < self.max_retries:
                    time.sleep(self.backoff_seconds * attempt)
                    continue
                raise TransportError(f"RPC request {method} returned invalid JSON.") from exc

            return self._unwrap(method, data)

        if last_error:
            raise TransportError(f"RPC request {method} failed: {last_error}") from last_error
        raise RuntimeError("RPC request failed without raising an exception.")

    def _unwrap(self, method: str, data: Any) -> Any:
        if not isinstance(data, dict):
            raise RpcError(f"Unexpected JSON-RPC response to {method} (non-object).")

        error_obj = data.get("error")
        if isinstance(error_obj, dict):
            code = error_obj.get("code")
            message = error_obj.get("message")
            err_data = error_obj.get("data")
            parts: list[str] = []
            if code is not None:
                parts.append(f"code {code}")
            if message:
                parts.append(str(message))
            if err_data:
                parts.append(str(err_data))
            detail = ": ".join(parts) if parts else "unknown error"
            raise RpcError(f"RPC error: {detail}.", code=code, data=err_data)

        if "result" not in data:
            raise RpcError(f"Unexpected JSON-RPC response to {method} (missing result).")
        return data.get("result")

    def _quantity(self, method: str, params: Optional[List[Any]] = None) -> int:
        result = self.call(method, params or [])
        if not isinstance(result, str) or not result.startswith("0x"):
            raise RpcError(f"RPC error: {method} returned unexpected result.")
        return int(result, 16)

    def get_block_number(self) -> int:
        return self._quantity("eth_blockNumber")

    def get_chain_id(self) -> int:
        return self._quantity("eth_chainId")

    def get_gas_price(self) -> int:
        return self._quantity("eth_gasPrice")

    def get_balance(self, address: str, block: BlockId = "latest") -> int:
        return self._quantity("eth_getBalance", [address, block_param(block)])

    def get_transaction_count(self, address: str, block: BlockId = "pending") -> int:
        return self._quantity("eth_getTransactionCount", [address, block_param(block)])

    def get_code(self, address: str, block: BlockId = "latest") -> str:
        return self.call("eth_getCode", [address, block_param(block)]) or "0x"

    def get_block(self, block: BlockId = "latest", full_transactions: bool = False) -> Optional[Dict[str, Any]]:
        return self.call("eth_getBlockByNumber", [block_param(block), bool(full_transactions)])

    def get_logs(
        self,
        address: Optional[str],
        from_block: int,
        to_block: int,
        topics: Optional[List[Optional[str]]] = None,
    ) -> List[Dict[str, Any]]:
        flt: Dict[str, Any] = {
            "fromBlock": to_quantity(from_block),
            "toBlock": to_quantity(to_block),
        }
        if address:
            flt["address"] = address
        if topics:
            flt["topics"] = list(topics)
        result = self.call("eth_getLogs", [flt])
        if not isinstance(result, list):
            raise RpcError("RPC error: eth_getLogs returned unexpected result.")
        return result

    def get_transaction(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        return self.call("eth_getTransactionByHash", [tx_hash])

    def get_transaction_receipt(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        return self.call("eth_getTransactionReceipt", [tx_hash])

    def eth_call(self, tx: Dict[str, Any], block: BlockId = "latest") -> str:
        return self.call("eth_call", [tx, block_param(block)])

    def estimate_gas(self, tx: Dict[str, Any]) -> int:
        return self._quantity("eth_estimateGas", [tx])

    def send_raw_transaction(self, raw_tx: str) -> str:
        return self.call("eth_sendRawTransaction", [raw_tx])
