import logging
import time
from typing import Any, Dict, List, Optional

import requests

from .errors import ConfigurationError, ExplorerError

log = logging.getLogger(__name__)

_EMPTY_RESULT_MESSAGES = ("no transactions found", "no records found")


class ExplorerClient:
    """Thin wrapper around the Etherscan-compatible explorer API with basic retry."""

    def __init__(
        self,
        base_url: Optional[str],
        api_key: Optional[str] = None,
        timeout: int = 10,
        max_retries: int = 3,
        backoff_seconds: float = 0.5,
    ) -> None:
        if not base_url:
            raise ConfigurationError("Explorer API URL is not configured for this network.")
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.max_retries = max(1, int(max_retries))
        self.backoff_seconds = backoff_seconds
        self.session = requests.Session()

    def get_contract_abi(self, address: str) -> str:
        payload = self._request({"module": "contract", "action": "getabi", "address": address})
        return self._result(payload, "getabi")

    def get_contract_source(self, address: str) -> Dict[str, Any]:
        payload = self._request({"module": "contract", "action": "getsourcecode", "address": address})
        result = self._result(payload, "getsourcecode")
        if isinstance(result, list):
            return result[0] if result and isinstance(result[0], dict) else {}
        if isinstance(result, dict):
            return result
        raise ExplorerError("Explorer getsourcecode returned an unexpected result.")

    def get_transactions(self, address: str, page: int, offset: int, sort: str) -> List[Dict[str, Any]]:
        params = {
            "module": "account",
            "action": "txlist",
            "address": address,
            "page": page,
            "offset": offset,
            "sort": sort,
        }
        payload = self._request(params)
        if self._is_empty_payload(payload):
            return []
        result = self._result(payload, "txlist")
        if not isinstance(result, list):
            raise ExplorerError("Explorer txlist returned an unexpected result.")
        return result

    def verify_source_code(
        self,
        address: str,
        source_code: str,
        contract_name: str,
        compiler_version: str,
        optimization: bool = False,
        constructor_arguments: Optional[str] = None,
        license_type: Optional[str] = None,
    ) -> str:
        """Submit single-file source for verification; returns the explorer's GUID."""
        form: Dict[str, Any] = {
            "module": "contract",
            "action": "verifysourcecode",
            "contractaddress": address,
            "sourceCode": source_code,
            "codeformat": "solidity-single-file",
            "contractname": contract_name,
            "compilerversion": compiler_version,
            "optimizationUsed": "1" if optimization else "0",
        }
        if constructor_arguments:
            form["constructorArguements"] = constructor_arguments.removeprefix("0x")
        if license_type:
            form["licenseType"] = license_type
        payload = self._request(form, method="POST")
        return str(self._result(payload, "verifysourcecode"))

    def check_verify_status(self, guid: str) -> Dict[str, Any]:
        payload = self._request({"module": "contract", "action": "checkverifystatus", "guid": guid})
        return {
            "status": str(payload.get("status", "")),
            "message": payload.get("message"),
            "result": payload.get("result"),
        }

    def _is_empty_payload(self, payload: Dict[str, Any]) -> bool:
        if str(payload.get("status")) != "0":
            return False
        message = str(payload.get("message") or "").lower()
        return any(m in message for m in _EMPTY_RESULT_MESSAGES)

    def _result(self, payload: Dict[str, Any], action: str) -> Any:
        if str(payload.get("status")) == "1":
            return payload.get("result")
        detail = payload.get("result") or payload.get("message") or "unknown error"
        raise ExplorerError(f"Explorer {action} failed: {detail}")

    def _is_rate_limit_payload(self, payload: Any) -> bool:
        if not isinstance(payload, dict):
            return False
        candidates = [
            value
            for value in (payload.get("message"), payload.get("result"))
            if isinstance(value, str) and value
        ]
        haystack = " ".join(candidates).lower()
        return "rate limit" in haystack or "too many requests" in haystack

    def _request(self, params: Dict[str, Any], method: str = "GET") -> Dict[str, Any]:
        merged = dict(params)
        if self.api_key:
            merged["apikey"] = self.api_key
        action = params.get("action")
        last_error: Optional[Exception] = None

        for attempt in range(1, self.max_retries + 1):
            try:
                if method == "POST":
                    response = self.session.post(self.base_url, data=merged, timeout=self.timeout)
                else:
                    response = self.session.get(self.base_url, params=merged, timeout=self.timeout)
                if (response.status_code == 429 or response.status_code >= 500) and attempt < self.max_retries:
                    log.debug("explorer %s http=%s, retry %d/%d", action, response.status_code, attempt, self.max_retries)
                    time.sleep(self.backoff_seconds * attempt)
                    continue

                response.raise_for_status()
                payload = response.json()
                if self._is_rate_limit_payload(payload) and attempt < self.max_retries:
                    time.sleep(self.backoff_seconds * attempt)
                    continue
                if not isinstance(payload, dict):
                    raise ExplorerError(f"Explorer {action} returned a non-object response.")
                return payload
            except requests.RequestException as exc:
                last_error = exc
                if attempt < self.max_retries:
                    time.sleep(self.backoff_seconds * attempt)
                    continue
                raise ExplorerError(f"Explorer request {action} failed: {exc}") from exc
            except ValueError as exc:
                last_error = exc
                if attempt < self.max_retries:
                    time.sleep(self.backoff_seconds * attempt)
                    continue
                raise ExplorerError(f"Failed to parse explorer response for {action}.") from exc

        if last_error:
            raise ExplorerError(f"Explorer request {action} failed: {last_error}") from last_error
        raise RuntimeError("Request failed without raising an exception.")
