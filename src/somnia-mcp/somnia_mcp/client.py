import logging
from typing import Any, Dict, Optional, Sequence

from eth_account import Account
from eth_utils import is_address, to_checksum_address

from .abi import bytes_to_hex, decode_function_result, encode_deploy_data, encode_function_call
from .chains import ChainInfo
from .errors import InvalidAddressError, MissingSignerError, ValidationError
from .rpc_client import RpcClient, from_quantity, to_quantity

log = logging.getLogger(__name__)


def normalize_address(address: Any, field: str = "address") -> str:
    if not isinstance(address, str):
        raise InvalidAddressError(f"{field} must be a string.")
    candidate = address.strip()
    if not candidate.startswith(("0x", "0X")):
        candidate = f"0x{candidate}"
    if not is_address(candidate):
        raise InvalidAddressError(f"Invalid {field} format. Expected 0x-prefixed 40 hex characters.")
    return to_checksum_address(candidate)


class ChainClient(RpcClient):
    """JSON-RPC client bound to one network, with ABI-aware contract reads."""

    def __init__(self, chain: ChainInfo, **kwargs: Any) -> None:
        super().__init__(chain.rpc_url, **kwargs)
        self.chain = chain

    def _call_tx(
        self,
        address: str,
        data: str,
        sender: Optional[str] = None,
        value: int = 0,
    ) -> Dict[str, Any]:
        tx: Dict[str, Any] = {"to": normalize_address(address, "contract address"), "data": data}
        if sender:
            tx["from"] = normalize_address(sender, "from")
        if value:
            tx["value"] = to_quantity(value)
        return tx

    def read_contract(
        self,
        address: str,
        abi: Sequence[Dict[str, Any]],
        function_name: str,
        args: Optional[Sequence[Any]] = None,
        block: Any = "latest",
        sender: Optional[str] = None,
        value: int = 0,
    ) -> Any:
        entry, data = encode_function_call(abi, function_name, args)
        result = self.eth_call(self._call_tx(address, data, sender, value), block)
        return decode_function_result(entry, result)

    def estimate_contract_gas(
        self,
        address: str,
        abi: Sequence[Dict[str, Any]],
        function_name: str,
        args: Optional[Sequence[Any]] = None,
        sender: Optional[str] = None,
        value: int = 0,
    ) -> int:
        _, data = encode_function_call(abi, function_name, args)
        return self.estimate_gas(self._call_tx(address, data, sender, value))

    def suggest_fees(self) -> Dict[str, int]:
        gas_price = self.get_gas_price()
        latest = self.get_block("latest") or {}
        base_fee = from_quantity(latest.get("baseFeePerGas"))
        if base_fee is None:
            return {"gasPrice": gas_price}
        priority = max(gas_price - base_fee, 0)
        return {
            "maxFeePerGas": base_fee * 2 + priority,
            "maxPriorityFeePerGas": priority,
        }


class WalletClient:
    """Signs transactions locally with eth_account and submits them raw."""

    def __init__(self, client: ChainClient, private_key: Optional[str]) -> None:
        if not private_key:
            raise MissingSignerError("Private key not found. Set PRIVATE_KEY to use write operations.")
        key = private_key.strip()
        if not key.startswith("0x"):
            key = f"0x{key}"
        try:
            self.account = Account.from_key(key)
        except (ValueError, TypeError) as exc:
            raise MissingSignerError("PRIVATE_KEY is not a valid private key.") from exc
        self.client = client

    @property
    def address(self) -> str:
        return self.account.address

    def _build(self, to: Optional[str], value: int, data: Optional[str]) -> Dict[str, Any]:
        tx: Dict[str, Any] = {
            "from": self.address,
            "value": int(value),
            "data": data or "0x",
            "chainId": self.client.chain.chain_id,
        }
        if to is not None:
            tx["to"] = normalize_address(to, "to")

        estimate_params = {k: v for k, v in tx.items() if k != "chainId"}
        estimate_params["value"] = to_quantity(tx["value"])
        tx["gas"] = self.client.estimate_gas(estimate_params)
        tx["nonce"] = self.client.get_transaction_count(self.address, "pending")
        tx.update(self.client.suggest_fees())
        del tx["from"]
        return tx

    def _sign_and_send(self, tx: Dict[str, Any]) -> str:
        signed = self.account.sign_transaction(tx)
        tx_hash = self.client.send_raw_transaction(bytes_to_hex(signed.raw_transaction))
        log.info("sent tx %s (nonce=%s)", tx_hash, tx.get("nonce"))
        return tx_hash

    def send_transaction(self, to: str, value: int = 0, data: Optional[str] = None) -> str:
        if value < 0:
            raise ValidationError("value must be non-negative.")
        return self._sign_and_send(self._build(to, value, data))

    def write_contract(
        self,
        address: str,
        abi: Sequence[Dict[str, Any]],
        function_name: str,
        args: Sequence[Any],
        value: int = 0,
    ) -> str:
        _, data = encode_function_call(abi, function_name, args)
        return self._sign_and_send(self._build(address, value, data))

    def deploy_contract(
        self,
        bytecode: str,
        abi: Sequence[Dict[str, Any]],
        args: Optional[Sequence[Any]] = None,
    ) -> str:
        data = encode_deploy_data(abi, bytecode, args)
        return self._sign_and_send(self._build(None, 0, data))
