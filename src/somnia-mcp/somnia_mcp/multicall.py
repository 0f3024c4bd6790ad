from dataclasses import dataclass
from typing import List, Optional, Sequence

from eth_abi import decode, encode
from eth_utils import keccak

from .abi import bytes_to_hex, hex_to_bytes
from .client import normalize_address
from .errors import ConfigurationError, ValidationError
from .ports import BlockId, ChainReader
from .rpc_client import to_quantity

# aggregate((address,bytes)[]) returns (uint256 blockNumber, bytes[] returnData)
AGGREGATE_SELECTOR = keccak(text="aggregate((address,bytes)[])")[:4]
# aggregate3((address,bool,bytes)[]) returns ((bool,bytes)[])
AGGREGATE3_SELECTOR = keccak(text="aggregate3((address,bool,bytes)[])")[:4]
# aggregate3Value((address,bool,uint256,bytes)[]) payable returns ((bool,bytes)[])
AGGREGATE3_VALUE_SELECTOR = keccak(text="aggregate3Value((address,bool,uint256,bytes)[])")[:4]


@dataclass(frozen=True)
class MulticallCall:
    target: str
    call_data: str
    value: int = 0


@dataclass(frozen=True)
class MulticallOutcome:
    success: bool
    return_data: str


@dataclass
class MulticallResult:
    method: str
    outcomes: List[MulticallOutcome]
    block_number: Optional[int] = None


def _encode_aggregate(calls: Sequence[MulticallCall]) -> bytes:
    values = [(c.target, hex_to_bytes(c.call_data)) for c in calls]
    return AGGREGATE_SELECTOR + encode(["(address,bytes)[]"], [values])


def _encode_aggregate3(calls: Sequence[MulticallCall], allow_failure: bool) -> bytes:
    values = [(c.target, allow_failure, hex_to_bytes(c.call_data)) for c in calls]
    return AGGREGATE3_SELECTOR + encode(["(address,bool,bytes)[]"], [values])


def _encode_aggregate3_value(calls: Sequence[MulticallCall], allow_failure: bool) -> bytes:
    values = [(c.target, allow_failure, int(c.value), hex_to_bytes(c.call_data)) for c in calls]
    return AGGREGATE3_VALUE_SELECTOR + encode(["(address,bool,uint256,bytes)[]"], [values])


class MulticallAggregator:
    """Batches read calls through a Multicall3 deployment with one eth_call."""

    def __init__(self, client: ChainReader, address: Optional[str], supports_aggregate3: bool = True):
        if not address:
            raise ConfigurationError("Multicall contract address is not configured for this network.")
        self.client = client
        self.address = normalize_address(address, "multicall address")
        self.supports_aggregate3 = supports_aggregate3

    def _prepare(self, calls: Sequence[MulticallCall]) -> List[MulticallCall]:
        prepared = []
        for i, call in enumerate(calls):
            if int(call.value) < 0:
                raise ValidationError(f"calls[{i}].value must be non-negative.")
            prepared.append(
                MulticallCall(
                    target=normalize_address(call.target, f"calls[{i}].target"),
                    call_data=call.call_data or "0x",
                    value=int(call.value),
                )
            )
        return prepared

    def _call(self, payload: bytes, value: int, block: BlockId) -> bytes:
        tx = {"to": self.address, "data": bytes_to_hex(payload)}
        if value:
            tx["value"] = to_quantity(value)
        return hex_to_bytes(self.client.eth_call(tx, block) or "0x")

    def aggregate(self, calls: Sequence[MulticallCall], block: BlockId = "latest") -> MulticallResult:
        """All-or-nothing: a revert in any call surfaces as one error for the whole batch."""
        prepared = self._prepare(calls)
        if not prepared:
            return MulticallResult(method="aggregate", outcomes=[])
        if any(c.value for c in prepared):
            raise ValidationError("aggregate does not support call values.")

        raw = self._call(_encode_aggregate(prepared), 0, block)
        block_number, return_data = decode(["uint256", "bytes[]"], raw)
        if len(return_data) != len(prepared):
            raise ValidationError("Multicall returned a different number of results than calls.")
        return MulticallResult(
            method="aggregate",
            outcomes=[MulticallOutcome(True, bytes_to_hex(data)) for data in return_data],
            block_number=int(block_number),
        )

    def aggregate3(
        self,
        calls: Sequence[MulticallCall],
        allow_failure: bool = True,
        block: BlockId = "latest",
    ) -> MulticallResult:
        """Per-call success flags; falls back to aggregate where the network lacks aggregate3."""
        prepared = self._prepare(calls)
        if not self.supports_aggregate3:
            return self.aggregate(prepared, block)
        if not prepared:
            return MulticallResult(method="aggregate3", outcomes=[])

        total_value = sum(c.value for c in prepared)
        if total_value:
            method = "aggregate3Value"
            payload = _encode_aggregate3_value(prepared, allow_failure)
        else:
            method = "aggregate3"
            payload = _encode_aggregate3(prepared, allow_failure)

        raw = self._call(payload, total_value, block)
        (results,) = decode(["(bool,bytes)[]"], raw)
        if len(results) != len(prepared):
            raise ValidationError("Multicall returned a different number of results than calls.")
        return MulticallResult(
            method=method,
            outcomes=[MulticallOutcome(bool(ok), bytes_to_hex(data)) for ok, data in results],
        )
