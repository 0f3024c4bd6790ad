from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union

import pytest

from somnia_mcp.abi import TRANSFER_TOPIC
from somnia_mcp.chains import SOMNIA_TESTNET
from somnia_mcp.config import Config
from somnia_mcp.errors import RpcError, TransportError

ALICE = "0x" + "a1" * 20
BOB = "0x" + "b2" * 20
CAROL = "0x" + "c3" * 20
DAVE = "0x" + "d4" * 20
TOKEN = "0x" + "70" * 20
ZERO = "0x" + "00" * 20


def pad_topic(address: str) -> str:
    return "0x" + "0" * 24 + address.lower().removeprefix("0x")


def word(value: int) -> str:
    return f"{value:064x}"


def transfer_log(sender: str, recipient: str, value: int, block: int = 1, log_index: int = 0) -> Dict[str, Any]:
    """A raw eth_getLogs entry for Transfer(sender, recipient, value)."""
    return {
        "address": TOKEN,
        "topics": [TRANSFER_TOPIC, pad_topic(sender), pad_topic(recipient)],
        "data": "0x" + word(value),
        "blockNumber": hex(block),
        "blockHash": "0x" + "11" * 32,
        "transactionHash": "0x" + f"{block:04x}{log_index:04x}".rjust(64, "e"),
        "transactionIndex": "0x0",
        "logIndex": hex(log_index),
        "removed": False,
    }


def simplified_transfer(sender: str, recipient: str, value: int, block: int = 1) -> Dict[str, Any]:
    return {
        "topics": [TRANSFER_TOPIC, pad_topic(sender), pad_topic(recipient)],
        "data": "0x" + word(value),
        "block_number": block,
        "transaction_hash": None,
        "log_index": 0,
    }


def native_tx(sender: str, recipient: Optional[str], value: int) -> Dict[str, Any]:
    return {"from": sender, "to": recipient, "value": hex(value), "hash": "0x" + "ab" * 32}


class FakeChain:
    """In-memory stand-in for ChainClient; records every query it serves."""

    def __init__(
        self,
        latest: int = 0,
        blocks: Optional[Dict[int, Dict[str, Any]]] = None,
        logs: Optional[List[Dict[str, Any]]] = None,
        receipts: Optional[Dict[str, Any]] = None,
        balances: Optional[Dict[str, int]] = None,
        reads: Optional[Dict[str, Any]] = None,
        failing_log_ranges: Iterable[Tuple[int, int]] = (),
        failing_blocks: Iterable[int] = (),
        failing_balances: Iterable[str] = (),
        call_result: str = "0x",
    ) -> None:
        self.chain = SOMNIA_TESTNET
        self.latest = latest
        self.blocks = blocks or {}
        self.logs = logs or []
        self.receipts = receipts or {}
        self.balances = {k.lower(): v for k, v in (balances or {}).items()}
        self.reads = reads or {}
        self.failing_log_ranges = set(failing_log_ranges)
        self.failing_blocks = set(failing_blocks)
        self.failing_balances = {a.lower() for a in failing_balances}
        self.call_result = call_result
        self.log_queries: List[Tuple[int, int]] = []
        self.block_queries: List[Union[int, str]] = []
        self.eth_calls: List[Dict[str, Any]] = []

    def get_block_number(self) -> int:
        return self.latest

    def get_gas_price(self) -> int:
        return 6_000_000_000

    def get_block(self, block: Union[int, str] = "latest", full_transactions: bool = False):
        self.block_queries.append(block)
        if block in self.failing_blocks:
            raise TransportError(f"RPC request eth_getBlockByNumber failed for {block}")
        if block == "latest":
            block = self.latest
        return self.blocks.get(block)

    def get_logs(self, address, from_block, to_block, topics=None):
        self.log_queries.append((from_block, to_block))
        if (from_block, to_block) in self.failing_log_ranges:
            raise RpcError("RPC error: code -32005: query returned more than 10000 results.")
        return [
            entry
            for entry in self.logs
            if from_block <= int(entry["blockNumber"], 16) <= to_block
        ]

    def get_transaction_receipt(self, tx_hash: str):
        receipt = self.receipts.get(tx_hash)
        if callable(receipt):
            return receipt()
        return receipt

    def get_transaction(self, tx_hash: str):
        return None

    def get_balance(self, address: str, block="latest") -> int:
        if address.lower() in self.failing_balances:
            raise TransportError(f"RPC request eth_getBalance failed for {address}")
        return self.balances.get(address.lower(), 0)

    def eth_call(self, tx: Dict[str, Any], block="latest") -> str:
        self.eth_calls.append(tx)
        return self.call_result

    def read_contract(self, address, abi, function_name, args=None, block="latest", sender=None, value=0):
        if function_name not in self.reads:
            raise RpcError("RPC error: code 3: execution reverted.")
        result = self.reads[function_name]
        return result(*(args or [])) if callable(result) else result


class FakeSigner:
    """Records submitted operations; fails the calls whose ordinal is in `fail_on`."""

    address = "0x" + "5e" * 20

    def __init__(self, fail_on: Iterable[int] = ()) -> None:
        self.fail_on = set(fail_on)
        self.sent: List[Tuple[Any, ...]] = []

    def _submit(self, record: Tuple[Any, ...]) -> str:
        ordinal = len(self.sent)
        self.sent.append(record)
        if ordinal in self.fail_on:
            raise RpcError("RPC error: code -32000: insufficient funds for gas * price + value.")
        return "0x" + f"{ordinal + 1:064x}"

    def send_transaction(self, to: str, value: int = 0, data: Optional[str] = None) -> str:
        return self._submit(("native", to, value))

    def write_contract(self, address, abi, function_name, args, value=0) -> str:
        return self._submit(("write", address, function_name, tuple(args), value))


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def config() -> Config:
    return Config(monitor_poll_seconds=0.0)


@pytest.fixture
def service_for(config) -> Callable[..., Any]:
    """Build a ChainService wired to the given fake chain/signer."""
    from somnia_mcp.service import ChainService

    def build(chain: FakeChain, signer: Optional[FakeSigner] = None, explorer: Any = None):
        return ChainService(
            config,
            client_factory=lambda info: chain,
            wallet_factory=lambda client, key: signer,
            explorer_factory=lambda info: explorer,
        )

    return build
