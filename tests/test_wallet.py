import pytest
from eth_account import Account

from somnia_mcp.chains import SOMNIA_TESTNET
from somnia_mcp.client import WalletClient, normalize_address
from somnia_mcp.errors import InvalidAddressError, MissingSignerError
from somnia_mcp.tokens import ERC20_ABI

from .conftest import BOB

KEY = "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"


class _NodeStub:
    chain = SOMNIA_TESTNET

    def __init__(self):
        self.estimated = []
        self.raw = []

    def estimate_gas(self, tx):
        self.estimated.append(tx)
        return 21000

    def get_transaction_count(self, address, block="pending"):
        assert block == "pending"
        return 7

    def suggest_fees(self):
        return {"maxFeePerGas": 2 * 10**9, "maxPriorityFeePerGas": 10**9}

    def send_raw_transaction(self, raw_tx):
        self.raw.append(raw_tx)
        return "0x" + "99" * 32


def test_missing_or_invalid_key():
    with pytest.raises(MissingSignerError):
        WalletClient(_NodeStub(), None)
    with pytest.raises(MissingSignerError):
        WalletClient(_NodeStub(), "not-a-key")


def test_send_transaction_signs_locally():
    node = _NodeStub()
    wallet = WalletClient(node, KEY[2:])
    assert wallet.address == Account.from_key(KEY).address

    tx_hash = wallet.send_transaction(BOB, 5)
    assert tx_hash == "0x" + "99" * 32
    assert node.estimated[0]["from"] == wallet.address
    assert node.estimated[0]["value"] == "0x5"
    assert node.raw[0].startswith("0x02")


def test_write_contract_encodes_call():
    node = _NodeStub()
    WalletClient(node, KEY).write_contract("0x" + "70" * 20, ERC20_ABI, "transfer", [BOB, 1])
    assert node.estimated[0]["data"].startswith("0xa9059cbb")


def test_normalize_address():
    assert normalize_address(BOB[2:]) == normalize_address(BOB)
    with pytest.raises(InvalidAddressError):
        normalize_address("0x1234")
    with pytest.raises(InvalidAddressError):
        normalize_address(None)
