import pytest
from eth_abi import encode

from somnia_mcp.abi import (
    TRANSFER_TOPIC,
    bytes_to_hex,
    decode_event_log,
    decode_function_input,
    decode_function_result,
    encode_deploy_data,
    encode_function_call,
    event_topic,
    find_event,
    to_jsonable,
)
from somnia_mcp.errors import PreconditionError, ValidationError
from somnia_mcp.tokens import ERC20_ABI

from .conftest import ALICE, BOB, pad_topic

TUPLE_ABI = [
    {
        "type": "function",
        "name": "submit",
        "inputs": [
            {
                "name": "order",
                "type": "tuple",
                "components": [
                    {"name": "maker", "type": "address"},
                    {"name": "amount", "type": "uint256"},
                ],
            },
            {"name": "tags", "type": "bytes32[]"},
        ],
        "outputs": [],
    }
]


def test_transfer_topic_constant():
    assert TRANSFER_TOPIC == "0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef"
    assert event_topic(find_event(ERC20_ABI, "Transfer")) == TRANSFER_TOPIC


def test_encode_erc20_transfer():
    entry, data = encode_function_call(ERC20_ABI, "transfer", [BOB, "1000"])
    assert entry["name"] == "transfer"
    assert data.startswith("0xa9059cbb")
    assert data.endswith(f"{1000:064x}")
    assert len(data) == 2 + 8 + 128


def test_encode_accepts_tuple_as_object():
    _, data = encode_function_call(TUPLE_ABI, "submit", [{"maker": ALICE, "amount": "0x10"}, ["0x" + "00" * 32]])
    decoded = decode_function_input(TUPLE_ABI, data)
    assert decoded["function_name"] == "submit"
    assert decoded["signature"] == "submit((address,uint256),bytes32[])"
    assert decoded["args"]["order"][0].lower() == ALICE
    assert decoded["args"]["order"][1] == 16


def test_unknown_function_and_wrong_arity():
    with pytest.raises(PreconditionError):
        encode_function_call(ERC20_ABI, "mint", [])
    with pytest.raises(ValidationError):
        encode_function_call(ERC20_ABI, "transfer", [BOB])


def test_bad_argument_types():
    with pytest.raises(ValidationError):
        encode_function_call(ERC20_ABI, "transfer", ["0x1234", 1])
    with pytest.raises(ValidationError):
        encode_function_call(ERC20_ABI, "transfer", [BOB, "ten"])


def test_decode_single_output_returns_value():
    entry = next(e for e in ERC20_ABI if e.get("name") == "decimals")
    assert decode_function_result(entry, bytes_to_hex(encode(["uint8"], [18]))) == 18


def test_decode_empty_result_is_error():
    entry = next(e for e in ERC20_ABI if e.get("name") == "symbol")
    with pytest.raises(ValidationError):
        decode_function_result(entry, "0x")


def test_decode_transfer_event():
    entry = find_event(ERC20_ABI, "Transfer")
    log = {
        "topics": [TRANSFER_TOPIC, pad_topic(ALICE), pad_topic(BOB)],
        "data": bytes_to_hex(encode(["uint256"], [2**200])),
    }
    decoded = decode_event_log(entry, log)
    assert decoded["from"].lower() == ALICE
    assert decoded["to"].lower() == BOB
    assert decoded["value"] == str(2**200)


def test_deploy_data_appends_constructor_args():
    abi = [{"type": "constructor", "inputs": [{"name": "supply", "type": "uint256"}]}]
    assert encode_deploy_data(abi, "0x6080", [5]) == "0x6080" + f"{5:064x}"
    with pytest.raises(ValidationError):
        encode_deploy_data([], "0x6080", [5])


def test_to_jsonable_stringifies_large_ints_and_bytes():
    assert to_jsonable([1, 2**60, b"\x01", (True, None)]) == [1, str(2**60), "0x01", [True, None]]
