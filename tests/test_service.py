import pytest

from somnia_mcp.errors import InvalidLimitError, RangeTooLargeError, ReceiptNotFoundError, ValidationError
from somnia_mcp.service import MAX_EVENTS_RETURNED

from .conftest import ALICE, BOB, CAROL, DAVE, TOKEN, ZERO, FakeChain, FakeSigner, native_tx, transfer_log

TX = "0x" + "cd" * 32


def _token_chain(logs, **kwargs):
    reads = {"decimals": 18, "symbol": "TKN", "totalSupply": 1000 * 10**18}
    return FakeChain(latest=50, logs=logs, reads=reads, **kwargs)


def test_erc20_top_holders(service_for):
    logs = [
        transfer_log(ZERO, ALICE, 600 * 10**18, block=2),
        transfer_log(ALICE, BOB, 100 * 10**18, block=3),
        transfer_log(ZERO, CAROL, 300 * 10**18, block=4, log_index=1),
    ]
    out = service_for(_token_chain(logs)).get_erc20_top_holders(TOKEN, limit=2, from_block=0, to_block=50)

    assert out["network"] == "Somnia Testnet"
    assert out["symbol"] == "TKN"
    assert out["transfer_count"] == 3
    assert out["total_holders"] == 3
    assert [h["address"].lower() for h in out["holders"]] == [ALICE, CAROL]
    assert out["holders"][0]["balance"] == "500"
    assert out["holders"][0]["percentage_of_supply"] == "50.0000"
    assert out["holders"][1]["raw_balance"] == str(300 * 10**18)
    assert out["warnings"] == []


def test_erc20_top_holders_reports_failed_chunks(service_for, config):
    config.log_block_span = 10
    logs = [transfer_log(ZERO, ALICE, 5, block=2), transfer_log(ZERO, BOB, 7, block=20)]
    chain = _token_chain(logs, failing_log_ranges=[(11, 21)])
    out = service_for(chain).get_erc20_top_holders(TOKEN, from_block=0, to_block=30)

    assert [h["address"].lower() for h in out["holders"]] == [ALICE]
    assert len(out["warnings"]) == 1
    assert "11" in out["warnings"][0]


def test_erc20_top_holders_rejects_bad_limit(service_for):
    with pytest.raises(InvalidLimitError):
        service_for(_token_chain([])).get_erc20_top_holders(TOKEN, limit=0)
    with pytest.raises(InvalidLimitError):
        service_for(_token_chain([])).get_erc20_top_holders(TOKEN, limit=101)


def test_native_top_holders_skips_failed_balance(service_for):
    blocks = {
        9: {"number": "0x9", "transactions": [native_tx(ALICE, BOB, 1)]},
        10: {"number": "0xa", "transactions": [native_tx(CAROL, None, 0), native_tx(BOB, DAVE, 2)]},
    }
    chain = FakeChain(
        latest=10,
        blocks=blocks,
        balances={ALICE: 5, BOB: 50, DAVE: 20},
        failing_balances=[CAROL],
    )
    out = service_for(chain).get_top_holders(limit=5, from_block=9, to_block=10)

    assert out["addresses_scanned"] == 4
    assert [h["address"].lower() for h in out["holders"]] == [BOB, DAVE, ALICE]
    assert "percentage_of_supply" not in out["holders"][0]
    assert any(CAROL in w.lower() for w in out["warnings"])


def test_native_volume_range_cap(service_for):
    with pytest.raises(RangeTooLargeError):
        service_for(FakeChain(latest=5000)).get_transaction_volume(from_block=0, to_block=1001)


def test_transaction_fee(service_for):
    chain = FakeChain(receipts={TX: {"gasUsed": "0x5208", "effectiveGasPrice": hex(10**10)}})
    out = service_for(chain).get_transaction_fee(TX.upper().replace("0X", "0x"))

    assert out["tx_hash"] == TX
    assert out["gas_used"] == "21000"
    assert out["fee_wei"] == str(21000 * 10**10)
    assert out["fee"] == "0.00021"
    assert out["symbol"] == "STT"


def test_transaction_fee_missing_receipt(service_for):
    with pytest.raises(ReceiptNotFoundError):
        service_for(FakeChain()).get_transaction_fee(TX)
    with pytest.raises(ValidationError):
        service_for(FakeChain()).get_transaction_fee("0x1234")


def test_contract_events_truncated(service_for):
    logs = [transfer_log(ZERO, ALICE, i + 1, block=1, log_index=i) for i in range(MAX_EVENTS_RETURNED + 5)]
    out = service_for(FakeChain(latest=1, logs=logs)).get_contract_events(TOKEN)

    assert out["total_events"] == MAX_EVENTS_RETURNED + 5
    assert len(out["events"]) == MAX_EVENTS_RETURNED
    assert out["truncated"] is True
    assert out["from_block"] == 0
    assert out["to_block"] == 1


def test_batch_transfer_native_continues_after_failure(service_for):
    signer = FakeSigner(fail_on=[1])
    transfers = [{"to": ALICE, "amount": "1"}, {"to": BOB, "amount": "0.5"}, {"to": CAROL, "amount": "2"}]
    out = service_for(FakeChain(), signer=signer).batch_transfer_native(transfers)

    assert out["success"] is False
    assert out["total_transfers"] == 3
    assert out["successful_transfers"] == 2
    assert out["failed_transfers"] == 1
    assert out["stopped_early"] is False
    assert [r["success"] for r in out["results"]] == [True, False, True]
    assert "insufficient funds" in out["results"][1]["error"]
    assert out["results"][1]["amount"] == "0.5"
    assert signer.sent[1][2] == 5 * 10**17


def test_batch_transfer_native_stops_on_error(service_for):
    signer = FakeSigner(fail_on=[0])
    transfers = [{"to": ALICE, "amount": "1"}, {"to": BOB, "amount": "1"}]
    out = service_for(FakeChain(), signer=signer).batch_transfer_native(transfers, continue_on_error=False)

    assert out["stopped_early"] is True
    assert len(out["results"]) == 1
    assert len(signer.sent) == 1


def test_batch_transfer_rejects_bad_items(service_for):
    service = service_for(FakeChain(), signer=FakeSigner())
    with pytest.raises(ValidationError):
        service.batch_transfer_native([])
    with pytest.raises(ValidationError):
        service.batch_transfer_native([{"to": "nope", "amount": "1"}])


def test_batch_transfer_erc20_uses_token_decimals(service_for):
    chain = FakeChain(reads={"decimals": 6, "symbol": "USDC"})
    signer = FakeSigner()
    out = service_for(chain, signer=signer).batch_transfer_erc20(TOKEN, [{"to": BOB, "amount": "1.25"}])

    assert out["success"] is True
    assert out["symbol"] == "USDC"
    assert out["results"][0]["amount"] == "1.25"
    kind, address, function_name, args, value = signer.sent[0]
    assert (kind, function_name, value) == ("write", "transfer", 0)
    assert args[1] == 1_250_000


def test_verify_requires_source_fields(service_for):
    with pytest.raises(ValidationError):
        service_for(FakeChain()).verify_contract(TOKEN, action="verify", contract_name="Token")
    with pytest.raises(ValidationError):
        service_for(FakeChain()).verify_contract(TOKEN, action="publish")


class _Explorer:
    def __init__(self):
        self.calls = []

    def get_transactions(self, address, page, offset, sort):
        self.calls.append((address, page, offset, sort))
        return [{"hash": TX, "from": ALICE, "to": BOB, "value": "1000000000000000000", "blockNumber": "7"}]


def test_address_transactions_paging(service_for):
    explorer = _Explorer()
    service = service_for(FakeChain(), explorer=explorer)
    out = service.get_address_transactions(ALICE, page=2, limit=5)

    assert explorer.calls[0][1:] == (2, 5, "desc")
    assert out["page"] == 2
    assert len(out["transactions"]) == 1

    with pytest.raises(InvalidLimitError):
        service.get_address_transactions(ALICE, limit=101)


DEPOSIT_ABI = [{"type": "function", "name": "deposit", "inputs": [], "outputs": [], "stateMutability": "payable"}]
SET_ABI = [
    {
        "type": "function",
        "name": "set",
        "inputs": [{"name": "key", "type": "uint256"}, {"name": "owner", "type": "address"}],
        "outputs": [],
    }
]


def test_batch_write_contract_value_is_wei(service_for):
    signer = FakeSigner()
    ops = [{"contract_address": TOKEN, "abi": DEPOSIT_ABI, "function_name": "deposit", "value": "1000"}]
    out = service_for(FakeChain(), signer=signer).batch_write_contract(ops)

    assert out["success"] is True
    assert out["total_operations"] == 1
    assert signer.sent[0][4] == 1000


def test_batch_write_contract_passes_args(service_for):
    signer = FakeSigner()
    ops = [{"contract_address": TOKEN, "abi": SET_ABI, "function_name": "set", "args": [7, BOB]}]
    service_for(FakeChain(), signer=signer).batch_write_contract(ops)

    kind, _, function_name, args, value = signer.sent[0]
    assert (kind, function_name, args, value) == ("write", "set", (7, BOB), 0)


def test_batch_write_contract_stops_on_error(service_for):
    signer = FakeSigner(fail_on=[0])
    ops = [
        {"contract_address": TOKEN, "abi": DEPOSIT_ABI, "function_name": "deposit"},
        {"contract_address": TOKEN, "abi": DEPOSIT_ABI, "function_name": "deposit"},
    ]
    out = service_for(FakeChain(), signer=signer).batch_write_contract(ops, continue_on_error=False)

    assert out["stopped_early"] is True
    assert out["failed_operations"] == 1
    assert len(out["results"]) == 1
    assert len(signer.sent) == 1


def test_batch_write_contract_rejects_string_args(service_for):
    ops = [{"contract_address": TOKEN, "abi": SET_ABI, "function_name": "set", "args": "7"}]
    with pytest.raises(ValidationError):
        service_for(FakeChain(), signer=FakeSigner()).batch_write_contract(ops)


def test_batch_transfer_native_missing_item(service_for):
    signer = FakeSigner()
    out = service_for(FakeChain(), signer=signer).batch_transfer_native([None, {"to": BOB, "amount": "1"}])

    assert out["failed_transfers"] == 1
    assert out["successful_transfers"] == 1
    missing = out["results"][0]
    assert missing["success"] is False
    assert missing["error"] == "Operation is missing."
    assert "amount" not in missing
    assert out["results"][1]["amount"] == "1"
    assert len(signer.sent) == 1


def test_batch_transfer_erc20_missing_item(service_for):
    chain = FakeChain(reads={"decimals": 6, "symbol": "USDC"})
    signer = FakeSigner()
    out = service_for(chain, signer=signer).batch_transfer_erc20(TOKEN, [{"to": BOB, "amount": "2"}, None])

    assert out["results"][0]["to"].lower() == BOB
    assert out["results"][1] == {"index": 1, "success": False, "error": "Operation is missing."}
    assert len(signer.sent) == 1
