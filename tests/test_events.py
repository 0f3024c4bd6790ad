import itertools

import pytest

from somnia_mcp.events import ZERO_ADDRESS, MalformedLogError, aggregate_transfers, decode_transfer

from .conftest import ALICE, BOB, CAROL, DAVE, ZERO, simplified_transfer


def test_two_transfers_net_out():
    logs = [simplified_transfer(ALICE, BOB, 100), simplified_transfer(BOB, ALICE, 40)]
    summary = aggregate_transfers(logs).value
    assert summary.ledger == {ALICE: -60, BOB: 60}
    assert summary.transfer_count == 2
    assert summary.total_value == 140


def test_fold_is_order_independent():
    logs = [
        simplified_transfer(ZERO, ALICE, 1000),
        simplified_transfer(ALICE, BOB, 300),
        simplified_transfer(BOB, CAROL, 120),
        simplified_transfer(CAROL, ALICE, 20),
    ]
    expected = aggregate_transfers(logs).value.ledger
    for perm in itertools.permutations(logs):
        assert aggregate_transfers(perm).value.ledger == expected


def test_mint_does_not_debit_zero_address():
    summary = aggregate_transfers([simplified_transfer(ZERO, ALICE, 500)]).value
    assert summary.ledger == {ALICE: 500}
    assert ZERO_ADDRESS not in summary.ledger


def test_addresses_are_compared_case_insensitively():
    upper = simplified_transfer(ALICE, BOB, 10)
    upper["topics"] = [t.upper().replace("0X", "0x") for t in upper["topics"]]
    logs = [upper, simplified_transfer(BOB, ALICE, 4)]
    assert aggregate_transfers(logs).value.ledger == {ALICE: -6, BOB: 6}


def test_malformed_logs_are_skipped_with_warnings():
    short_topics = simplified_transfer(ALICE, BOB, 1)
    short_topics["topics"] = short_topics["topics"][:2]
    short_data = simplified_transfer(ALICE, BOB, 1)
    short_data["data"] = "0x1234"
    missing_data = simplified_transfer(ALICE, BOB, 1)
    missing_data["data"] = None

    result = aggregate_transfers([short_topics, simplified_transfer(CAROL, DAVE, 7), short_data, missing_data])
    assert result.value.ledger == {CAROL: -7, DAVE: 7}
    assert result.value.transfer_count == 1
    assert len(result.warnings) == 3


def test_value_comes_from_last_word_of_data():
    entry = simplified_transfer(ALICE, BOB, 0)
    entry["data"] = "0x" + "ff" * 32 + f"{42:064x}"
    assert decode_transfer(entry).value == 42


def test_decode_rejects_non_word_topic():
    entry = simplified_transfer(ALICE, BOB, 1)
    entry["topics"][1] = ALICE
    with pytest.raises(MalformedLogError):
        decode_transfer(entry)
