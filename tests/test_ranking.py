import pytest

from somnia_mcp.errors import InvalidLimitError
from somnia_mcp.events import aggregate_transfers
from somnia_mcp.ranking import NATIVE_HOLDER_MAX_LIMIT, rank_holders, validate_limit

from .conftest import ALICE, BOB, CAROL, DAVE, simplified_transfer


def test_only_positive_balances_are_ranked():
    ledger = aggregate_transfers(
        [simplified_transfer(ALICE, BOB, 100), simplified_transfer(BOB, ALICE, 40)]
    ).value.ledger
    ranked = rank_holders(ledger, limit=10, decimals=0)
    assert [(h.address, h.raw_balance) for h in ranked.holders] == [(BOB, 60)]
    assert ranked.total_holders == 1


def test_descending_with_stable_ties_and_truncation():
    ledger = {ALICE: 5, BOB: 50, CAROL: 5, DAVE: 500, "0x" + "e5" * 20: -3}
    ranked = rank_holders(ledger, limit=3, decimals=0)
    assert [h.address for h in ranked.holders] == [DAVE, BOB, ALICE]
    assert ranked.total_holders == 4
    balances = [h.raw_balance for h in ranked.holders]
    assert balances == sorted(balances, reverse=True)


def test_percentage_of_supply_when_known():
    ranked = rank_holders({ALICE: 2 * 10**18, BOB: 10**18}, limit=2, decimals=18, total_supply=3 * 10**18)
    first, second = ranked.holders
    assert first.formatted_balance == "2"
    assert first.percentage_of_supply == "66.6667"
    assert second.percentage_of_supply == "33.3333"
    assert first.as_dict() == {
        "address": ALICE,
        "raw_balance": str(2 * 10**18),
        "balance": "2",
        "percentage_of_supply": "66.6667",
    }


def test_percentage_omitted_without_supply():
    ranked = rank_holders({ALICE: 1}, limit=1, decimals=0)
    assert "percentage_of_supply" not in ranked.holders[0].as_dict()


@pytest.mark.parametrize("limit", [0, 101, -1, "10", True, None])
def test_token_limit_bounds(limit):
    with pytest.raises(InvalidLimitError):
        rank_holders({ALICE: 1}, limit=limit, decimals=0)


def test_native_limit_is_lower():
    assert validate_limit(50, NATIVE_HOLDER_MAX_LIMIT) == 50
    with pytest.raises(InvalidLimitError):
        rank_holders({ALICE: 1}, limit=51, decimals=18, max_limit=NATIVE_HOLDER_MAX_LIMIT)
