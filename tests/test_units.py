import pytest

from somnia_mcp.errors import ValidationError
from somnia_mcp.units import format_percentage, format_units, parse_units, parse_wei


@pytest.mark.parametrize(
    "value,decimals,expected",
    [
        (0, 18, "0"),
        (10**18, 18, "1"),
        (1500000000000000000, 18, "1.5"),
        (1, 18, "0.000000000000000001"),
        (-25, 1, "-2.5"),
        (123, 0, "123"),
    ],
)
def test_format_units(value, decimals, expected):
    assert format_units(value, decimals) == expected


def test_parse_units():
    assert parse_units("1.5", 18) == 1500000000000000000
    assert parse_units("0.002", 18) == 2 * 10**15
    assert parse_units(".5", 1) == 5
    assert parse_units("7", 0) == 7


@pytest.mark.parametrize("text", ["-1", "abc", "", "1.2.3", None, True, "0.0000001"])
def test_parse_units_rejects(text):
    with pytest.raises(ValidationError):
        parse_units(text, 6)


def test_parse_wei():
    assert parse_wei(None) == 0
    assert parse_wei("0x10") == 16
    assert parse_wei("42") == 42
    with pytest.raises(ValidationError):
        parse_wei(-1)


def test_format_percentage():
    assert format_percentage(1, 3) == "33.3333"
    assert format_percentage(3 * 10**30, 3 * 10**30) == "100.0000"
    assert format_percentage(5, 0) is None
    assert format_percentage(5, None) is None
