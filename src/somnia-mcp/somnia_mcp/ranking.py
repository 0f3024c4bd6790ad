import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from .errors import InvalidLimitError
from .units import format_percentage, format_units

log = logging.getLogger(__name__)

TOKEN_HOLDER_MAX_LIMIT = 100
NATIVE_HOLDER_MAX_LIMIT = 50


@dataclass(frozen=True)
class HolderEntry:
    address: str
    raw_balance: int
    formatted_balance: str
    percentage_of_supply: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "address": self.address,
            "raw_balance": str(self.raw_balance),
            "balance": self.formatted_balance,
        }
        if self.percentage_of_supply is not None:
            out["percentage_of_supply"] = self.percentage_of_supply
        return out


@dataclass(frozen=True)
class RankedHolders:
    holders: List[HolderEntry]
    total_holders: int


def validate_limit(limit: Any, maximum: int, minimum: int = 1) -> int:
    if isinstance(limit, bool) or not isinstance(limit, int):
        raise InvalidLimitError(f"limit must be an integer between {minimum} and {maximum}.")
    if limit < minimum or limit > maximum:
        raise InvalidLimitError(f"limit must be between {minimum} and {maximum}, got {limit}.")
    return limit


def rank_holders(
    ledger: Mapping[str, int],
    limit: int,
    decimals: int,
    total_supply: Optional[int] = None,
    max_limit: int = TOKEN_HOLDER_MAX_LIMIT,
) -> RankedHolders:
    """Keep positive balances, sort descending (stable), truncate to limit."""
    validate_limit(limit, max_limit)
    positive = [(address, balance) for address, balance in ledger.items() if balance > 0]
    positive.sort(key=lambda item: item[1], reverse=True)

    holders = [
        HolderEntry(
            address=address,
            raw_balance=balance,
            formatted_balance=format_units(balance, decimals),
            percentage_of_supply=format_percentage(balance, total_supply),
        )
        for address, balance in positive[:limit]
    ]
    log.debug("ranked %d of %d positive holders", len(holders), len(positive))
    return RankedHolders(holders=holders, total_holders=len(positive))
