"""
Transfer event decoding and balance-delta aggregation.

The ledger is a relative reconstruction: it only reflects transfers inside
the queried block range, not authoritative on-chain balances. Logs are
expected to be pre-filtered on the Transfer topic; only their shape is checked.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional

from .partial import PartialResult

log = logging.getLogger(__name__)

ZERO_ADDRESS = "0x" + "0" * 40
_WORD_HEX = 64
_ADDRESS_HEX = 40


class MalformedLogError(ValueError):
    pass


def canonical_address(value: str) -> str:
    body = value.strip().lower()
    if body.startswith("0x"):
        body = body[2:]
    return "0x" + body


def is_zero_address(address: str) -> bool:
    return canonical_address(address) == ZERO_ADDRESS


def _topic_address(topic: Any, position: int) -> str:
    if not isinstance(topic, str):
        raise MalformedLogError(f"topics[{position}] is not a hex string")
    body = topic.lower().removeprefix("0x")
    if len(body) != _WORD_HEX:
        raise MalformedLogError(f"topics[{position}] is not a 32-byte word")
    return "0x" + body[_WORD_HEX - _ADDRESS_HEX :]


@dataclass(frozen=True)
class TransferEvent:
    sender: str
    recipient: str
    value: int
    block_number: Optional[int] = None
    transaction_hash: Optional[str] = None
    log_index: Optional[int] = None

    @property
    def is_mint(self) -> bool:
        return self.sender == ZERO_ADDRESS


def decode_transfer(entry: Dict[str, Any]) -> TransferEvent:
    topics = entry.get("topics") or []
    if len(topics) < 3:
        raise MalformedLogError(f"expected 3 topics, got {len(topics)}")
    data = entry.get("data")
    if not isinstance(data, str):
        raise MalformedLogError("missing data")
    body = data.removeprefix("0x")
    if len(body) < _WORD_HEX:
        raise MalformedLogError(f"data too short ({len(body)} hex chars)")
    try:
        value = int(body[-_WORD_HEX:], 16)
    except ValueError as exc:
        raise MalformedLogError("data is not hex") from exc

    return TransferEvent(
        sender=_topic_address(topics[1], 1),
        recipient=_topic_address(topics[2], 2),
        value=value,
        block_number=entry.get("block_number"),
        transaction_hash=entry.get("transaction_hash"),
        log_index=entry.get("log_index"),
    )


@dataclass
class TransferSummary:
    ledger: Dict[str, int] = field(default_factory=dict)
    transfer_count: int = 0
    total_value: int = 0


def aggregate_transfers(logs: Iterable[Dict[str, Any]]) -> PartialResult[TransferSummary]:
    """Fold Transfer logs into per-address balance deltas; malformed logs are skipped."""
    result = PartialResult(TransferSummary())
    summary = result.value
    ledger = summary.ledger

    for entry in logs:
        try:
            event = decode_transfer(entry)
        except MalformedLogError as exc:
            where = entry.get("transaction_hash") or entry.get("block_number")
            result.warn(log, f"Skipped malformed Transfer log ({where}): {exc}")
            continue

        if not event.is_mint:
            ledger[event.sender] = ledger.get(event.sender, 0) - event.value
        ledger[event.recipient] = ledger.get(event.recipient, 0) + event.value
        summary.transfer_count += 1
        summary.total_value += event.value

    return result
