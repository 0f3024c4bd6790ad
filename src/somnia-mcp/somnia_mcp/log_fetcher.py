"""
Chunked eth_getLogs.

Providers cap the block span of a single log query. Ranges wider than the
span are split into consecutive, non-overlapping sub-ranges that are queried
one after another; a failing sub-range is skipped and reported as a warning.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from .errors import InvalidRangeError
from .partial import PartialResult
from .ports import ChainReader
from .rpc_client import from_quantity

log = logging.getLogger(__name__)

PROVIDER_BLOCK_SPAN = 1000
DEFAULT_EVENT_WINDOW = 1000
DEFAULT_HOLDER_WINDOW = 10000


@dataclass(frozen=True)
class BlockRange:
    from_block: int
    to_block: int

    @property
    def span(self) -> int:
        return self.to_block - self.from_block


def _check_block(value: Any, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidRangeError(f"{field} must be a non-negative integer block number.")
    if value < 0:
        raise InvalidRangeError(f"{field} must be a non-negative integer block number.")
    return value


def resolve_block_range(
    client: ChainReader,
    from_block: Optional[int],
    to_block: Optional[int],
    window: int = DEFAULT_EVENT_WINDOW,
) -> BlockRange:
    """Fill missing bounds from the latest block: [to - window, to] with to defaulting to latest."""
    if to_block is None:
        end = client.get_block_number()
    else:
        end = _check_block(to_block, "to_block")

    if from_block is None:
        start = max(end - window, 0)
    else:
        start = _check_block(from_block, "from_block")

    if start > end:
        raise InvalidRangeError(f"from_block ({start}) cannot be greater than to_block ({end}).")
    return BlockRange(start, end)


def split_block_range(from_block: int, to_block: int, span: int = PROVIDER_BLOCK_SPAN) -> List[Tuple[int, int]]:
    if span < 1:
        raise ValueError("span must be at least 1.")
    if from_block > to_block:
        raise InvalidRangeError(f"from_block ({from_block}) cannot be greater than to_block ({to_block}).")
    if to_block - from_block <= span:
        return [(from_block, to_block)]

    chunks: List[Tuple[int, int]] = []
    start = from_block
    while start <= to_block:
        end = min(start + span, to_block)
        chunks.append((start, end))
        start = end + 1
    return chunks


def simplify_log(raw: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "address": raw.get("address"),
        "topics": list(raw.get("topics") or []),
        "data": raw.get("data") or "0x",
        "block_number": from_quantity(raw.get("blockNumber")),
        "block_hash": raw.get("blockHash"),
        "transaction_hash": raw.get("transactionHash"),
        "transaction_index": from_quantity(raw.get("transactionIndex")),
        "log_index": from_quantity(raw.get("logIndex")),
        "removed": bool(raw.get("removed", False)),
    }


def fetch_logs(
    client: ChainReader,
    address: Optional[str],
    block_range: BlockRange,
    span: int = PROVIDER_BLOCK_SPAN,
    topics: Optional[List[Optional[str]]] = None,
) -> PartialResult[List[Dict[str, Any]]]:
    chunks = split_block_range(block_range.from_block, block_range.to_block, span)
    result: PartialResult[List[Dict[str, Any]]] = PartialResult([])

    for start, end in chunks:
        try:
            raw_logs = client.get_logs(address, start, end, topics)
        except Exception as exc:  # pylint: disable=broad-except
            result.warn(log, f"Skipped logs for blocks {start}-{end}: {exc}")
            continue
        for entry in raw_logs:
            if not isinstance(entry, dict):
                continue
            try:
                result.value.append(simplify_log(entry))
            except ValueError as exc:
                result.warn(log, f"Skipped malformed log {entry.get('transactionHash')} in blocks {start}-{end}: {exc}")

    log.debug(
        "fetched %d logs for %s in %d chunk(s), %d skipped",
        len(result.value), address, len(chunks), len(result.warnings),
    )
    return result
