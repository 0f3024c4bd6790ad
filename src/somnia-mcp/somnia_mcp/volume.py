"""
Per-block and per-transaction folds: value volume, ERC20 volume, fees,
active-address discovery and receipt monitoring.

Block iteration is sequential; a block that cannot be fetched is skipped
with a warning and the remaining blocks are still processed.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from .abi import TRANSFER_TOPIC
from .errors import RangeTooLargeError, ReceiptNotFoundError, ValidationError
from .events import TransferSummary, aggregate_transfers
from .log_fetcher import PROVIDER_BLOCK_SPAN, BlockRange, fetch_logs
from .partial import PartialResult
from .ports import ChainReader
from .rpc_client import from_quantity

log = logging.getLogger(__name__)

MAX_VOLUME_BLOCK_SPAN = 1000
MAX_ACTIVE_ADDRESSES = 500
DEFAULT_POLL_SECONDS = 2.0


@dataclass
class VolumeSummary:
    total_value: int = 0
    transaction_count: int = 0
    blocks_processed: int = 0
    blocks_requested: int = 0


def check_volume_range(block_range: BlockRange, max_span: int = MAX_VOLUME_BLOCK_SPAN) -> None:
    if block_range.span > max_span:
        raise RangeTooLargeError(
            f"Block range too large ({block_range.span} blocks). Maximum allowed is {max_span}."
        )


def iter_blocks(
    client: ChainReader,
    block_range: BlockRange,
    result: PartialResult,
    full_transactions: bool = True,
) -> Iterator[Tuple[int, Dict[str, Any]]]:
    """Yield (number, block) for each retrievable block; failures become warnings on `result`."""
    for number in range(block_range.from_block, block_range.to_block + 1):
        try:
            block = client.get_block(number, full_transactions)
        except Exception as exc:  # pylint: disable=broad-except
            result.warn(log, f"Skipped block {number}: {exc}")
            continue
        if not block:
            result.warn(log, f"Skipped block {number}: not found")
            continue
        yield number, block


def transaction_volume(client: ChainReader, block_range: BlockRange) -> PartialResult[VolumeSummary]:
    check_volume_range(block_range)
    result = PartialResult(VolumeSummary(blocks_requested=block_range.span + 1))
    summary = result.value

    for _, block in iter_blocks(client, block_range, result):
        for tx in block.get("transactions") or []:
            if not isinstance(tx, dict):
                continue
            summary.total_value += from_quantity(tx.get("value")) or 0
            summary.transaction_count += 1
        summary.blocks_processed += 1

    log.debug(
        "volume %d-%d: %d txs in %d/%d blocks",
        block_range.from_block, block_range.to_block,
        summary.transaction_count, summary.blocks_processed, summary.blocks_requested,
    )
    return result


def erc20_volume(
    client: ChainReader,
    token_address: str,
    block_range: BlockRange,
    span: int = PROVIDER_BLOCK_SPAN,
) -> PartialResult[TransferSummary]:
    fetched = fetch_logs(client, token_address, block_range, span, topics=[TRANSFER_TOPIC])
    result = aggregate_transfers(fetched.value)
    result.warnings[:0] = fetched.warnings
    return result


def transaction_fee(client: ChainReader, tx_hash: str) -> Dict[str, int]:
    receipt = client.get_transaction_receipt(tx_hash)
    if not receipt:
        raise ReceiptNotFoundError(f"Transaction receipt not found for {tx_hash}.")
    gas_used = from_quantity(receipt.get("gasUsed")) or 0
    gas_price = from_quantity(receipt.get("effectiveGasPrice"))
    if gas_price is None:
        gas_price = from_quantity(receipt.get("gasPrice")) or 0
    return {
        "gas_used": gas_used,
        "effective_gas_price": gas_price,
        "fee": gas_used * gas_price,
    }


def collect_active_addresses(
    client: ChainReader,
    block_range: BlockRange,
    max_addresses: int = MAX_ACTIVE_ADDRESSES,
) -> PartialResult[List[str]]:
    """Distinct senders and recipients in first-seen order, capped at max_addresses."""
    result: PartialResult[List[str]] = PartialResult([])
    seen = set()
    dropped = 0

    for _, block in iter_blocks(client, block_range, result):
        for tx in block.get("transactions") or []:
            if not isinstance(tx, dict):
                continue
            for key in ("from", "to"):
                address = tx.get(key)
                if not isinstance(address, str):
                    continue
                address = address.lower()
                if address in seen:
                    continue
                seen.add(address)
                if len(result.value) < max_addresses:
                    result.value.append(address)
                else:
                    dropped += 1

    if dropped:
        result.warn(log, f"Address limit of {max_addresses} reached; {dropped} more address(es) ignored.")
    return result


def monitor_transaction(
    client: ChainReader,
    tx_hash: str,
    confirmations: int = 1,
    timeout_seconds: float = 300.0,
    poll_seconds: float = DEFAULT_POLL_SECONDS,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> Dict[str, Any]:
    """Poll until the receipt has `confirmations` blocks on top, or the timeout elapses."""
    if isinstance(confirmations, bool) or not isinstance(confirmations, int) or confirmations < 1:
        raise ValidationError("confirmations must be a positive integer.")
    if timeout_seconds <= 0:
        raise ValidationError("timeout must be positive.")

    deadline = clock() + timeout_seconds
    receipt: Optional[Dict[str, Any]] = None
    seen_confirmations = 0

    while True:
        try:
            receipt = client.get_transaction_receipt(tx_hash)
            if receipt:
                mined_in = from_quantity(receipt.get("blockNumber")) or 0
                seen_confirmations = max(client.get_block_number() - mined_in + 1, 0)
        except Exception as exc:  # pylint: disable=broad-except
            log.debug("monitor %s: poll failed: %s", tx_hash, exc)

        if receipt and seen_confirmations >= confirmations:
            status = from_quantity(receipt.get("status"))
            return {
                "status": "confirmed",
                "transaction_hash": tx_hash,
                "confirmations": seen_confirmations,
                "success": status == 1,
                "receipt": receipt,
            }

        if clock() + poll_seconds > deadline:
            break
        sleep(poll_seconds)

    log.info("monitor %s: timed out after %.1fs", tx_hash, timeout_seconds)
    return {
        "status": "timeout",
        "transaction_hash": tx_hash,
        "confirmations": seen_confirmations,
        "mined": bool(receipt),
        "receipt": receipt,
    }
