"""
Sequential execution of signer-bound write operations.

Each operation is attempted at most once, strictly in input order. With
continue_on_error=False execution stops right after the first failure and
later operations do not appear in the results.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Union

from .ports import TransactionSigner

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class NativeTransfer:
    to: str
    amount: int

    def describe(self) -> Dict[str, Any]:
        return {"to": self.to, "amount": str(self.amount)}


@dataclass(frozen=True)
class ContractWrite:
    contract_address: str
    abi: Sequence[Dict[str, Any]]
    function_name: str
    args: Sequence[Any] = ()
    value: int = 0

    def describe(self) -> Dict[str, Any]:
        return {
            "contract_address": self.contract_address,
            "function_name": self.function_name,
        }


BatchOperation = Union[NativeTransfer, ContractWrite]


@dataclass
class BatchItemResult:
    index: int
    success: bool
    tx_hash: Optional[str] = None
    error: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"index": self.index, "success": self.success}
        out.update(self.details)
        if self.success:
            out["tx_hash"] = self.tx_hash
        else:
            out["error"] = self.error
        return out


@dataclass
class BatchResult:
    total: int
    results: List[BatchItemResult] = field(default_factory=list)

    @property
    def successful(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.success)

    @property
    def success(self) -> bool:
        return self.failed == 0

    @property
    def stopped_early(self) -> bool:
        return len(self.results) < self.total


class BatchExecutor:
    def __init__(self, signer: TransactionSigner) -> None:
        self._signer = signer

    def _execute(self, operation: BatchOperation) -> str:
        if isinstance(operation, NativeTransfer):
            return self._signer.send_transaction(operation.to, operation.amount)
        if isinstance(operation, ContractWrite):
            return self._signer.write_contract(
                operation.contract_address,
                operation.abi,
                operation.function_name,
                list(operation.args),
                operation.value,
            )
        raise TypeError(f"Unsupported batch operation: {type(operation).__name__}")

    def run(
        self,
        operations: Sequence[Optional[BatchOperation]],
        continue_on_error: bool = True,
    ) -> BatchResult:
        result = BatchResult(total=len(operations))

        for index, operation in enumerate(operations):
            if operation is None:
                item = BatchItemResult(index=index, success=False, error="Operation is missing.")
            else:
                try:
                    tx_hash = self._execute(operation)
                    item = BatchItemResult(index=index, success=True, tx_hash=tx_hash, details=operation.describe())
                except Exception as exc:  # pylint: disable=broad-except
                    log.warning("batch operation %d failed: %s", index, exc)
                    item = BatchItemResult(index=index, success=False, error=str(exc), details=operation.describe())

            result.results.append(item)
            if not item.success and not continue_on_error:
                log.info("stopping batch after failure at index %d of %d", index, result.total)
                break

        log.info(
            "batch finished: %d/%d attempted, %d ok, %d failed",
            len(result.results), result.total, result.successful, result.failed,
        )
        return result
