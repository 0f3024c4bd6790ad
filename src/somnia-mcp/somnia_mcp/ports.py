from typing import Any, Dict, List, Optional, Protocol, Sequence, Union

BlockId = Union[int, str]


class ChainReader(Protocol):
    def get_block_number(self) -> int: ...

    def get_block(self, block: BlockId = "latest", full_transactions: bool = False) -> Optional[Dict[str, Any]]: ...

    def get_logs(
        self,
        address: Optional[str],
        from_block: int,
        to_block: int,
        topics: Optional[List[Optional[str]]] = None,
    ) -> List[Dict[str, Any]]: ...

    def get_transaction_receipt(self, tx_hash: str) -> Optional[Dict[str, Any]]: ...

    def get_balance(self, address: str, block: BlockId = "latest") -> int: ...

    def eth_call(self, tx: Dict[str, Any], block: BlockId = "latest") -> str: ...


class TransactionSigner(Protocol):
    def send_transaction(self, to: str, value: int = 0, data: Optional[str] = None) -> str: ...

    def write_contract(
        self,
        address: str,
        abi: Sequence[Dict[str, Any]],
        function_name: str,
        args: Sequence[Any],
        value: int = 0,
    ) -> str: ...
