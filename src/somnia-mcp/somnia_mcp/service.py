import logging
import re
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from eth_abi.exceptions import DecodingError

from .abi import (
    TRANSFER_TOPIC,
    decode_event_log,
    decode_function_input,
    decode_function_result,
    encode_function_call,
    event_topic,
    find_event,
    parse_abi,
    to_jsonable,
)
from .batch import BatchExecutor, BatchResult, ContractWrite, NativeTransfer
from .chains import ChainInfo, ChainRegistry
from .client import ChainClient, WalletClient, normalize_address
from .config import Config
from .errors import (
    BlockNotFoundError,
    ReceiptNotFoundError,
    RpcError,
    TransactionNotFoundError,
    ValidationError,
)
from .events import aggregate_transfers
from .explorer_client import ExplorerClient
from .log_fetcher import DEFAULT_EVENT_WINDOW, DEFAULT_HOLDER_WINDOW, fetch_logs, resolve_block_range
from .multicall import MulticallAggregator, MulticallCall, MulticallResult
from .partial import PartialResult
from .ranking import NATIVE_HOLDER_MAX_LIMIT, TOKEN_HOLDER_MAX_LIMIT, RankedHolders, rank_holders, validate_limit
from .rpc_client import from_quantity
from .tokens import ERC20_ABI, NftGateway, TokenGateway
from .units import format_units, parse_units, parse_wei
from .volume import (
    check_volume_range,
    collect_active_addresses,
    erc20_volume,
    monitor_transaction,
    transaction_fee,
    transaction_volume,
)

log = logging.getLogger(__name__)

TX_HASH_PATTERN = re.compile(r"^0x[0-9a-f]{64}$")
NATIVE_HOLDER_WINDOW = 100
MAX_EVENTS_RETURNED = 50
MAX_PAGE_SIZE = 100
DEFAULT_PENDING_LIMIT = 10
DEFAULT_MONITOR_TIMEOUT_MS = 300000
PRIORITY_FEE_NATIVE = "0.002"
HOLDER_CAVEAT = (
    "Balances are reconstructed from Transfer events inside the block range only; "
    "they are relative deltas, not authoritative on-chain balances."
)
NATIVE_HOLDER_CAVEAT = "Only addresses active inside the block range are ranked, using their current balances."

ClientFactory = Callable[[ChainInfo], ChainClient]
WalletFactory = Callable[[ChainClient, Optional[str]], Any]
ExplorerFactory = Callable[[ChainInfo], ExplorerClient]


class ChainService:
    """Resolve the network, talk to its node/explorer, and shape responses."""

    def __init__(
        self,
        config: Config,
        registry: Optional[ChainRegistry] = None,
        client_factory: Optional[ClientFactory] = None,
        wallet_factory: Optional[WalletFactory] = None,
        explorer_factory: Optional[ExplorerFactory] = None,
    ) -> None:
        self.config = config
        self.registry = registry or ChainRegistry(
            default_network=config.network,
            rpc_url_override=config.rpc_url_override,
        )
        self._client_factory = client_factory or self._make_client
        self._wallet_factory = wallet_factory or WalletClient
        self._explorer_factory = explorer_factory or self._make_explorer
        self._clients: Dict[int, ChainClient] = {}

    # ---- wiring

    def _make_client(self, chain: ChainInfo) -> ChainClient:
        return ChainClient(
            chain,
            timeout=self.config.request_timeout,
            max_retries=self.config.max_retries,
            backoff_seconds=self.config.backoff_seconds,
        )

    def _make_explorer(self, chain: ChainInfo) -> ExplorerClient:
        return ExplorerClient(
            chain.explorer_api_url,
            timeout=self.config.request_timeout,
            max_retries=self.config.max_retries,
            backoff_seconds=self.config.backoff_seconds,
        )

    def _context(self, network: Optional[str]) -> Tuple[ChainInfo, ChainClient]:
        chain = self.registry.resolve(network)
        client = self._clients.get(chain.chain_id)
        if client is None:
            client = self._client_factory(chain)
            self._clients[chain.chain_id] = client
        return chain, client

    def _wallet(self, client: ChainClient) -> Any:
        return self._wallet_factory(client, self.config.private_key)

    def _base(self, chain: ChainInfo) -> Dict[str, Any]:
        return {"network": chain.name, "chain_id": chain.chain_id}

    # ---- chain / network

    def get_chain_info(self, network: Optional[str] = None) -> Dict[str, Any]:
        chain, client = self._context(network)
        info = chain.as_dict()
        info["block_number"] = client.get_block_number()
        return info

    def list_networks(self) -> List[Dict[str, Any]]:
        return self.registry.list_chains()

    def get_gas_price(self, network: Optional[str] = None) -> Dict[str, Any]:
        chain, client = self._context(network)
        gas_price = client.get_gas_price()
        return {
            **self._base(chain),
            "gas_price_wei": str(gas_price),
            "gas_price_gwei": format_units(gas_price, 9),
        }

    def get_fee_data(self, network: Optional[str] = None) -> Dict[str, Any]:
        chain, client = self._context(network)
        gas_price = client.get_gas_price()
        latest = client.get_block("latest") or {}
        base_fee = from_quantity(latest.get("baseFeePerGas"))
        max_fee = base_fee * 2 if base_fee else gas_price
        priority = parse_units(PRIORITY_FEE_NATIVE, chain.native_decimals)
        return {
            **self._base(chain),
            "gas_price_wei": str(gas_price),
            "gas_price_gwei": format_units(gas_price, 9),
            "base_fee_per_gas_wei": str(base_fee) if base_fee is not None else None,
            "max_fee_per_gas_wei": str(max_fee),
            "max_fee_per_gas_gwei": format_units(max_fee, 9),
            "max_priority_fee_per_gas_wei": str(priority),
            "max_priority_fee_per_gas_gwei": format_units(priority, 9),
        }

    def get_block_number(self, network: Optional[str] = None) -> Dict[str, Any]:
        chain, client = self._context(network)
        return {**self._base(chain), "block_number": client.get_block_number()}

    def get_latest_block(self, network: Optional[str] = None) -> Dict[str, Any]:
        chain, client = self._context(network)
        block = client.get_block("latest")
        if not block:
            raise BlockNotFoundError("Latest block not available.")
        return {**self._base(chain), "block": self._map_block(block)}

    def get_block_by_number(
        self,
        block_number: Union[int, str],
        full_transactions: bool = False,
        network: Optional[str] = None,
    ) -> Dict[str, Any]:
        chain, client = self._context(network)
        number = self._parse_block_number(block_number, "block_number")
        if number is None:
            raise ValidationError("block_number is required.")
        block = client.get_block(number, full_transactions)
        if not block:
            raise BlockNotFoundError(f"Block {number} not found.")
        return {**self._base(chain), "block": self._map_block(block)}

    def get_pending_transactions(self, limit: Optional[int] = None, network: Optional[str] = None) -> Dict[str, Any]:
        chain, client = self._context(network)
        page_size = self._normalize_positive_int(limit, DEFAULT_PENDING_LIMIT, "limit")
        block = client.get_block("pending", True) or {}
        pending = [tx for tx in block.get("transactions") or [] if isinstance(tx, dict)]
        return {
            **self._base(chain),
            "total_pending": len(pending),
            "transactions": [self._map_transaction_detail(tx) for tx in pending[:page_size]],
        }

    # ---- accounts / tokens

    def get_balance(self, address: str, network: Optional[str] = None) -> Dict[str, Any]:
        chain, client = self._context(network)
        owner = normalize_address(address)
        balance = client.get_balance(owner)
        return {
            **self._base(chain),
            "address": owner,
            "balance_wei": str(balance),
            "balance": format_units(balance, chain.native_decimals),
            "symbol": chain.native_symbol,
        }

    def get_erc20_balance(self, token_address: str, owner_address: str, network: Optional[str] = None) -> Dict[str, Any]:
        chain, client = self._context(network)
        token = TokenGateway(client, token_address)
        owner = normalize_address(owner_address, "owner address")
        balance = token.balance_of(owner)
        decimals = token.decimals()
        return {
            **self._base(chain),
            "token_address": token.address,
            "owner_address": owner,
            "raw_balance": str(balance),
            "balance": format_units(balance, decimals),
            "symbol": token.symbol(),
            "decimals": decimals,
        }

    def get_token_info(self, token_address: str, network: Optional[str] = None) -> Dict[str, Any]:
        chain, client = self._context(network)
        meta = TokenGateway(client, token_address).metadata()
        supply = meta["total_supply"]
        meta["total_supply"] = str(supply) if supply is not None else None
        meta["formatted_total_supply"] = format_units(supply, meta["decimals"]) if supply is not None else None
        return {**self._base(chain), **meta}

    def get_nft_info(self, token_address: str, token_id: Union[int, str], network: Optional[str] = None) -> Dict[str, Any]:
        chain, client = self._context(network)
        tid = parse_wei(token_id, "token_id")
        return {**self._base(chain), **NftGateway(client, token_address).info(tid)}

    def check_nft_ownership(
        self,
        token_address: str,
        token_id: Union[int, str],
        owner_address: str,
        network: Optional[str] = None,
    ) -> Dict[str, Any]:
        chain, client = self._context(network)
        nft = NftGateway(client, token_address)
        tid = parse_wei(token_id, "token_id")
        owner = normalize_address(owner_address, "owner address")
        actual = nft.owner_of(tid)
        return {
            **self._base(chain),
            "token_address": nft.address,
            "token_id": str(tid),
            "owner_address": owner,
            "actual_owner": actual,
            "is_owner": str(actual).lower() == owner.lower(),
        }

    def get_nft_balance(self, token_address: str, owner_address: str, network: Optional[str] = None) -> Dict[str, Any]:
        chain, client = self._context(network)
        nft = NftGateway(client, token_address)
        owner = normalize_address(owner_address, "owner address")
        return {
            **self._base(chain),
            "token_address": nft.address,
            "owner_address": owner,
            "balance": str(nft.balance_of(owner)),
        }

    def is_contract(self, address: str, network: Optional[str] = None) -> Dict[str, Any]:
        chain, client = self._context(network)
        target = normalize_address(address)
        code = client.get_code(target)
        return {**self._base(chain), "address": target, "is_contract": code not in ("0x", "0x0", "")}

    def get_contract_bytecode(self, address: str, network: Optional[str] = None) -> Dict[str, Any]:
        chain, client = self._context(network)
        target = normalize_address(address)
        code = client.get_code(target)
        return {
            **self._base(chain),
            "address": target,
            "bytecode": code,
            "size_bytes": max(len(code) - 2, 0) // 2,
        }

    def get_transaction_count(
        self,
        address: str,
        block: Optional[Union[int, str]] = None,
        network: Optional[str] = None,
    ) -> Dict[str, Any]:
        chain, client = self._context(network)
        target = normalize_address(address)
        tag = self._normalize_block_tag(block)
        return {**self._base(chain), "address": target, "block": tag, "count": client.get_transaction_count(target, tag)}

    # ---- transactions

    def get_transaction(self, tx_hash: str, network: Optional[str] = None) -> Dict[str, Any]:
        chain, client = self._context(network)
        normalized = self._normalize_tx_hash(tx_hash)
        tx = client.get_transaction(normalized)
        if not tx:
            raise TransactionNotFoundError(f"Transaction {normalized} not found.")
        detail = self._map_transaction_detail(tx)
        value = detail.get("value_int")
        detail["value_formatted"] = format_units(value, chain.native_decimals) if value is not None else None
        return {**self._base(chain), "transaction": detail}

    def get_transaction_receipt(self, tx_hash: str, network: Optional[str] = None) -> Dict[str, Any]:
        chain, client = self._context(network)
        normalized = self._normalize_tx_hash(tx_hash)
        receipt = client.get_transaction_receipt(normalized)
        if not receipt:
            raise ReceiptNotFoundError(f"Transaction receipt not found for {normalized}.")
        return {**self._base(chain), "receipt": self._map_receipt(receipt)}

    def estimate_gas(
        self,
        to: str,
        value: Optional[str] = None,
        data: Optional[str] = None,
        from_address: Optional[str] = None,
        network: Optional[str] = None,
    ) -> Dict[str, Any]:
        chain, client = self._context(network)
        tx: Dict[str, Any] = {"to": normalize_address(to, "to")}
        if value:
            tx["value"] = hex(parse_units(value, chain.native_decimals, "value"))
        if data:
            tx["data"] = data
        if from_address:
            tx["from"] = normalize_address(from_address, "from")
        return {**self._base(chain), "gas_estimate": str(client.estimate_gas(tx))}

    def estimate_contract_gas(
        self,
        contract_address: str,
        abi: Any,
        function_name: str,
        args: Optional[List[Any]] = None,
        value: Optional[str] = None,
        from_address: Optional[str] = None,
        network: Optional[str] = None,
    ) -> Dict[str, Any]:
        chain, client = self._context(network)
        sender = from_address or self._default_sender(client)
        gas = client.estimate_contract_gas(
            contract_address,
            parse_abi(abi),
            function_name,
            args,
            sender=sender,
            value=parse_units(value, chain.native_decimals, "value") if value else 0,
        )
        return {
            **self._base(chain),
            "contract_address": normalize_address(contract_address, "contract address"),
            "function_name": function_name,
            "gas_estimate": str(gas),
        }

    def send_raw_transaction(self, signed_transaction: str, network: Optional[str] = None) -> Dict[str, Any]:
        chain, client = self._context(network)
        if not isinstance(signed_transaction, str) or not signed_transaction.strip():
            raise ValidationError("signed_transaction must be a hex string.")
        raw = signed_transaction.strip()
        if not raw.startswith("0x"):
            raw = f"0x{raw}"
        return {**self._base(chain), "tx_hash": client.send_raw_transaction(raw)}

    def decode_transaction_input(self, tx_hash: str, abi: Any = None, network: Optional[str] = None) -> Dict[str, Any]:
        chain, client = self._context(network)
        normalized = self._normalize_tx_hash(tx_hash)
        tx = client.get_transaction(normalized)
        if not tx:
            raise TransactionNotFoundError(f"Transaction {normalized} not found.")
        data = tx.get("input") or "0x"
        out = {**self._base(chain), "tx_hash": normalized, "to": tx.get("to"), "input": data}
        if len(data) < 10:
            out.update({"selector": None, "decoded": None})
            return out

        entries = parse_abi(abi)
        if entries:
            out.update({"selector": data[:10], "decoded": decode_function_input(entries, data)})
            return out

        body = data[10:]
        out.update({
            "selector": data[:10],
            "decoded": None,
            "raw_args": [f"0x{body[i:i + 64]}" for i in range(0, len(body), 64)],
        })
        return out

    def get_transaction_fee(self, tx_hash: str, network: Optional[str] = None) -> Dict[str, Any]:
        chain, client = self._context(network)
        normalized = self._normalize_tx_hash(tx_hash)
        fee = transaction_fee(client, normalized)
        return {
            **self._base(chain),
            "tx_hash": normalized,
            "gas_used": str(fee["gas_used"]),
            "effective_gas_price_wei": str(fee["effective_gas_price"]),
            "fee_wei": str(fee["fee"]),
            "fee": format_units(fee["fee"], chain.native_decimals),
            "symbol": chain.native_symbol,
        }

    def monitor_transaction(
        self,
        tx_hash: str,
        confirmations: int = 1,
        timeout_ms: int = DEFAULT_MONITOR_TIMEOUT_MS,
        network: Optional[str] = None,
    ) -> Dict[str, Any]:
        chain, client = self._context(network)
        normalized = self._normalize_tx_hash(tx_hash)
        outcome = monitor_transaction(
            client,
            normalized,
            confirmations=confirmations,
            timeout_seconds=timeout_ms / 1000.0,
            poll_seconds=self.config.monitor_poll_seconds,
        )
        receipt = outcome.get("receipt")
        outcome["receipt"] = self._map_receipt(receipt) if receipt else None
        return {**self._base(chain), **outcome}

    # ---- contracts

    def read_contract(
        self,
        contract_address: str,
        abi: Any,
        function_name: str,
        args: Optional[List[Any]] = None,
        block: Optional[Union[int, str]] = None,
        network: Optional[str] = None,
    ) -> Dict[str, Any]:
        chain, client = self._context(network)
        result = client.read_contract(
            contract_address, parse_abi(abi), function_name, args, self._normalize_block_tag(block)
        )
        return {
            **self._base(chain),
            "contract_address": normalize_address(contract_address, "contract address"),
            "function_name": function_name,
            "result": to_jsonable(result),
        }

    def simulate_contract_call(
        self,
        contract_address: str,
        abi: Any,
        function_name: str,
        args: Optional[List[Any]] = None,
        value: Optional[str] = None,
        from_address: Optional[str] = None,
        network: Optional[str] = None,
    ) -> Dict[str, Any]:
        chain, client = self._context(network)
        sender = from_address or self._default_sender(client)
        out = {
            **self._base(chain),
            "contract_address": normalize_address(contract_address, "contract address"),
            "function_name": function_name,
            "from": sender,
        }
        try:
            result = client.read_contract(
                contract_address,
                parse_abi(abi),
                function_name,
                args,
                sender=sender,
                value=parse_units(value, chain.native_decimals, "value") if value else 0,
            )
        except RpcError as exc:
            out.update({"success": False, "error": str(exc)})
            return out
        out.update({"success": True, "result": to_jsonable(result)})
        return out

    def write_contract(
        self,
        contract_address: str,
        abi: Any,
        function_name: str,
        args: Optional[List[Any]] = None,
        value: Optional[str] = None,
        network: Optional[str] = None,
    ) -> Dict[str, Any]:
        chain, client = self._context(network)
        wallet = self._wallet(client)
        tx_hash = wallet.write_contract(
            contract_address,
            parse_abi(abi),
            function_name,
            list(args or []),
            parse_units(value, chain.native_decimals, "value") if value else 0,
        )
        return {
            **self._base(chain),
            "contract_address": normalize_address(contract_address, "contract address"),
            "function_name": function_name,
            "from": wallet.address,
            "tx_hash": tx_hash,
        }

    def deploy_contract(
        self,
        bytecode: str,
        abi: Any,
        args: Optional[List[Any]] = None,
        timeout_ms: int = DEFAULT_MONITOR_TIMEOUT_MS,
        network: Optional[str] = None,
    ) -> Dict[str, Any]:
        chain, client = self._context(network)
        wallet = self._wallet(client)
        tx_hash = wallet.deploy_contract(bytecode, parse_abi(abi), list(args or []))
        outcome = monitor_transaction(
            client,
            tx_hash,
            confirmations=1,
            timeout_seconds=timeout_ms / 1000.0,
            poll_seconds=self.config.monitor_poll_seconds,
        )
        receipt = outcome.get("receipt") or {}
        return {
            **self._base(chain),
            "from": wallet.address,
            "tx_hash": tx_hash,
            "status": outcome["status"],
            "success": outcome.get("success", False),
            "contract_address": receipt.get("contractAddress"),
        }

    def get_contract_events(
        self,
        contract_address: str,
        from_block: Optional[Union[int, str]] = None,
        to_block: Optional[Union[int, str]] = None,
        abi: Any = None,
        event_name: Optional[str] = None,
        network: Optional[str] = None,
    ) -> Dict[str, Any]:
        chain, client = self._context(network)
        address = normalize_address(contract_address, "contract address")
        block_range = resolve_block_range(
            client,
            self._parse_block_number(from_block, "from_block"),
            self._parse_block_number(to_block, "to_block"),
            DEFAULT_EVENT_WINDOW,
        )

        entry = None
        topics = None
        if event_name:
            entry = find_event(parse_abi(abi), event_name)
            topics = [event_topic(entry)]

        fetched = fetch_logs(client, address, block_range, self.config.log_block_span, topics)
        events = fetched.value
        shown = events[:MAX_EVENTS_RETURNED]
        if entry is not None:
            for item in shown:
                try:
                    item["decoded"] = decode_event_log(entry, item)
                except (ValidationError, DecodingError) as exc:
                    fetched.warn(log, f"Could not decode log {item.get('transaction_hash')}#{item.get('log_index')}: {exc}")

        return {
            **self._base(chain),
            "contract_address": address,
            "event_name": event_name,
            "from_block": block_range.from_block,
            "to_block": block_range.to_block,
            "total_events": len(events),
            "truncated": len(events) > len(shown),
            "events": shown,
            "warnings": fetched.warnings,
        }

    def multicall_contract(self, calls: Sequence[Any], network: Optional[str] = None) -> Dict[str, Any]:
        chain, client = self._context(network)
        prepared, entries = self._parse_multicall_calls(calls)
        aggregator = MulticallAggregator(client, chain.multicall_address, chain.supports_aggregate3)
        return self._format_multicall(chain, aggregator.aggregate(prepared), prepared, entries)

    def multicall_contract_3(
        self,
        calls: Sequence[Any],
        allow_failure: bool = True,
        network: Optional[str] = None,
    ) -> Dict[str, Any]:
        chain, client = self._context(network)
        prepared, entries = self._parse_multicall_calls(calls)
        aggregator = MulticallAggregator(client, chain.multicall_address, chain.supports_aggregate3)
        return self._format_multicall(chain, aggregator.aggregate3(prepared, allow_failure), prepared, entries)

    # ---- explorer

    def get_contract_abi(self, contract_address: str, network: Optional[str] = None) -> Dict[str, Any]:
        chain = self.registry.resolve(network)
        address = normalize_address(contract_address, "contract address")
        abi = parse_abi(self._explorer_factory(chain).get_contract_abi(address))
        return {**self._base(chain), "contract_address": address, "abi": abi}

    def get_contract_source(self, contract_address: str, network: Optional[str] = None) -> Dict[str, Any]:
        chain = self.registry.resolve(network)
        address = normalize_address(contract_address, "contract address")
        entry = self._explorer_factory(chain).get_contract_source(address)
        parsed = self._parse_source_entry(entry)
        if not parsed["is_verified"]:
            return {
                **self._base(chain),
                "contract_address": address,
                "is_verified": False,
                "message": "Contract source code not available.",
            }
        return {**self._base(chain), "contract_address": address, **parsed}

    def verify_contract(
        self,
        contract_address: str,
        action: str = "check",
        source_code: Optional[str] = None,
        contract_name: Optional[str] = None,
        compiler_version: Optional[str] = None,
        optimization: bool = False,
        constructor_arguments: Optional[str] = None,
        license_type: Optional[str] = None,
        guid: Optional[str] = None,
        network: Optional[str] = None,
    ) -> Dict[str, Any]:
        chain = self.registry.resolve(network)
        address = normalize_address(contract_address, "contract address")
        explorer = self._explorer_factory(chain)
        out = {**self._base(chain), "contract_address": address, "action": action}

        if action == "check":
            if guid:
                out.update(explorer.check_verify_status(guid))
                return out
            parsed = self._parse_source_entry(explorer.get_contract_source(address))
            out.update({
                "is_verified": parsed["is_verified"],
                "contract_name": parsed.get("contract_name"),
                "compiler_version": parsed.get("compiler_version"),
            })
            return out

        if action == "verify":
            if not source_code or not contract_name or not compiler_version:
                raise ValidationError(
                    "For 'verify' action, source_code, contract_name and compiler_version are required."
                )
            submitted = explorer.verify_source_code(
                address,
                source_code,
                contract_name,
                compiler_version,
                optimization,
                constructor_arguments,
                license_type,
            )
            out.update({"status": "submitted", "guid": submitted})
            return out

        raise ValidationError("Invalid action. Use 'check' or 'verify'.")

    def get_address_transactions(
        self,
        address: str,
        page: Optional[int] = None,
        limit: Optional[int] = None,
        sort: Optional[str] = None,
        network: Optional[str] = None,
    ) -> Dict[str, Any]:
        chain = self.registry.resolve(network)
        target = normalize_address(address)
        page_num = self._normalize_positive_int(page, 1, "page")
        if page_num < 1:
            raise ValidationError("page must be at least 1.")
        page_size = validate_limit(10 if limit is None else limit, MAX_PAGE_SIZE)
        sort_order = self._normalize_sort(sort)

        rows = self._explorer_factory(chain).get_transactions(target, page_num, page_size, sort_order)
        return {
            **self._base(chain),
            "address": target,
            "page": page_num,
            "limit": page_size,
            "sort": sort_order,
            "transactions": [self._map_transaction(tx, chain) for tx in rows if isinstance(tx, dict)],
        }

    # ---- writes

    def transfer_native_token(self, to_address: str, amount: str, network: Optional[str] = None) -> Dict[str, Any]:
        chain, client = self._context(network)
        wallet = self._wallet(client)
        to = normalize_address(to_address, "to address")
        raw = parse_units(amount, chain.native_decimals)
        tx_hash = wallet.send_transaction(to, raw)
        return {
            **self._base(chain),
            "from": wallet.address,
            "to": to,
            "amount": format_units(raw, chain.native_decimals),
            "amount_wei": str(raw),
            "symbol": chain.native_symbol,
            "tx_hash": tx_hash,
        }

    def transfer_erc20_token(
        self,
        token_address: str,
        to_address: str,
        amount: str,
        network: Optional[str] = None,
    ) -> Dict[str, Any]:
        chain, client = self._context(network)
        wallet = self._wallet(client)
        token = TokenGateway(client, token_address)
        to = normalize_address(to_address, "to address")
        decimals = token.decimals()
        raw = parse_units(amount, decimals)
        tx_hash = wallet.write_contract(token.address, ERC20_ABI, "transfer", [to, raw], 0)
        return {
            **self._base(chain),
            "token_address": token.address,
            "symbol": token.symbol(),
            "from": wallet.address,
            "to": to,
            "amount": format_units(raw, decimals),
            "raw_amount": str(raw),
            "tx_hash": tx_hash,
        }

    def batch_transfer_native(
        self,
        transfers: Sequence[Any],
        continue_on_error: bool = True,
        network: Optional[str] = None,
    ) -> Dict[str, Any]:
        chain, client = self._context(network)
        wallet = self._wallet(client)
        operations: List[Optional[NativeTransfer]] = []
        for i, item in enumerate(self._require_list(transfers, "transfers")):
            if item is None:
                operations.append(None)
                continue
            to, raw = self._parse_transfer_item(item, i, chain.native_decimals)
            operations.append(NativeTransfer(to=to, amount=raw))

        result = BatchExecutor(wallet).run(operations, continue_on_error)
        results = [r.as_dict() for r in result.results]
        for entry in results:
            op = operations[entry["index"]]
            if op is not None:
                entry["amount"] = format_units(op.amount, chain.native_decimals)
        return {
            **self._base(chain),
            "from": wallet.address,
            "symbol": chain.native_symbol,
            **self._batch_counts(result, "transfers"),
            "results": results,
        }

    def batch_transfer_erc20(
        self,
        token_address: str,
        transfers: Sequence[Any],
        continue_on_error: bool = True,
        network: Optional[str] = None,
    ) -> Dict[str, Any]:
        chain, client = self._context(network)
        wallet = self._wallet(client)
        token = TokenGateway(client, token_address)
        decimals = token.decimals()

        operations: List[Optional[ContractWrite]] = []
        targets: List[Optional[Tuple[str, int]]] = []
        for i, item in enumerate(self._require_list(transfers, "transfers")):
            if item is None:
                operations.append(None)
                targets.append(None)
                continue
            to, raw = self._parse_transfer_item(item, i, decimals)
            operations.append(ContractWrite(token.address, ERC20_ABI, "transfer", (to, raw)))
            targets.append((to, raw))

        result = BatchExecutor(wallet).run(operations, continue_on_error)
        results = []
        for item in result.results:
            entry = {"index": item.index, "success": item.success}
            target = targets[item.index]
            if target is not None:
                entry.update({"to": target[0], "amount": format_units(target[1], decimals)})
            if item.success:
                entry["tx_hash"] = item.tx_hash
            else:
                entry["error"] = item.error
            results.append(entry)
        return {
            **self._base(chain),
            "token_address": token.address,
            "symbol": token.symbol(),
            "from": wallet.address,
            **self._batch_counts(result, "transfers"),
            "results": results,
        }

    def batch_write_contract(
        self,
        operations: Sequence[Any],
        continue_on_error: bool = True,
        network: Optional[str] = None,
    ) -> Dict[str, Any]:
        chain, client = self._context(network)
        wallet = self._wallet(client)
        writes: List[Optional[ContractWrite]] = []
        for i, item in enumerate(self._require_list(operations, "operations")):
            if item is None:
                writes.append(None)
                continue
            if not isinstance(item, dict):
                raise ValidationError(f"operations[{i}] must be an object.")
            function_name = item.get("function_name") or item.get("functionName")
            if not function_name:
                raise ValidationError(f"operations[{i}].function_name is required.")
            address = item.get("contract_address") or item.get("contractAddress")
            args = item.get("args")
            if args is None:
                args = []
            if not isinstance(args, (list, tuple)):
                raise ValidationError(f"operations[{i}].args must be an array.")
            writes.append(
                ContractWrite(
                    contract_address=normalize_address(address, f"operations[{i}].contract_address"),
                    abi=parse_abi(item.get("abi")),
                    function_name=function_name,
                    args=tuple(args),
                    value=parse_wei(item.get("value"), f"operations[{i}].value"),
                )
            )

        result = BatchExecutor(wallet).run(writes, continue_on_error)
        return {
            **self._base(chain),
            "from": wallet.address,
            **self._batch_counts(result, "operations"),
            "results": [r.as_dict() for r in result.results],
        }

    # ---- analytics

    def get_transaction_volume(
        self,
        from_block: Union[int, str],
        to_block: Union[int, str],
        network: Optional[str] = None,
    ) -> Dict[str, Any]:
        chain, client = self._context(network)
        block_range = resolve_block_range(
            client,
            self._parse_block_number(from_block, "from_block"),
            self._parse_block_number(to_block, "to_block"),
        )
        result = transaction_volume(client, block_range)
        summary = result.value
        return {
            **self._base(chain),
            "from_block": block_range.from_block,
            "to_block": block_range.to_block,
            "total_volume": format_units(summary.total_value, chain.native_decimals),
            "total_volume_wei": str(summary.total_value),
            "symbol": chain.native_symbol,
            "transaction_count": summary.transaction_count,
            "blocks_processed": summary.blocks_processed,
            "blocks_requested": summary.blocks_requested,
            "warnings": result.warnings,
        }

    def get_erc20_transaction_volume(
        self,
        token_address: str,
        from_block: Union[int, str],
        to_block: Union[int, str],
        network: Optional[str] = None,
    ) -> Dict[str, Any]:
        chain, client = self._context(network)
        token = TokenGateway(client, token_address)
        block_range = resolve_block_range(
            client,
            self._parse_block_number(from_block, "from_block"),
            self._parse_block_number(to_block, "to_block"),
        )
        result = erc20_volume(client, token.address, block_range, self.config.log_block_span)
        decimals = token.decimals()
        summary = result.value
        return {
            **self._base(chain),
            "token_address": token.address,
            "symbol": token.symbol(),
            "decimals": decimals,
            "from_block": block_range.from_block,
            "to_block": block_range.to_block,
            "total_volume": format_units(summary.total_value, decimals),
            "raw_total_volume": str(summary.total_value),
            "transfer_count": summary.transfer_count,
            "warnings": result.warnings,
        }

    def get_top_holders(
        self,
        limit: int = 10,
        from_block: Optional[Union[int, str]] = None,
        to_block: Optional[Union[int, str]] = None,
        network: Optional[str] = None,
    ) -> Dict[str, Any]:
        validate_limit(limit, NATIVE_HOLDER_MAX_LIMIT)
        chain, client = self._context(network)
        block_range = resolve_block_range(
            client,
            self._parse_block_number(from_block, "from_block"),
            self._parse_block_number(to_block, "to_block"),
            NATIVE_HOLDER_WINDOW,
        )
        check_volume_range(block_range)

        active = collect_active_addresses(client, block_range)
        balances: PartialResult[Dict[str, int]] = PartialResult({})
        balances.absorb(active)
        for address in active.value:
            try:
                balances.value[address] = client.get_balance(address)
            except Exception as exc:  # pylint: disable=broad-except
                balances.warn(log, f"Skipped balance for {address}: {exc}")

        ranked = rank_holders(balances.value, limit, chain.native_decimals, max_limit=NATIVE_HOLDER_MAX_LIMIT)
        return {
            **self._base(chain),
            "symbol": chain.native_symbol,
            "from_block": block_range.from_block,
            "to_block": block_range.to_block,
            "addresses_scanned": len(active.value),
            **self._format_ranked(ranked),
            "note": NATIVE_HOLDER_CAVEAT,
            "warnings": balances.warnings,
        }

    def get_erc20_top_holders(
        self,
        token_address: str,
        limit: int = 10,
        from_block: Optional[Union[int, str]] = None,
        to_block: Optional[Union[int, str]] = None,
        network: Optional[str] = None,
    ) -> Dict[str, Any]:
        validate_limit(limit, TOKEN_HOLDER_MAX_LIMIT)
        chain, client = self._context(network)
        token = TokenGateway(client, token_address)
        block_range = resolve_block_range(
            client,
            self._parse_block_number(from_block, "from_block"),
            self._parse_block_number(to_block, "to_block"),
            DEFAULT_HOLDER_WINDOW,
        )

        fetched = fetch_logs(client, token.address, block_range, self.config.log_block_span, [TRANSFER_TOPIC])
        folded = aggregate_transfers(fetched.value)
        warnings = fetched.warnings + folded.warnings

        decimals = token.decimals()
        total_supply = token.total_supply()
        ranked = rank_holders(folded.value.ledger, limit, decimals, total_supply, TOKEN_HOLDER_MAX_LIMIT)
        return {
            **self._base(chain),
            "token_address": token.address,
            "symbol": token.symbol(),
            "decimals": decimals,
            "total_supply": str(total_supply) if total_supply is not None else None,
            "from_block": block_range.from_block,
            "to_block": block_range.to_block,
            "transfer_count": folded.value.transfer_count,
            **self._format_ranked(ranked),
            "note": HOLDER_CAVEAT,
            "warnings": warnings,
        }

    # ---- helpers

    def _default_sender(self, client: ChainClient) -> Optional[str]:
        if not self.config.private_key:
            return None
        return self._wallet(client).address

    def _format_ranked(self, ranked: RankedHolders) -> Dict[str, Any]:
        return {
            "total_holders": ranked.total_holders,
            "holders": [entry.as_dict() for entry in ranked.holders],
        }

    def _batch_counts(self, result: BatchResult, noun: str) -> Dict[str, Any]:
        return {
            "success": result.success,
            f"total_{noun}": result.total,
            f"successful_{noun}": result.successful,
            f"failed_{noun}": result.failed,
            "stopped_early": result.stopped_early,
        }

    def _require_list(self, value: Any, field: str) -> List[Any]:
        if not isinstance(value, (list, tuple)):
            raise ValidationError(f"{field} must be an array.")
        if not value:
            raise ValidationError(f"{field} must not be empty.")
        return list(value)

    def _parse_transfer_item(self, item: Any, index: int, decimals: int) -> Tuple[str, int]:
        if not isinstance(item, dict):
            raise ValidationError(f"transfers[{index}] must be an object with 'to' and 'amount'.")
        to = normalize_address(item.get("to"), f"transfers[{index}].to")
        raw = parse_units(item.get("amount"), decimals, f"transfers[{index}].amount")
        return to, raw

    def _parse_multicall_calls(self, calls: Sequence[Any]) -> Tuple[List[MulticallCall], List[Optional[Dict[str, Any]]]]:
        prepared: List[MulticallCall] = []
        entries: List[Optional[Dict[str, Any]]] = []
        for i, item in enumerate(self._require_list(calls, "calls")):
            if not isinstance(item, dict):
                raise ValidationError(f"calls[{i}] must be an object.")
            target = item.get("target") or item.get("contract_address") or item.get("address")
            target = normalize_address(target, f"calls[{i}].target")
            function_name = item.get("function_name") or item.get("functionName")
            entry = None
            if function_name:
                entries_abi = parse_abi(item.get("abi"))
                entry, call_data = encode_function_call(entries_abi, function_name, item.get("args"))
            else:
                call_data = item.get("call_data") or item.get("callData")
                if not call_data:
                    raise ValidationError(f"calls[{i}] requires either call_data or abi + function_name.")
            prepared.append(MulticallCall(target, call_data, parse_wei(item.get("value"), f"calls[{i}].value")))
            entries.append(entry)
        return prepared, entries

    def _format_multicall(
        self,
        chain: ChainInfo,
        result: MulticallResult,
        calls: Sequence[MulticallCall],
        entries: Sequence[Optional[Dict[str, Any]]],
    ) -> Dict[str, Any]:
        rows = []
        for i, (call, outcome) in enumerate(zip(calls, result.outcomes)):
            row: Dict[str, Any] = {
                "index": i,
                "target": call.target,
                "success": outcome.success,
                "return_data": outcome.return_data,
            }
            entry = entries[i]
            if entry is not None and outcome.success:
                try:
                    row["decoded"] = to_jsonable(decode_function_result(entry, outcome.return_data))
                except (ValidationError, DecodingError) as exc:
                    row["decode_error"] = str(exc)
            rows.append(row)
        return {
            **self._base(chain),
            "method": result.method,
            "block_number": result.block_number,
            "results": rows,
        }

    def _parse_source_entry(self, entry: Dict[str, Any]) -> Dict[str, Any]:
        source = entry.get("SourceCode") or ""
        abi_raw = entry.get("ABI") or ""
        abi = None
        if abi_raw and abi_raw != "Contract source code not verified":
            try:
                abi = parse_abi(abi_raw)
            except ValidationError:
                abi = None
        return {
            "is_verified": bool(source),
            "contract_name": entry.get("ContractName") or None,
            "compiler_version": entry.get("CompilerVersion") or None,
            "optimization": str(entry.get("OptimizationUsed", "")) in {"1", "true", "True"},
            "source_code": source,
            "abi": abi,
            "constructor_arguments": entry.get("ConstructorArguments") or None,
        }

    def _parse_block_number(self, value: Optional[Union[int, str]], field: str) -> Optional[int]:
        if value is None:
            return None
        message = f"{field} must be a non-negative block number in decimal or 0x-prefixed hexadecimal."
        if isinstance(value, bool):
            raise ValidationError(message)
        if isinstance(value, int):
            ivalue = value
        elif isinstance(value, str):
            candidate = value.strip().lower()
            if candidate.startswith("0x"):
                try:
                    ivalue = int(candidate, 16)
                except ValueError as exc:
                    raise ValidationError(message) from exc
            elif candidate.isdigit():
                ivalue = int(candidate)
            else:
                raise ValidationError(message)
        else:
            raise ValidationError(message)
        if ivalue < 0:
            raise ValidationError(message)
        return ivalue

    def _normalize_block_tag(self, tag: Optional[Union[int, str]]) -> Union[int, str]:
        if tag is None:
            return "latest"
        if isinstance(tag, str) and tag.strip().lower() in {"latest", "earliest", "pending", "safe", "finalized"}:
            return tag.strip().lower()
        return self._parse_block_number(tag, "block")

    def _normalize_positive_int(self, value: Optional[int], default: int, field: str) -> int:
        if value is None:
            return default
        if isinstance(value, bool):
            raise ValidationError(f"{field} must be a non-negative integer.")
        if isinstance(value, int):
            ivalue = value
        elif isinstance(value, str) and value.strip().isdigit():
            ivalue = int(value.strip())
        else:
            raise ValidationError(f"{field} must be a non-negative integer.")
        if ivalue < 0:
            raise ValidationError(f"{field} must be a non-negative integer.")
        return ivalue

    def _normalize_sort(self, sort: Optional[str]) -> str:
        if sort is None:
            return "desc"
        normalized = sort.lower()
        if normalized not in {"asc", "desc"}:
            raise ValidationError("sort must be 'asc' or 'desc'.")
        return normalized

    def _normalize_tx_hash(self, tx_hash: str) -> str:
        if not isinstance(tx_hash, str):
            raise ValidationError("tx_hash must be a string.")
        candidate = tx_hash.strip().lower()
        if not candidate.startswith("0x"):
            candidate = f"0x{candidate}"
        if not TX_HASH_PATTERN.fullmatch(candidate):
            raise ValidationError("tx_hash must be 0x-prefixed 64 hex characters.")
        return candidate

    def _map_block(self, block: Dict[str, Any]) -> Dict[str, Any]:
        txs = block.get("transactions") or []
        full = bool(txs) and isinstance(txs[0], dict)
        return {
            "number": from_quantity(block.get("number")),
            "hash": block.get("hash"),
            "parent_hash": block.get("parentHash"),
            "timestamp": from_quantity(block.get("timestamp")),
            "miner": block.get("miner"),
            "gas_used": from_quantity(block.get("gasUsed")),
            "gas_limit": from_quantity(block.get("gasLimit")),
            "base_fee_per_gas": from_quantity(block.get("baseFeePerGas")),
            "transaction_count": len(txs),
            "transactions": [self._map_transaction_detail(tx) for tx in txs] if full else list(txs),
        }

    def _map_transaction(self, tx: Dict[str, Any], chain: ChainInfo) -> Dict[str, Any]:
        value = tx.get("value")
        try:
            formatted = format_units(int(value), chain.native_decimals) if value is not None else None
        except (TypeError, ValueError):
            formatted = None
        return {
            "hash": tx.get("hash"),
            "from": tx.get("from"),
            "to": tx.get("to"),
            "value": value,
            "value_formatted": formatted,
            "gas": tx.get("gas"),
            "gas_price": tx.get("gasPrice"),
            "gas_used": tx.get("gasUsed"),
            "block_number": tx.get("blockNumber"),
            "timestamp": tx.get("timeStamp"),
            "is_error": tx.get("isError"),
            "method_id": tx.get("methodId"),
        }

    def _map_transaction_detail(self, tx: Dict[str, Any]) -> Dict[str, Any]:
        def hx(field: str) -> Optional[int]:
            return from_quantity(tx.get(field))

        return {
            "hash": tx.get("hash"),
            "from": tx.get("from"),
            "to": tx.get("to"),
            "nonce": hx("nonce"),
            "value": tx.get("value"),
            "value_int": hx("value"),
            "gas": hx("gas"),
            "gas_price": hx("gasPrice"),
            "max_fee_per_gas": hx("maxFeePerGas"),
            "max_priority_fee_per_gas": hx("maxPriorityFeePerGas"),
            "block_hash": tx.get("blockHash"),
            "block_number": hx("blockNumber"),
            "transaction_index": hx("transactionIndex"),
            "type": hx("type"),
            "input": tx.get("input"),
            "chain_id": hx("chainId"),
        }

    def _map_receipt(self, receipt: Dict[str, Any]) -> Dict[str, Any]:
        def hx(field: str) -> Optional[int]:
            return from_quantity(receipt.get(field))

        return {
            "status": hx("status"),
            "contract_address": receipt.get("contractAddress"),
            "cumulative_gas_used": hx("cumulativeGasUsed"),
            "gas_used": hx("gasUsed"),
            "effective_gas_price": hx("effectiveGasPrice"),
            "block_hash": receipt.get("blockHash"),
            "block_number": hx("blockNumber"),
            "transaction_hash": receipt.get("transactionHash"),
            "transaction_index": hx("transactionIndex"),
            "logs": receipt.get("logs"),
        }
