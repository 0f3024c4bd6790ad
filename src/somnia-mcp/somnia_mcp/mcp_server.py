"""
MCP server exposing Somnia chain reads, writes and analytics.
"""

import argparse
import logging
from collections.abc import Mapping
from typing import Any, Optional, Union

from mcp.server.fastmcp import FastMCP

from .config import load_config
from .log import setup_logging
from .service import DEFAULT_MONITOR_TIMEOUT_MS, ChainService

log = logging.getLogger(__name__)

server = FastMCP(
    name="somnia-mcp",
    instructions=(
        "Query and transact on Somnia networks: blocks, balances, tokens, contracts, "
        "batch transfers, multicall, and log-based analytics. Every tool accepts an optional "
        "`network` (name, alias or chain id)."
    ),
)

_service: Optional[ChainService] = None


def _get_service() -> ChainService:
    global _service
    if _service is None:
        cfg = load_config()
        _service = ChainService(cfg)
    return _service


def _normalize_array_param(value: Optional[Any], name: str) -> Optional[list]:
    """
    Ensure a parameter intended as an array is actually treated as one:
    - str/bytes: likely misuse, raise with guidance
    - list/tuple: keep as list
    - Mapping: reject (not an array)
    - other scalars: auto-wrap into single-element list
    """
    if value is None:
        return None
    if isinstance(value, (str, bytes, bytearray)):
        raise ValueError(f"{name} must be an array (e.g. ['0x...', 123]); got a string/bytes.")
    if isinstance(value, Mapping):
        raise ValueError(f"{name} must be an array, not an object/map.")
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


# ---- chain / network


@server.tool(name="get_chain_info", title="Get Chain Info", description="Network details plus the current block number.")
def get_chain_info(network: Optional[str] = None) -> dict:
    return _get_service().get_chain_info(network)


@server.tool(name="get_supported_networks", title="List Supported Networks", description="List the networks this server can talk to.")
def get_supported_networks() -> dict:
    return {"networks": _get_service().list_networks()}


@server.tool(name="get_gas_price", title="Get Gas Price", description="Current gas price in wei and gwei.")
def get_gas_price(network: Optional[str] = None) -> dict:
    return _get_service().get_gas_price(network)


@server.tool(
    name="get_fee_data",
    title="Get Fee Data",
    description="Gas price, max fee (2x base fee, or gas price without a base fee) and a 0.002 native priority fee.",
)
def get_fee_data(network: Optional[str] = None) -> dict:
    return _get_service().get_fee_data(network)


@server.tool(name="get_block_number", title="Get Block Number", description="Latest block number.")
def get_block_number(network: Optional[str] = None) -> dict:
    return _get_service().get_block_number(network)


@server.tool(name="get_latest_block", title="Get Latest Block", description="Latest block header and transaction hashes.")
def get_latest_block(network: Optional[str] = None) -> dict:
    return _get_service().get_latest_block(network)


@server.tool(
    name="get_block_by_number",
    title="Get Block By Number",
    description="Fetch a block by number (decimal or 0x-hex). Set full_transactions for transaction bodies.",
)
def get_block_by_number(
    block_number: Union[int, str],
    full_transactions: bool = False,
    network: Optional[str] = None,
) -> dict:
    return _get_service().get_block_by_number(block_number, full_transactions, network)


@server.tool(name="get_pending_transactions", title="Get Pending Transactions", description="Transactions in the pending block (default limit 10).")
def get_pending_transactions(limit: Optional[int] = None, network: Optional[str] = None) -> dict:
    return _get_service().get_pending_transactions(limit, network)


# ---- accounts / tokens


@server.tool(name="get_balance", title="Get Native Balance", description="Native token balance of an address.")
def get_balance(address: str, network: Optional[str] = None) -> dict:
    return _get_service().get_balance(address, network)


@server.tool(name="get_erc20_balance", title="Get ERC20 Balance", description="ERC20 balance of an owner, formatted with the token's decimals.")
def get_erc20_balance(token_address: str, owner_address: str, network: Optional[str] = None) -> dict:
    return _get_service().get_erc20_balance(token_address, owner_address, network)


@server.tool(name="get_token_info", title="Get Token Info", description="ERC20 name, symbol, decimals and total supply.")
def get_token_info(token_address: str, network: Optional[str] = None) -> dict:
    return _get_service().get_token_info(token_address, network)


@server.tool(name="get_nft_info", title="Get NFT Info", description="ERC721 collection name/symbol, tokenURI and owner of a token id.")
def get_nft_info(token_address: str, token_id: Union[int, str], network: Optional[str] = None) -> dict:
    return _get_service().get_nft_info(token_address, token_id, network)


@server.tool(name="check_nft_ownership", title="Check NFT Ownership", description="Check whether an address owns a given ERC721 token id.")
def check_nft_ownership(
    token_address: str,
    token_id: Union[int, str],
    owner_address: str,
    network: Optional[str] = None,
) -> dict:
    return _get_service().check_nft_ownership(token_address, token_id, owner_address, network)


@server.tool(name="get_nft_balance", title="Get NFT Balance", description="Number of ERC721 tokens held by an address.")
def get_nft_balance(token_address: str, owner_address: str, network: Optional[str] = None) -> dict:
    return _get_service().get_nft_balance(token_address, owner_address, network)


@server.tool(name="is_contract", title="Is Contract", description="Whether an address has deployed bytecode.")
def is_contract(address: str, network: Optional[str] = None) -> dict:
    return _get_service().is_contract(address, network)


@server.tool(name="get_contract_bytecode", title="Get Contract Bytecode", description="Deployed bytecode of an address.")
def get_contract_bytecode(address: str, network: Optional[str] = None) -> dict:
    return _get_service().get_contract_bytecode(address, network)


@server.tool(name="get_transaction_count", title="Get Transaction Count", description="Nonce of an address at a block (default latest).")
def get_transaction_count(
    address: str,
    block: Optional[Union[int, str]] = None,
    network: Optional[str] = None,
) -> dict:
    return _get_service().get_transaction_count(address, block, network)


# ---- transactions


@server.tool(name="get_transaction", title="Get Transaction", description="Fetch a transaction by hash.")
def get_transaction(tx_hash: str, network: Optional[str] = None) -> dict:
    return _get_service().get_transaction(tx_hash, network)


@server.tool(name="get_transaction_receipt", title="Get Transaction Receipt", description="Fetch a transaction receipt by hash.")
def get_transaction_receipt(tx_hash: str, network: Optional[str] = None) -> dict:
    return _get_service().get_transaction_receipt(tx_hash, network)


@server.tool(
    name="estimate_gas",
    title="Estimate Gas",
    description="Estimate gas for a plain transaction. `value` is in native units (e.g. '0.1').",
)
def estimate_gas(
    to: str,
    value: Optional[str] = None,
    data: Optional[str] = None,
    from_address: Optional[str] = None,
    network: Optional[str] = None,
) -> dict:
    return _get_service().estimate_gas(to, value, data, from_address, network)


@server.tool(
    name="estimate_contract_gas",
    title="Estimate Contract Gas",
    description="Estimate gas for a contract function call. `args` must be an array.",
)
def estimate_contract_gas(
    contract_address: str,
    abi: Any,
    function_name: str,
    args: Optional[Any] = None,
    value: Optional[str] = None,
    from_address: Optional[str] = None,
    network: Optional[str] = None,
) -> dict:
    return _get_service().estimate_contract_gas(
        contract_address, abi, function_name, _normalize_array_param(args, "args"), value, from_address, network
    )


@server.tool(name="send_raw_transaction", title="Send Raw Transaction", description="Broadcast a signed raw transaction (hex).")
def send_raw_transaction(signed_transaction: str, network: Optional[str] = None) -> dict:
    return _get_service().send_raw_transaction(signed_transaction, network)


@server.tool(
    name="decode_transaction_input",
    title="Decode Transaction Input",
    description="Decode a transaction's calldata with an ABI; without one, return the selector and raw 32-byte words.",
)
def decode_transaction_input(tx_hash: str, abi: Optional[Any] = None, network: Optional[str] = None) -> dict:
    return _get_service().decode_transaction_input(tx_hash, abi, network)


@server.tool(name="get_transaction_fee", title="Get Transaction Fee", description="Fee paid by a mined transaction (gasUsed x effectiveGasPrice).")
def get_transaction_fee(tx_hash: str, network: Optional[str] = None) -> dict:
    return _get_service().get_transaction_fee(tx_hash, network)


@server.tool(
    name="monitor_transaction",
    title="Monitor Transaction",
    description="Poll until a transaction has the requested confirmations or timeout_ms elapses (status confirmed|timeout).",
)
def monitor_transaction(
    tx_hash: str,
    confirmations: int = 1,
    timeout_ms: int = DEFAULT_MONITOR_TIMEOUT_MS,
    network: Optional[str] = None,
) -> dict:
    return _get_service().monitor_transaction(tx_hash, confirmations, timeout_ms, network)


# ---- contracts


@server.tool(
    name="read_contract",
    title="Read Contract",
    description="Call a view function. `abi` is a JSON array (or string); `args` must be an array.",
)
def read_contract(
    contract_address: str,
    abi: Any,
    function_name: str,
    args: Optional[Any] = None,
    block: Optional[Union[int, str]] = None,
    network: Optional[str] = None,
) -> dict:
    return _get_service().read_contract(
        contract_address, abi, function_name, _normalize_array_param(args, "args"), block, network
    )


@server.tool(
    name="write_contract",
    title="Write Contract",
    description="Sign and send a contract function call with PRIVATE_KEY. `value` is in native units.",
)
def write_contract(
    contract_address: str,
    abi: Any,
    function_name: str,
    args: Optional[Any] = None,
    value: Optional[str] = None,
    network: Optional[str] = None,
) -> dict:
    return _get_service().write_contract(
        contract_address, abi, function_name, _normalize_array_param(args, "args"), value, network
    )


@server.tool(
    name="simulate_contract_call",
    title="Simulate Contract Call",
    description="Run a contract call via eth_call without sending it; reverts are reported as success=false.",
)
def simulate_contract_call(
    contract_address: str,
    abi: Any,
    function_name: str,
    args: Optional[Any] = None,
    value: Optional[str] = None,
    from_address: Optional[str] = None,
    network: Optional[str] = None,
) -> dict:
    return _get_service().simulate_contract_call(
        contract_address, abi, function_name, _normalize_array_param(args, "args"), value, from_address, network
    )


@server.tool(
    name="deploy_contract",
    title="Deploy Contract",
    description="Deploy bytecode with constructor `args` and wait for the receipt to report the contract address.",
)
def deploy_contract(
    bytecode: str,
    abi: Any,
    args: Optional[Any] = None,
    timeout_ms: int = DEFAULT_MONITOR_TIMEOUT_MS,
    network: Optional[str] = None,
) -> dict:
    return _get_service().deploy_contract(bytecode, abi, _normalize_array_param(args, "args"), timeout_ms, network)


@server.tool(
    name="get_contract_events",
    title="Get Contract Events",
    description=(
        "Logs emitted by a contract (default: last 1000 blocks), fetched in provider-sized chunks. "
        "Pass abi + event_name to filter and decode. At most 50 events are returned."
    ),
)
def get_contract_events(
    contract_address: str,
    from_block: Optional[Union[int, str]] = None,
    to_block: Optional[Union[int, str]] = None,
    abi: Optional[Any] = None,
    event_name: Optional[str] = None,
    network: Optional[str] = None,
) -> dict:
    return _get_service().get_contract_events(contract_address, from_block, to_block, abi, event_name, network)


@server.tool(
    name="multicall_contract",
    title="Multicall (aggregate)",
    description=(
        "Batch read calls with Multicall3 aggregate (all-or-nothing). Each call is "
        "{target, call_data} or {target, abi, function_name, args}."
    ),
)
def multicall_contract(calls: Any, network: Optional[str] = None) -> dict:
    return _get_service().multicall_contract(_normalize_array_param(calls, "calls"), network)


@server.tool(
    name="multicall_contract_3",
    title="Multicall (aggregate3)",
    description=(
        "Batch calls with Multicall3 aggregate3 (per-call success). Calls may carry a wei `value`. "
        "Falls back to aggregate on networks without aggregate3."
    ),
)
def multicall_contract_3(calls: Any, allow_failure: bool = True, network: Optional[str] = None) -> dict:
    return _get_service().multicall_contract_3(_normalize_array_param(calls, "calls"), allow_failure, network)


# ---- explorer


@server.tool(name="get_contract_abi", title="Get Contract ABI", description="Verified ABI from the network's explorer.")
def get_contract_abi(contract_address: str, network: Optional[str] = None) -> dict:
    return _get_service().get_contract_abi(contract_address, network)


@server.tool(name="get_contract_source", title="Get Contract Source", description="Verified source code from the network's explorer.")
def get_contract_source(contract_address: str, network: Optional[str] = None) -> dict:
    return _get_service().get_contract_source(contract_address, network)


@server.tool(
    name="verify_contract",
    title="Verify Contract",
    description=(
        "action=check: verification status (or the status of a submission `guid`). "
        "action=verify: submit single-file source; source_code, contract_name and compiler_version are required."
    ),
)
def verify_contract(
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
) -> dict:
    return _get_service().verify_contract(
        contract_address,
        action,
        source_code,
        contract_name,
        compiler_version,
        optimization,
        constructor_arguments,
        license_type,
        guid,
        network,
    )


@server.tool(
    name="get_address_transactions",
    title="Get Address Transactions",
    description="Transaction history from the explorer (page default 1, limit default 10 max 100, sort asc|desc default desc).",
)
def get_address_transactions(
    address: str,
    page: Optional[int] = None,
    limit: Optional[int] = None,
    sort: Optional[str] = None,
    network: Optional[str] = None,
) -> dict:
    return _get_service().get_address_transactions(address, page, limit, sort, network)


# ---- writes


@server.tool(name="transfer_native_token", title="Transfer Native Token", description="Send native tokens; `amount` in native units (e.g. '1.5').")
def transfer_native_token(to_address: str, amount: str, network: Optional[str] = None) -> dict:
    return _get_service().transfer_native_token(to_address, amount, network)


@server.tool(name="transfer_erc20_token", title="Transfer ERC20 Token", description="Send ERC20 tokens; `amount` in token units.")
def transfer_erc20_token(token_address: str, to_address: str, amount: str, network: Optional[str] = None) -> dict:
    return _get_service().transfer_erc20_token(token_address, to_address, amount, network)


@server.tool(
    name="batch_transfer_native",
    title="Batch Transfer Native",
    description=(
        "Send several native transfers in order. `transfers` is an array of {to, amount}. "
        "With continue_on_error=false the batch stops at the first failure."
    ),
)
def batch_transfer_native(transfers: Any, continue_on_error: bool = True, network: Optional[str] = None) -> dict:
    return _get_service().batch_transfer_native(_normalize_array_param(transfers, "transfers"), continue_on_error, network)


@server.tool(
    name="batch_transfer_erc20",
    title="Batch Transfer ERC20",
    description="Send several ERC20 transfers of one token in order. `transfers` is an array of {to, amount}.",
)
def batch_transfer_erc20(
    token_address: str,
    transfers: Any,
    continue_on_error: bool = True,
    network: Optional[str] = None,
) -> dict:
    return _get_service().batch_transfer_erc20(
        token_address, _normalize_array_param(transfers, "transfers"), continue_on_error, network
    )


@server.tool(
    name="batch_write_contract",
    title="Batch Write Contract",
    description="Execute several contract writes in order. Each operation is {contract_address, abi, function_name, args (array), value? (wei)}.",
)
def batch_write_contract(operations: Any, continue_on_error: bool = True, network: Optional[str] = None) -> dict:
    return _get_service().batch_write_contract(
        _normalize_array_param(operations, "operations"), continue_on_error, network
    )


# ---- analytics


@server.tool(
    name="get_transaction_volume",
    title="Get Transaction Volume",
    description="Sum of native value moved in a block range (at most 1000 blocks); unreadable blocks are skipped.",
)
def get_transaction_volume(
    from_block: Union[int, str],
    to_block: Union[int, str],
    network: Optional[str] = None,
) -> dict:
    return _get_service().get_transaction_volume(from_block, to_block, network)


@server.tool(
    name="get_erc20_transaction_volume",
    title="Get ERC20 Transaction Volume",
    description="Sum of ERC20 Transfer values in a block range; logs are fetched in chunks and unreadable chunks are skipped.",
)
def get_erc20_transaction_volume(
    token_address: str,
    from_block: Union[int, str],
    to_block: Union[int, str],
    network: Optional[str] = None,
) -> dict:
    return _get_service().get_erc20_transaction_volume(token_address, from_block, to_block, network)


@server.tool(
    name="get_top_holders",
    title="Get Top Native Holders",
    description="Rank addresses active in a recent block window (default last 100 blocks) by native balance. limit 1-50.",
)
def get_top_holders(
    limit: int = 10,
    from_block: Optional[Union[int, str]] = None,
    to_block: Optional[Union[int, str]] = None,
    network: Optional[str] = None,
) -> dict:
    return _get_service().get_top_holders(limit, from_block, to_block, network)


@server.tool(
    name="get_erc20_top_holders",
    title="Get Top ERC20 Holders",
    description=(
        "Rank holders by balance deltas reconstructed from Transfer events (default last 10000 blocks). "
        "limit 1-100. Deltas only reflect the scanned range."
    ),
)
def get_erc20_top_holders(
    token_address: str,
    limit: int = 10,
    from_block: Optional[Union[int, str]] = None,
    to_block: Optional[Union[int, str]] = None,
    network: Optional[str] = None,
) -> dict:
    return _get_service().get_erc20_top_holders(token_address, limit, from_block, to_block, network)


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the Somnia MCP server.")
    parser.add_argument(
        "--transport",
        choices=["stdio", "sse", "streamable-http"],
        default="stdio",
        help="Transport protocol for MCP.",
    )
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host for SSE/HTTP transports.",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port for SSE/HTTP transports.",
    )
    parser.add_argument(
        "--mount-path",
        default="/",
        help="Mount path for SSE transport (only when transport=sse).",
    )
    args = parser.parse_args()

    cfg = load_config()
    setup_logging(cfg.log_level, cfg.log_file)
    log.info("starting somnia-mcp (%s, default network %s)", args.transport, cfg.network)

    # FastMCP uses host/port only for SSE/HTTP transports; stdio ignores them.
    server.settings.host = args.host
    server.settings.port = args.port

    if args.transport == "sse":
        server.run(transport="sse", mount_path=args.mount_path)
    else:
        server.run(transport=args.transport)


if __name__ == "__main__":
    main()
