import argparse
import json
import sys
from typing import Optional

from .config import load_config
from .log import setup_logging
from .service import ChainService


def _add_network(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--network",
        required=False,
        help="Optional network override. Defaults to NETWORK env or Somnia Testnet.",
    )


def _add_block_range(parser: argparse.ArgumentParser, required: bool) -> None:
    parser.add_argument("--from-block", required=required, help="Start block (decimal or 0x-hex).")
    parser.add_argument("--to-block", required=required, help="End block (decimal or 0x-hex).")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Somnia chain analytics from the command line.",
        allow_abbrev=False,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    holders_parser = subparsers.add_parser("top-holders", help="Rank native holders active in a block window")
    holders_parser.add_argument("--limit", type=int, default=10, help="Number of holders (1-50).")
    _add_block_range(holders_parser, required=False)
    _add_network(holders_parser)

    erc20_holders_parser = subparsers.add_parser(
        "erc20-top-holders", help="Rank ERC20 holders from Transfer events"
    )
    erc20_holders_parser.add_argument("--token", required=True, help="Token contract address (0x-prefixed).")
    erc20_holders_parser.add_argument("--limit", type=int, default=10, help="Number of holders (1-100).")
    _add_block_range(erc20_holders_parser, required=False)
    _add_network(erc20_holders_parser)

    volume_parser = subparsers.add_parser("tx-volume", help="Native value moved in a block range")
    _add_block_range(volume_parser, required=True)
    _add_network(volume_parser)

    erc20_volume_parser = subparsers.add_parser("erc20-volume", help="ERC20 Transfer volume in a block range")
    erc20_volume_parser.add_argument("--token", required=True, help="Token contract address (0x-prefixed).")
    _add_block_range(erc20_volume_parser, required=True)
    _add_network(erc20_volume_parser)

    fee_parser = subparsers.add_parser("tx-fee", help="Fee paid by a mined transaction")
    fee_parser.add_argument("--tx-hash", required=True, help="Transaction hash (0x-prefixed).")
    _add_network(fee_parser)

    events_parser = subparsers.add_parser("events", help="Logs emitted by a contract")
    events_parser.add_argument("--address", required=True, help="Contract address (0x-prefixed).")
    events_parser.add_argument("--abi-file", required=False, help="Path to a JSON ABI used to decode events.")
    events_parser.add_argument("--event", required=False, help="Event name to filter and decode (needs --abi-file).")
    _add_block_range(events_parser, required=False)
    _add_network(events_parser)

    return parser


def main(argv: Optional[list[str]] = None) -> None:
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config()
        setup_logging(config.log_level, config.log_file)
        service = ChainService(config)

        if args.command == "top-holders":
            result = service.get_top_holders(args.limit, args.from_block, args.to_block, args.network)
        elif args.command == "erc20-top-holders":
            result = service.get_erc20_top_holders(
                args.token, args.limit, args.from_block, args.to_block, args.network
            )
        elif args.command == "tx-volume":
            result = service.get_transaction_volume(args.from_block, args.to_block, args.network)
        elif args.command == "erc20-volume":
            result = service.get_erc20_transaction_volume(args.token, args.from_block, args.to_block, args.network)
        elif args.command == "tx-fee":
            result = service.get_transaction_fee(args.tx_hash, args.network)
        else:
            abi = None
            if args.abi_file:
                with open(args.abi_file, encoding="utf-8") as fh:
                    abi = json.load(fh)
            result = service.get_contract_events(
                args.address, args.from_block, args.to_block, abi, args.event, args.network
            )
        print(json.dumps(result, indent=2))
    except Exception as exc:  # pylint: disable=broad-except
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
