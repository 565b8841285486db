#!/usr/bin/env python3
import argparse
import asyncio
import json
import logging
import sys

from .core.runtime import StarknetRuntime
from .utils.config_manager import ConfigManager
from .utils.exceptions import ArgumentShapeError, StarknetDevkitError
from .utils.logging import setup_logging

LOG = logging.getLogger(__name__)


def _parse_inputs(raw: str):
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise ArgumentShapeError(f"--inputs is not valid JSON: {e}", cause=e)


def _print_json(data) -> None:
    print(json.dumps(data, indent=2, default=str))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="starknet-devkit",
        description="Deploy, invoke and call StarkNet contracts"
    )
    parser.add_argument("--config", default=None,
                        help="Path to a YAML or JSON configuration file")
    parser.add_argument("--network", default=None,
                        help="Network name, overrides the configuration")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="Logging level")
    parser.add_argument("--log-file", default=None,
                        help="Path to log file")

    subparsers = parser.add_subparsers(dest="command", required=True)

    deploy = subparsers.add_parser("deploy", help="Deploy a compiled contract")
    deploy.add_argument("--contract", required=True,
                        help="Contract source path, relative to the artifacts directory")
    deploy.add_argument("--inputs", default=None,
                        help="Constructor arguments as a JSON object")
    deploy.add_argument("--signature", nargs="+", default=None,
                        help="Signature elements")

    for name, help_text in (("invoke", "Invoke a contract function"),
                            ("call", "Call a contract function")):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("--contract", required=True,
                         help="Contract source path, relative to the artifacts directory")
        sub.add_argument("--address", required=True, help="Deployed contract address")
        sub.add_argument("--function", required=True, help="Function name")
        sub.add_argument("--inputs", default=None,
                         help="Function arguments as a JSON object")
        sub.add_argument("--signature", nargs="+", default=None,
                         help="Signature elements")

    tx_status = subparsers.add_parser("tx-status", help="Print the status of a transaction")
    tx_status.add_argument("--hash", required=True, help="Transaction hash")

    return parser


async def run_command(args: argparse.Namespace) -> int:
    """Execute one parsed command and print its result"""
    config = ConfigManager().load(args.config, network=args.network)

    async with StarknetRuntime(config) as runtime:
        if args.command == "deploy":
            factory = runtime.get_contract_factory(args.contract)
            inputs = _parse_inputs(args.inputs)
            contract = await factory.deploy(inputs, args.signature)
            _print_json({
                "address": contract.address,
                "transaction_hash": contract.deploy_tx.tx_hash,
                "network": config.network.name,
            })

        elif args.command == "invoke":
            contract = runtime.get_contract_at(args.contract, args.address)
            tx = await contract.invoke(args.function, _parse_inputs(args.inputs), args.signature)
            _print_json({"transaction_hash": tx.tx_hash})

        elif args.command == "call":
            contract = runtime.get_contract_at(args.contract, args.address)
            result = await contract.call(args.function, _parse_inputs(args.inputs), args.signature)
            _print_json(result)

        elif args.command == "tx-status":
            status = await runtime.get_transaction_status(args.hash)
            _print_json({
                "tx_status": status.tx_status,
                "block_hash": status.block_hash,
                **status.extra,
            })

    return 0


async def async_main(argv=None) -> int:
    """Main execution flow"""
    args = build_parser().parse_args(argv)

    # Setup logging
    setup_logging(args.log_level, args.log_file)

    try:
        return await run_command(args)
    except StarknetDevkitError as e:
        LOG.error(str(e))
        _print_json(e.to_dict())
        return 1


def main(argv=None) -> int:
    return asyncio.run(async_main(argv))


if __name__ == "__main__":
    sys.exit(main())
