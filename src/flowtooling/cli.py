"""
Command-line interface for Flow tooling.

Provides commands for inspecting accounts and for deploying, sending and
running Cadence code from the current project.
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

import structlog
from rich.console import Console
from rich.table import Table

from flowtooling import __version__
from flowtooling.cadence import parse_argument
from flowtooling.config import NetworkType, NodeProvider, ToolingConfig, set_config
from flowtooling.core.tooling import FlowTooling
from flowtooling.errors import FlowToolingError
from flowtooling.node.interface import Account
from flowtooling.node.grpc_api import GrpcAccessNode
from flowtooling.node.rest import RestAccessNode

logger = structlog.get_logger(__name__)

console = Console()


def setup_logging(level: str = "INFO", json_format: bool = False) -> None:
    """Configure structured logging."""
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer() if json_format
            else structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, level.upper()),
        stream=sys.stdout,
    )


def _add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--network",
        choices=[n.value for n in NetworkType],
        default="local",
        help="Flow network (default: local emulator)",
    )
    parser.add_argument(
        "--provider",
        choices=[p.value for p in NodeProvider],
        default="rest",
        help="Access node transport (default: rest)",
    )
    parser.add_argument(
        "--access-url",
        help="Access node REST URL, overrides the network default",
    )
    parser.add_argument(
        "--grpc-host",
        help="Access node gRPC host, overrides the network default",
    )
    parser.add_argument(
        "--grpc-port",
        type=int,
        help="Access node gRPC port, overrides the network default",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--log-json",
        action="store_true",
        help="Output logs in JSON format",
    )


def _add_project_arguments(parser: argparse.ArgumentParser) -> None:
    _add_common_arguments(parser)
    parser.add_argument(
        "--path",
        default=".",
        help="Project directory holding flow.json, wallet.json and the Cadence sources (default: .)",
    )
    parser.add_argument(
        "--service-file",
        help="Service account file (default: <path>/flow.json)",
    )
    parser.add_argument(
        "--gas-limit",
        type=int,
        default=9999,
        help="Gas limit per transaction (default: 9999)",
    )
    parser.add_argument(
        "--seal-timeout",
        type=float,
        help="Seconds to wait for a transaction to seal (default: wait forever)",
    )


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="flow-tooling",
        description="Deploy contracts, send transactions and run scripts against a Flow access node",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Account info
    info_parser = subparsers.add_parser("account-info", help="Show balance, keys and code of an account")
    info_parser.add_argument("address", help="Account address, with or without 0x")
    _add_common_arguments(info_parser)

    # Create account
    create_parser_ = subparsers.add_parser("create-account", help="Create a wallet account on chain")
    create_parser_.add_argument("name", help="Account name in wallet.json")
    _add_project_arguments(create_parser_)

    # Deploy
    deploy_parser = subparsers.add_parser("deploy", help="Deploy contracts/<name>.cdc to the wallet account <name>")
    deploy_parser.add_argument("name", help="Contract and account name")
    _add_project_arguments(deploy_parser)

    # Send transaction
    send_parser = subparsers.add_parser("send", help="Send transactions/<filename>.cdc")
    send_parser.add_argument("filename", help="Transaction file name without .cdc")
    send_parser.add_argument(
        "--signer",
        action="append",
        required=True,
        help="Signing wallet account; repeat for multiple signers, the first one pays",
    )
    send_parser.add_argument(
        "--arg",
        action="append",
        default=[],
        help='JSON-Cadence argument, e.g. \'{"type": "String", "value": "hi"}\'',
    )
    _add_project_arguments(send_parser)

    # Run script
    script_parser = subparsers.add_parser("run-script", help="Run scripts/<filename>.cdc")
    script_parser.add_argument("filename", help="Script file name without .cdc")
    script_parser.add_argument(
        "--arg",
        action="append",
        default=[],
        help="JSON-Cadence argument",
    )
    _add_project_arguments(script_parser)

    return parser


def build_config(args: argparse.Namespace) -> ToolingConfig:
    """Create the configuration for a parsed command line."""
    config = ToolingConfig(
        network=NetworkType(args.network),
        node_provider=NodeProvider(args.provider),
        access_node_url=args.access_url,
        access_node_grpc_host=args.grpc_host,
        access_node_grpc_port=args.grpc_port,
        base_path=getattr(args, "path", "."),
        service_account_file=getattr(args, "service_file", None),
        gas_limit=getattr(args, "gas_limit", 9999),
        seal_timeout_seconds=getattr(args, "seal_timeout", None),
        log_level=args.log_level,
        log_json=args.log_json,
    )
    set_config(config)
    return config


def key_table(account: Account) -> Table:
    """Table of the account's keys, one row per key."""
    table = Table(show_header=True)
    table.add_column("Key", style="cyan")
    table.add_column("Weight")
    table.add_column("SigAlgo")
    table.add_column("HashAlgo")
    table.add_column("PublicKey", style="dim", overflow="fold")

    for key in account.keys:
        table.add_row(
            str(key.index),
            str(key.weight),
            key.sign_algo.name,
            key.hash_algo.name,
            key.public_key.hex(),
        )
    return table


def print_account(account: Account, out: Optional[Console] = None) -> None:
    """Render an account the way account-info prints it."""
    out = out or console
    out.print(f"Account: 0x{account.address}", highlight=False)
    out.print(f"Balance: {account.balance}", highlight=False)
    out.print()
    out.print(key_table(account))
    out.print()

    if account.contracts:
        for name, code in account.contracts.items():
            out.print(f"[bold]Code ({name}):[/bold]")
            out.print(code, markup=False, highlight=False)
    else:
        out.print("No code deployed")


async def account_info(args: argparse.Namespace) -> None:
    """Print balance, keys and code of an account."""
    config = build_config(args)
    node_cls = GrpcAccessNode if config.node_provider == NodeProvider.GRPC else RestAccessNode
    async with node_cls(config) as node:
        account = await node.get_account(args.address)
    print_account(account)


async def create_account(args: argparse.Namespace) -> None:
    config = build_config(args)
    async with FlowTooling.from_config(config) as flow:
        address = await flow.create_account(args.name)
    print(f"Account created: {args.name} at 0x{address}")


async def deploy_contract(args: argparse.Namespace) -> None:
    config = build_config(args)
    async with FlowTooling.from_config(config) as flow:
        address = await flow.deploy_contract(args.name)
    print(f"Contract: {args.name} successfully deployed at 0x{address}")


async def send_transaction(args: argparse.Namespace) -> None:
    config = build_config(args)
    arguments = [parse_argument(a) for a in args.arg]
    async with FlowTooling.from_config(config) as flow:
        result = await flow.send_transaction(args.filename, *args.signer, arguments=arguments)
    print(f"Transaction {args.filename} sealed with {len(result.events)} event(s)")


async def run_script(args: argparse.Namespace) -> None:
    config = build_config(args)
    arguments = [parse_argument(a) for a in args.arg]
    async with FlowTooling.from_config(config) as flow:
        result = await flow.run_script_returns(args.filename, *arguments)
    print(result)


COMMANDS = {
    "account-info": account_info,
    "create-account": create_account,
    "deploy": deploy_contract,
    "send": send_transaction,
    "run-script": run_script,
}


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    # Setup logging
    setup_logging(args.log_level, args.log_json)

    try:
        asyncio.run(COMMANDS[args.command](args))
    except (FlowToolingError, FileNotFoundError, ValueError) as e:
        logger.error("command_failed", command=args.command, error=str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
