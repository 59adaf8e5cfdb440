#!/usr/bin/env python3
"""
Walk through the tooling against a local emulator.

Expects a project directory with flow.json (from `flow emulator init`),
a wallet.json holding the accounts "nft" and "ft", and these sources:

    contracts/nft.cdc, contracts/ft.cdc
    transactions/create_nft_collection.cdc
    transactions/arguments.cdc             (takes a String)
    transactions/argumentsWithAccount.cdc  (takes an Address)
    scripts/test.cdc                       (takes a String)
"""

import asyncio
import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from flow_py_sdk import cadence

from flowtooling.cli import setup_logging
from flowtooling.core.tooling import FlowTooling


async def run_example(project_dir: str):
    async with FlowTooling.localhost_with_parent_path(project_dir) as flow:
        # Deploy contracts
        await flow.deploy_contract("nft")
        await flow.deploy_contract("ft")

        # Send transaction
        await flow.send_transaction("create_nft_collection", "ft")

        await flow.send_transaction_with_arguments("arguments", "ft", cadence.String("argument1"))

        # Address argument looked up in wallet.json
        await flow.send_transaction_with_arguments("argumentsWithAccount", "ft", flow.find_address("nft"))

        # Run script
        result = await flow.run_script_returns("test", cadence.String("argument1"))
        print(f"Script returned: {result}")


def main():
    parser = argparse.ArgumentParser(description="Run the flow-tooling example against the emulator")
    parser.add_argument(
        "--path", "-p",
        default=".",
        help="Project directory (default: .)"
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (default: INFO)"
    )

    args = parser.parse_args()
    setup_logging(args.log_level)
    asyncio.run(run_example(args.path))


if __name__ == "__main__":
    main()
