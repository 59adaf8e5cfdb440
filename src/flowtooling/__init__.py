"""
Flow Tooling

A convenience layer for working with a Flow network from Python.
Creates accounts, deploys contracts, sends transactions and runs scripts
kept in a project's contracts/, transactions/ and scripts/ directories,
and waits for submitted transactions to be sealed.
"""

__version__ = "0.1.0"

from flowtooling.core.tooling import FlowTooling
from flowtooling.node.interface import TransactionResult, TransactionStatus
from flowtooling.node.seal import wait_for_seal

__all__ = [
    "FlowTooling",
    "TransactionResult",
    "TransactionStatus",
    "wait_for_seal",
]
