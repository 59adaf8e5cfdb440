"""
Node Integration Layer.

Provides abstracted access to a Flow access node and the seal waiter
built on top of it.
"""

from flowtooling.node.grpc_api import GrpcAccessNode
from flowtooling.node.interface import AccessNode, TransactionResult, TransactionStatus
from flowtooling.node.rest import RestAccessNode
from flowtooling.node.seal import wait_for_seal

__all__ = [
    "AccessNode",
    "GrpcAccessNode",
    "RestAccessNode",
    "TransactionResult",
    "TransactionStatus",
    "wait_for_seal",
]
