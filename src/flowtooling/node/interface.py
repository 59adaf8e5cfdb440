"""
Abstract interface for Flow access node integration.

Defines the contract for blockchain access that all node adapters must implement.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from flow_py_sdk import AccountKey, Tx, cadence

from flowtooling.errors import FlowToolingError, TransactionExecutionError


class TransactionStatus(str, Enum):
    """Lifecycle of a submitted transaction as reported by the access node."""
    UNKNOWN = "unknown"
    PENDING = "pending"
    FINALIZED = "finalized"
    EXECUTED = "executed"
    SEALED = "sealed"
    EXPIRED = "expired"

    @classmethod
    def parse(cls, value: Any) -> "TransactionStatus":
        """Parse a node status ("Sealed", "SEALED", 4, ...) leniently."""
        if isinstance(value, cls):
            return value
        if isinstance(value, int):
            ordered = list(cls)
            return ordered[value] if 0 <= value < len(ordered) else cls.UNKNOWN
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.UNKNOWN


@dataclass
class Event:
    """An event emitted while executing a transaction."""
    type: str
    transaction_id: str
    transaction_index: int
    event_index: int
    payload: Optional[cadence.Value] = None


@dataclass
class TransactionResult:
    """Snapshot of a transaction result owned by the access node."""
    status: TransactionStatus
    error_message: str = ""
    status_code: int = 0
    events: List[Event] = field(default_factory=list)
    block_id: Optional[str] = None
    transaction_id: Optional[str] = None

    @property
    def is_sealed(self) -> bool:
        return self.status == TransactionStatus.SEALED

    @property
    def error(self) -> Optional[TransactionExecutionError]:
        """Execution error embedded in the result, if the transaction failed."""
        if not self.error_message:
            return None
        return TransactionExecutionError(self.transaction_id or "", self.error_message)

    def events_of_type(self, event_type: str) -> List[Event]:
        return [e for e in self.events if e.type == event_type]


@dataclass
class BlockHeader:
    """Header of a block, used as the transaction reference block."""
    id: str
    parent_id: str
    height: int
    timestamp: Optional[str] = None


@dataclass
class Account:
    """On-chain account state."""
    address: str
    balance: int
    keys: List[AccountKey] = field(default_factory=list)
    contracts: Dict[str, str] = field(default_factory=dict)


class AccessNode(ABC):
    """
    Abstract interface for Flow access node access.

    This interface covers everything the tooling needs from the network:
    - Reference block lookup
    - Account (and account key) queries
    - Transaction submission and result queries
    - Read-only script execution
    """

    async def __aenter__(self) -> "AccessNode":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.disconnect()

    @abstractmethod
    async def connect(self) -> None:
        """
        Establish connection to the access node.

        Raises:
            NodeConnectionError: If connection cannot be established
        """
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Close connection to the access node."""
        pass

    @abstractmethod
    async def get_latest_block_header(self, sealed: bool = True) -> BlockHeader:
        """
        Get the latest block header.

        Args:
            sealed: Return the latest sealed block instead of the latest finalized one

        Returns:
            Header of the latest block
        """
        pass

    @abstractmethod
    async def get_account(self, address: str) -> Account:
        """
        Get an account at the latest sealed block.

        Args:
            address: Hex encoded account address, with or without 0x

        Returns:
            The account including its keys and contracts

        Raises:
            AccountNotFoundError: If no account exists at the address
        """
        pass

    @abstractmethod
    async def send_transaction(self, tx: Tx) -> str:
        """
        Submit a transaction to the network.

        The adapter renders the transaction with tx.to_signed_grpc(), which
        computes the registered signatures, so a Tx is submitted only once.

        Args:
            tx: Transaction with proposal key, payer and signers set

        Returns:
            Transaction id as hex

        Raises:
            TransactionSubmitError: If submission fails
        """
        pass

    @abstractmethod
    async def get_transaction_result(self, tx_id: str) -> TransactionResult:
        """
        Get the current result of a transaction.

        Args:
            tx_id: Transaction id as hex

        Returns:
            Current snapshot of the transaction result
        """
        pass

    @abstractmethod
    async def execute_script(
        self,
        code: bytes,
        arguments: Sequence[cadence.Value] = (),
    ) -> Optional[cadence.Value]:
        """
        Execute a read-only script at the latest sealed block.

        Args:
            code: Cadence source
            arguments: Script arguments

        Returns:
            The decoded script result

        Raises:
            ScriptExecutionError: If the script fails
        """
        pass

    async def get_account_key(self, address: str, key_index: int = 0) -> AccountKey:
        """Get a single key of an account, typically to read its sequence number."""
        account = await self.get_account(address)
        for key in account.keys:
            if key.index == key_index:
                return key
        raise AccountNotFoundError(f"Account {address} has no key with index {key_index}")


class NodeConnectionError(FlowToolingError):
    """Raised when talking to the access node fails."""
    pass


class AccountNotFoundError(NodeConnectionError):
    """Raised when an account or account key does not exist."""
    pass


class TransactionSubmitError(NodeConnectionError):
    """Raised when transaction submission fails."""

    def __init__(self, message: str, error_code: Optional[str] = None):
        super().__init__(message)
        self.error_code = error_code


class ScriptExecutionError(NodeConnectionError):
    """Raised when the access node rejects or fails a script."""
    pass
