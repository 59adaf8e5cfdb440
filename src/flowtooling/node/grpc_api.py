"""
Flow Access gRPC adapter for node integration.

Provides blockchain access via flow_py_sdk's AccessAPI client.
"""

from typing import Callable, Optional, Sequence

import structlog
from flow_py_sdk import AccessAPI, Tx, cadence, flow_client
from flow_py_sdk.client import entities
from flow_py_sdk.exceptions import PySDKError
from grpclib.const import Status
from grpclib.exceptions import GRPCError, StreamTerminatedError

from flowtooling.cadence import decode_value, normalize_address
from flowtooling.config import ToolingConfig, get_config
from flowtooling.node.interface import (
    AccessNode,
    Account,
    AccountNotFoundError,
    BlockHeader,
    Event,
    NodeConnectionError,
    ScriptExecutionError,
    TransactionResult,
    TransactionStatus,
    TransactionSubmitError,
)

logger = structlog.get_logger(__name__)

ClientFactory = Callable[..., AccessAPI]

_TRANSPORT_ERRORS = (GRPCError, StreamTerminatedError, OSError)


class GrpcAccessNode(AccessNode):
    """
    Flow Access gRPC adapter.

    Implements the AccessNode interface on top of flow_py_sdk's flow_client.
    """

    def __init__(
        self,
        config: Optional[ToolingConfig] = None,
        host: Optional[str] = None,
        port: Optional[int] = None,
        client_factory: ClientFactory = flow_client,
    ):
        """
        Initialize the gRPC adapter.

        Args:
            config: Tooling configuration. Uses global config if not provided.
            host: Override the access node host from the configuration
            port: Override the access node port from the configuration
            client_factory: Creates the AccessAPI client (flow_client by default)
        """
        self.config = config or get_config()
        default_host, default_port = self.config.grpc_address
        self.host = host or default_host
        self.port = port or default_port
        self._client_factory = client_factory
        self._client: Optional[AccessAPI] = None
        self.chain_id: Optional[str] = None

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    async def connect(self) -> None:
        """Open the channel and check the node answers."""
        if self._client is not None:
            return

        self._client = self._client_factory(
            host=self.host,
            port=self.port,
            timeout=self.config.request_timeout_seconds,
        )

        try:
            parameters = await self._client.get_network_parameters()
        except _TRANSPORT_ERRORS as e:
            await self.disconnect()
            raise NodeConnectionError(f"Failed to connect to access node at {self.address}: {e}") from e

        self.chain_id = parameters.chain_id
        logger.info("access_node_connected", address=self.address, chain_id=self.chain_id)

    async def disconnect(self) -> None:
        """Close the channel."""
        if self._client:
            self._client.channel.close()
            self._client = None
            logger.info("access_node_disconnected")

    async def _api(self) -> AccessAPI:
        if not self._client:
            await self.connect()
        return self._client

    async def get_latest_block_header(self, sealed: bool = True) -> BlockHeader:
        """Get the latest sealed (or finalized) block header."""
        client = await self._api()
        try:
            header = await client.get_latest_block_header(is_sealed=sealed)
        except _TRANSPORT_ERRORS as e:
            logger.error("access_node_request_error", call="get_latest_block_header", error=str(e))
            raise NodeConnectionError(f"Access node request failed: {e}") from e

        return BlockHeader(
            id=header.id.hex(),
            parent_id=header.parent_id.hex(),
            height=header.height,
            timestamp=str(header.timestamp) if header.timestamp else None,
        )

    async def get_account(self, address: str) -> Account:
        """Get an account with its keys and contracts."""
        address = normalize_address(address)
        client = await self._api()
        try:
            account = await client.get_account_at_latest_block(address=bytes.fromhex(address))
        except GRPCError as e:
            if e.status == Status.NOT_FOUND:
                raise AccountNotFoundError(f"Could not get account for address: {address}") from e
            logger.error("access_node_request_error", call="get_account", error=str(e))
            raise NodeConnectionError(f"Access node request failed: {e}") from e
        except (StreamTerminatedError, OSError) as e:
            raise NodeConnectionError(f"Access node request failed: {e}") from e

        return Account(
            address=account.address.hex(),
            balance=account.balance,
            keys=list(account.keys),
            contracts={
                name: code.decode("utf-8") if isinstance(code, bytes) else code
                for name, code in (account.contracts or {}).items()
            },
        )

    async def send_transaction(self, tx: Tx) -> str:
        """Sign and submit a transaction."""
        client = await self._api()
        try:
            response = await client.send_transaction(transaction=tx.to_signed_grpc())
        except GRPCError as e:
            logger.error("tx_submit_failed", status=e.status.name, error=e.message)
            raise TransactionSubmitError(f"Access node API error: {e.message}", error_code=e.status.name) from e
        except (StreamTerminatedError, OSError) as e:
            raise NodeConnectionError(f"Access node request failed: {e}") from e

        tx_id = response.id.hex()
        logger.info("tx_submitted", tx_id=tx_id)
        return tx_id

    async def get_transaction_result(self, tx_id: str) -> TransactionResult:
        """Get the current transaction result."""
        client = await self._api()
        try:
            result = await client.get_transaction_result(id=bytes.fromhex(tx_id))
        except GRPCError as e:
            if e.status == Status.NOT_FOUND:
                # The node has not indexed the transaction yet
                return TransactionResult(status=TransactionStatus.UNKNOWN, transaction_id=tx_id)
            raise NodeConnectionError(f"Access node request failed: {e}") from e
        except (StreamTerminatedError, OSError) as e:
            raise NodeConnectionError(f"Access node request failed: {e}") from e

        return TransactionResult(
            status=TransactionStatus.parse(int(result.status)),
            error_message=result.error_message or "",
            status_code=result.status_code,
            events=[_convert_event(e) for e in result.events],
            transaction_id=tx_id,
        )

    async def execute_script(
        self,
        code: bytes,
        arguments: Sequence[cadence.Value] = (),
    ) -> Optional[cadence.Value]:
        """Execute a script at the latest sealed block."""
        client = await self._api()
        try:
            raw = await client.execute_script_at_latest_block(
                script=code,
                arguments=cadence.encode_arguments(list(arguments)),
            )
        except GRPCError as e:
            logger.error("script_execution_failed", status=e.status.name, error=e.message)
            raise ScriptExecutionError(f"Access node API error: {e.message}") from e
        except (StreamTerminatedError, OSError) as e:
            raise NodeConnectionError(f"Access node request failed: {e}") from e

        if not raw:
            raise ScriptExecutionError("Access node returned no script result")
        return decode_value(raw)


def _convert_event(event: entities.Event) -> Event:
    payload = getattr(event, "value", None)
    if payload is None and event.payload:
        try:
            payload = decode_value(event.payload)
        except (ValueError, TypeError, KeyError, AttributeError, PySDKError) as e:
            logger.warning("event_payload_decode_error", type=event.type, error=str(e))

    return Event(
        type=event.type,
        transaction_id=event.transaction_id.hex(),
        transaction_index=event.transaction_index,
        event_index=event.event_index,
        payload=payload if isinstance(payload, cadence.Value) else None,
    )
