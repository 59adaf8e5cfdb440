"""
Flow Access REST API adapter for node integration.

Provides blockchain access via the access node's HTTP API.
"""

import base64
from typing import Any, Dict, List, Optional, Sequence, Type

import httpx
import structlog
from flow_py_sdk import AccountKey, Tx, cadence
from flow_py_sdk.exceptions import PySDKError
from flow_py_sdk.proto.flow import entities

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
from flowtooling.tx.signer import parse_hash_algo, parse_sign_algo

logger = structlog.get_logger(__name__)


class RestAccessNode(AccessNode):
    """
    Flow Access REST API adapter.

    Implements the AccessNode interface using the access node's /v1 HTTP API.
    """

    def __init__(
        self,
        config: Optional[ToolingConfig] = None,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the REST adapter.

        Args:
            config: Tooling configuration. Uses global config if not provided.
            base_url: Override the access node URL from the configuration
            transport: Custom httpx transport (e.g. httpx.MockTransport in tests)
        """
        self.config = config or get_config()
        self.base_url = (base_url or self.config.access_url).rstrip("/")
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self.chain_id: Optional[str] = None

    async def connect(self) -> None:
        """Establish connection (create HTTP client)."""
        if self._client is not None:
            return

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Content-Type": "application/json"},
            timeout=self.config.request_timeout_seconds,
            transport=self._transport,
        )

        # Test connection
        try:
            response = await self._client.get("/network/parameters")
        except httpx.RequestError as e:
            await self.disconnect()
            raise NodeConnectionError(f"Failed to connect to access node at {self.base_url}: {e}") from e

        if response.status_code != 200:
            await self.disconnect()
            raise NodeConnectionError(f"Access node health check failed: {response.text}")

        try:
            self.chain_id = response.json().get("chain_id")
        except (ValueError, AttributeError) as e:
            await self.disconnect()
            raise NodeConnectionError(f"Access node health check returned an invalid body: {response.text}") from e

        logger.info("access_node_connected", base_url=self.base_url, chain_id=self.chain_id)

    async def disconnect(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("access_node_disconnected")

    async def _request(
        self,
        method: str,
        path: str,
        error_cls: Type[NodeConnectionError] = NodeConnectionError,
        **kwargs,
    ) -> Any:
        """Make an API request, returning decoded JSON or None on 404."""
        if not self._client:
            await self.connect()

        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.RequestError as e:
            logger.error("access_node_request_error", path=path, error=str(e))
            raise NodeConnectionError(f"Access node request failed: {e}") from e

        if response.status_code == 404:
            return None

        if response.status_code != 200:
            error_msg = _error_message(response)
            logger.error(
                "access_node_request_failed",
                path=path,
                status=response.status_code,
                error=error_msg,
            )
            raise error_cls(f"Access node API error: {error_msg}")

        return response.json()

    async def get_latest_block_header(self, sealed: bool = True) -> BlockHeader:
        """Get the latest sealed (or finalized) block header."""
        data = await self._request(
            "GET",
            "/blocks",
            params={"height": "sealed" if sealed else "final"},
        )
        if not data:
            raise NodeConnectionError("Access node returned no latest block")

        header = data[0]["header"]
        return BlockHeader(
            id=header["id"],
            parent_id=header.get("parent_id", ""),
            height=int(header["height"]),
            timestamp=header.get("timestamp"),
        )

    async def get_account(self, address: str) -> Account:
        """Get an account with its keys and contracts."""
        address = normalize_address(address)
        data = await self._request(
            "GET",
            f"/accounts/{address}",
            params={"expand": "keys,contracts"},
        )
        if data is None:
            raise AccountNotFoundError(f"Could not get account for address: {address}")

        keys = [_parse_key(key) for key in data.get("keys") or []]
        contracts = {
            name: base64.b64decode(code).decode("utf-8")
            for name, code in (data.get("contracts") or {}).items()
        }

        return Account(
            address=normalize_address(data["address"]),
            balance=int(data.get("balance", 0)),
            keys=keys,
            contracts=contracts,
        )

    async def send_transaction(self, tx: Tx) -> str:
        """Sign and submit a transaction."""
        data = await self._request(
            "POST",
            "/transactions",
            error_cls=TransactionSubmitError,
            json=to_rest_body(tx.to_signed_grpc()),
        )
        if not data or not data.get("id"):
            raise TransactionSubmitError("No transaction id returned")

        tx_id = data["id"]
        logger.info("tx_submitted", tx_id=tx_id)
        return tx_id

    async def get_transaction_result(self, tx_id: str) -> TransactionResult:
        """Get the current transaction result."""
        data = await self._request("GET", f"/transaction_results/{tx_id}")
        if data is None:
            # The node has not indexed the transaction yet
            return TransactionResult(status=TransactionStatus.UNKNOWN, transaction_id=tx_id)

        return TransactionResult(
            status=TransactionStatus.parse(data.get("status")),
            error_message=data.get("error_message") or "",
            status_code=int(data.get("status_code") or 0),
            events=[_parse_event(e) for e in data.get("events") or []],
            block_id=data.get("block_id") or None,
            transaction_id=tx_id,
        )

    async def execute_script(
        self,
        code: bytes,
        arguments: Sequence[cadence.Value] = (),
    ) -> Optional[cadence.Value]:
        """Execute a script at the latest sealed block."""
        data = await self._request(
            "POST",
            "/scripts",
            error_cls=ScriptExecutionError,
            params={"block_height": "sealed"},
            json={
                "script": base64.b64encode(code).decode("ascii"),
                "arguments": [_b64(arg) for arg in cadence.encode_arguments(list(arguments))],
            },
        )
        if data is None:
            raise ScriptExecutionError("Access node returned no script result")

        return decode_value(base64.b64decode(data))


def _parse_event(data: Dict[str, Any]) -> Event:
    payload = data.get("payload")
    decoded = None
    if payload:
        try:
            decoded = decode_value(base64.b64decode(payload))
        except (ValueError, TypeError, KeyError, AttributeError, PySDKError) as e:
            logger.warning("event_payload_decode_error", type=data.get("type"), error=str(e))

    return Event(
        type=data["type"],
        transaction_id=data.get("transaction_id", ""),
        transaction_index=int(data.get("transaction_index") or 0),
        event_index=int(data.get("event_index") or 0),
        payload=decoded,
    )


def _parse_key(data: Dict[str, Any]) -> AccountKey:
    key = AccountKey(
        public_key=bytes.fromhex(_strip_hex_prefix(data["public_key"])),
        sign_algo=parse_sign_algo(data["signing_algorithm"]),
        hash_algo=parse_hash_algo(data["hashing_algorithm"]),
        weight=int(data["weight"]),
    )
    key.index = int(data["index"])
    key.sequence_number = int(data["sequence_number"])
    key.revoked = bool(data.get("revoked", False))
    return key


def to_rest_body(signed: entities.Transaction) -> Dict[str, Any]:
    """Render a signed transaction as the JSON body of POST /transactions."""

    def render_signatures(signatures: List[entities.TransactionSignature]) -> List[Dict[str, str]]:
        return [
            {
                "address": sig.address.hex(),
                "key_index": str(sig.key_id),
                "signature": _b64(sig.signature),
            }
            for sig in signatures
        ]

    return {
        "script": _b64(signed.script),
        "arguments": [_b64(arg) for arg in signed.arguments],
        "reference_block_id": signed.reference_block_id.hex(),
        "gas_limit": str(signed.gas_limit),
        "payer": signed.payer.hex(),
        "proposal_key": {
            "address": signed.proposal_key.address.hex(),
            "key_index": str(signed.proposal_key.key_id),
            "sequence_number": str(signed.proposal_key.sequence_number),
        },
        "authorizers": [a.hex() for a in signed.authorizers],
        "payload_signatures": render_signatures(signed.payload_signatures),
        "envelope_signatures": render_signatures(signed.envelope_signatures),
    }


def _error_message(response: httpx.Response) -> str:
    try:
        return response.json().get("message") or response.text
    except (ValueError, AttributeError):
        return response.text


def _strip_hex_prefix(value: str) -> str:
    return value[2:] if value.startswith("0x") else value


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")
