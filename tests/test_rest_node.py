"""
Tests for the Flow Access REST adapter.

The access node is replaced by an httpx.MockTransport routing on request path.
"""

import base64
import json
from typing import Any, Callable, Dict, List

import httpx
import pytest
from flow_py_sdk import HashAlgo, ProposalKey, SignAlgo, Tx, cadence

from flowtooling.node.interface import (
    AccountNotFoundError,
    NodeConnectionError,
    ScriptExecutionError,
    TransactionStatus,
    TransactionSubmitError,
)
from flowtooling.node.rest import RestAccessNode, to_rest_body
from flowtooling.tx.signer import signer_for

from conftest import ALICE_ADDRESS, ALICE_KEY, REFERENCE_BLOCK_ID, make_wallet_account

TX_ID = "cc" * 32


def b64(data: Any) -> str:
    if not isinstance(data, bytes):
        data = json.dumps(data).encode()
    return base64.b64encode(data).decode()


class FakeAccessNode:
    """Routes requests to handlers keyed by (method, path below /v1)."""

    def __init__(self):
        self.routes: Dict[tuple, Callable[[httpx.Request], httpx.Response]] = {
            ("GET", "/network/parameters"): lambda r: httpx.Response(200, json={"chain_id": "flow-emulator"}),
        }
        self.requests: List[httpx.Request] = []

    def route(self, method: str, path: str, status: int = 200, body: Any = None) -> None:
        self.routes[(method, path)] = lambda r: httpx.Response(status, json=body)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path[len("/v1"):]
        handler = self.routes.get((request.method, path))
        if handler is None:
            return httpx.Response(404, json={"code": 404, "message": "not found"})
        return handler(request)

    def node(self, config) -> RestAccessNode:
        return RestAccessNode(config, transport=httpx.MockTransport(self))


@pytest.fixture
def fake():
    return FakeAccessNode()


# =============================================================================
# Connection
# =============================================================================

class TestConnection:
    """Tests for connecting to the access node."""

    @pytest.mark.asyncio
    async def test_connect_reads_chain_id(self, fake, test_config):
        async with fake.node(test_config) as node:
            assert node.chain_id == "flow-emulator"
        assert node._client is None

    @pytest.mark.asyncio
    async def test_connect_failure(self, fake, test_config):
        fake.route("GET", "/network/parameters", status=503, body={"message": "unavailable"})
        node = fake.node(test_config)

        with pytest.raises(NodeConnectionError, match="health check failed"):
            await node.connect()
        assert node._client is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("response", [
        httpx.Response(200, text="<html>maintenance</html>"),
        httpx.Response(200, json=["flow-emulator"]),
    ])
    async def test_connect_invalid_health_body(self, fake, test_config, response):
        """A 200 health check without a JSON object closes the client."""
        fake.routes[("GET", "/network/parameters")] = lambda r: response
        node = fake.node(test_config)

        with pytest.raises(NodeConnectionError, match="invalid body"):
            await node.connect()
        assert node._client is None
        assert node.chain_id is None

    @pytest.mark.asyncio
    async def test_request_error(self, test_config):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        node = RestAccessNode(test_config, transport=httpx.MockTransport(refuse))

        with pytest.raises(NodeConnectionError, match="Failed to connect"):
            await node.connect()

    def test_base_url_from_config(self, test_config):
        assert RestAccessNode(test_config).base_url == "http://flow.test/v1"
        assert RestAccessNode(test_config, base_url="http://other/v1/").base_url == "http://other/v1"


# =============================================================================
# Queries
# =============================================================================

class TestQueries:
    """Tests for blocks and accounts."""

    @pytest.mark.asyncio
    async def test_latest_sealed_block(self, fake, test_config):
        fake.route("GET", "/blocks", body=[{
            "header": {
                "id": REFERENCE_BLOCK_ID,
                "parent_id": "cd" * 32,
                "height": "120",
                "timestamp": "2024-01-01T00:00:00Z",
            }
        }])

        async with fake.node(test_config) as node:
            header = await node.get_latest_block_header()

        assert header.id == REFERENCE_BLOCK_ID
        assert header.height == 120
        assert fake.requests[-1].url.params["height"] == "sealed"

    @pytest.mark.asyncio
    async def test_latest_finalized_block(self, fake, test_config):
        fake.route("GET", "/blocks", body=[{"header": {"id": REFERENCE_BLOCK_ID, "height": "5"}}])

        async with fake.node(test_config) as node:
            await node.get_latest_block_header(sealed=False)

        assert fake.requests[-1].url.params["height"] == "final"

    @pytest.mark.asyncio
    async def test_get_account(self, fake, test_config):
        fake.route("GET", f"/accounts/{ALICE_ADDRESS}", body={
            "address": "0x" + ALICE_ADDRESS,
            "balance": "100000",
            "keys": [{
                "index": "0",
                "public_key": "0x" + "ab" * 64,
                "signing_algorithm": "ECDSA_P256",
                "hashing_algorithm": "SHA3_256",
                "weight": "1000",
                "sequence_number": "4",
                "revoked": False,
            }],
            "contracts": {"Alice": b64(b"access(all) contract Alice {}")},
        })

        async with fake.node(test_config) as node:
            account = await node.get_account("0x" + ALICE_ADDRESS)

        assert account.address == ALICE_ADDRESS
        assert account.balance == 100000
        key = account.keys[0]
        assert key.public_key == bytes.fromhex("ab" * 64)
        assert key.sign_algo == SignAlgo.ECDSA_P256
        assert key.hash_algo == HashAlgo.SHA3_256
        assert key.weight == 1000
        assert key.index == 0
        assert key.sequence_number == 4
        assert not key.revoked
        assert account.contracts == {"Alice": "access(all) contract Alice {}"}
        assert fake.requests[-1].url.params["expand"] == "keys,contracts"

    @pytest.mark.asyncio
    async def test_get_account_not_found(self, fake, test_config):
        async with fake.node(test_config) as node:
            with pytest.raises(AccountNotFoundError):
                await node.get_account(ALICE_ADDRESS)

    @pytest.mark.asyncio
    async def test_get_account_key_out_of_range(self, fake, test_config):
        fake.route("GET", f"/accounts/{ALICE_ADDRESS}", body={"address": ALICE_ADDRESS, "keys": []})

        async with fake.node(test_config) as node:
            with pytest.raises(AccountNotFoundError):
                await node.get_account_key(ALICE_ADDRESS, 0)


# =============================================================================
# Transactions
# =============================================================================

class TestTransactions:
    """Tests for submission and result polling."""

    def _transaction(self) -> Tx:
        alice = cadence.Address.from_hex(ALICE_ADDRESS)
        tx = Tx(
            code="transaction {}",
            reference_block_id=bytes.fromhex(REFERENCE_BLOCK_ID),
            payer=alice,
            proposal_key=ProposalKey(key_address=alice, key_id=0, key_sequence_number=1),
        )
        signer = signer_for(make_wallet_account(ALICE_ADDRESS, ALICE_KEY))
        return tx.add_authorizers(alice).with_envelope_signature(alice, 0, signer)

    @pytest.mark.asyncio
    async def test_send_transaction(self, fake, test_config):
        fake.route("POST", "/transactions", body={"id": TX_ID})
        tx = self._transaction()

        async with fake.node(test_config) as node:
            tx_id = await node.send_transaction(tx)

        assert tx_id == TX_ID
        body = json.loads(fake.requests[-1].content)
        assert base64.b64decode(body["script"]) == b"transaction {}"
        assert body["arguments"] == []
        assert body["reference_block_id"] == REFERENCE_BLOCK_ID
        assert body["payer"] == ALICE_ADDRESS
        assert body["authorizers"] == [ALICE_ADDRESS]
        assert body["proposal_key"] == {"address": ALICE_ADDRESS, "key_index": "0", "sequence_number": "1"}
        assert body["payload_signatures"] == []

        envelope = body["envelope_signatures"]
        assert len(envelope) == 1
        assert envelope[0]["address"] == ALICE_ADDRESS
        assert envelope[0]["key_index"] == "0"
        signer = signer_for(make_wallet_account(ALICE_ADDRESS, ALICE_KEY))
        assert signer.verify_transaction(base64.b64decode(envelope[0]["signature"]), tx.envelope_message())

    def test_rest_body_encodes_integers_as_strings(self):
        tx = self._transaction().with_gas_limit(9999)

        body = to_rest_body(tx.to_signed_grpc())

        assert body["gas_limit"] == "9999"
        assert isinstance(body["proposal_key"]["sequence_number"], str)

    @pytest.mark.asyncio
    async def test_send_transaction_rejected(self, fake, test_config):
        fake.route("POST", "/transactions", status=400, body={"code": 400, "message": "invalid signature"})

        async with fake.node(test_config) as node:
            with pytest.raises(TransactionSubmitError, match="invalid signature"):
                await node.send_transaction(self._transaction())

    @pytest.mark.asyncio
    async def test_transaction_result(self, fake, test_config):
        payload = {
            "type": "Event",
            "value": {
                "id": "flow.AccountCreated",
                "fields": [{"name": "address", "value": {"type": "Address", "value": "0x" + ALICE_ADDRESS}}],
            },
        }
        fake.route("GET", f"/transaction_results/{TX_ID}", body={
            "block_id": REFERENCE_BLOCK_ID,
            "status": "Sealed",
            "status_code": 0,
            "error_message": "",
            "events": [{
                "type": "flow.AccountCreated",
                "transaction_id": TX_ID,
                "transaction_index": "0",
                "event_index": "1",
                "payload": b64(payload),
            }],
        })

        async with fake.node(test_config) as node:
            result = await node.get_transaction_result(TX_ID)

        assert result.status == TransactionStatus.SEALED
        assert result.error is None
        assert result.block_id == REFERENCE_BLOCK_ID
        event = result.events_of_type("flow.AccountCreated")[0]
        assert event.event_index == 1
        assert isinstance(event.payload, cadence.Event)
        assert event.payload.fields["address"].hex() == ALICE_ADDRESS

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [
        b64({"type": "Int", "value": None}),
        b64({"type": "Address", "value": ALICE_ADDRESS}),
        b64(b"not json"),
        "@@not base64@@",
    ])
    async def test_undecodable_event_payload(self, fake, test_config, payload):
        """An event whose payload cannot be decoded is kept without a payload."""
        fake.route("GET", f"/transaction_results/{TX_ID}", body={
            "status": "Sealed",
            "events": [{"type": "A.01.Token.Minted", "transaction_id": TX_ID, "payload": payload}],
        })

        async with fake.node(test_config) as node:
            result = await node.get_transaction_result(TX_ID)

        assert result.status == TransactionStatus.SEALED
        assert [e.type for e in result.events] == ["A.01.Token.Minted"]
        assert result.events[0].payload is None

    @pytest.mark.asyncio
    async def test_transaction_result_with_error(self, fake, test_config):
        fake.route("GET", f"/transaction_results/{TX_ID}", body={
            "status": "Sealed",
            "status_code": 1,
            "error_message": "[Error Code: 1101] cadence runtime error",
            "events": [],
        })

        async with fake.node(test_config) as node:
            result = await node.get_transaction_result(TX_ID)

        assert result.status_code == 1
        assert "cadence runtime error" in str(result.error)

    @pytest.mark.asyncio
    async def test_unindexed_transaction_is_unknown(self, fake, test_config):
        async with fake.node(test_config) as node:
            result = await node.get_transaction_result(TX_ID)

        assert result.status == TransactionStatus.UNKNOWN
        assert result.transaction_id == TX_ID

    @pytest.mark.asyncio
    async def test_server_error_propagates(self, fake, test_config):
        fake.route("GET", f"/transaction_results/{TX_ID}", status=500, body={"message": "internal"})

        async with fake.node(test_config) as node:
            with pytest.raises(NodeConnectionError, match="internal"):
                await node.get_transaction_result(TX_ID)

    @pytest.mark.parametrize("raw, expected", [
        ("Pending", TransactionStatus.PENDING),
        ("EXECUTED", TransactionStatus.EXECUTED),
        (4, TransactionStatus.SEALED),
        ("Expired", TransactionStatus.EXPIRED),
        ("", TransactionStatus.UNKNOWN),
        (None, TransactionStatus.UNKNOWN),
    ])
    def test_status_parsing(self, raw, expected):
        assert TransactionStatus.parse(raw) == expected


# =============================================================================
# Scripts
# =============================================================================

class TestScripts:
    """Tests for read-only script execution."""

    @pytest.mark.asyncio
    async def test_execute_script(self, fake, test_config):
        fake.route("POST", "/scripts", body=b64({"type": "String", "value": "argument1"}))
        argument = cadence.String("argument1")

        async with fake.node(test_config) as node:
            result = await node.execute_script(b"access(all) fun main(a: String): String { return a }", [argument])

        assert result == cadence.String("argument1")
        request = fake.requests[-1]
        assert request.url.params["block_height"] == "sealed"
        body = json.loads(request.content)
        assert json.loads(base64.b64decode(body["arguments"][0])) == {"type": "String", "value": "argument1"}

    @pytest.mark.asyncio
    async def test_execute_script_failure(self, fake, test_config):
        fake.route("POST", "/scripts", status=400, body={"message": "cannot find declaration"})

        async with fake.node(test_config) as node:
            with pytest.raises(ScriptExecutionError, match="cannot find declaration"):
                await node.execute_script(b"bad", [])
