"""
Pytest configuration and shared fixtures for the test suite.
"""

import hashlib
import json
from dataclasses import replace
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import pytest
from flow_py_sdk import InMemorySigner, Tx, cadence
from flow_py_sdk.proto.flow import entities

from flowtooling.cadence import normalize_address
from flowtooling.config import NetworkType, ToolingConfig
from flowtooling.node.interface import (
    AccessNode,
    Account,
    AccountNotFoundError,
    BlockHeader,
    Event,
    TransactionResult,
    TransactionStatus,
)
from flowtooling.tx.signer import account_key_for, signer_for
from flowtooling.wallet import Wallet, WalletAccount


# ============================================================================
# Test Accounts
# ============================================================================

SERVICE_ADDRESS = "f8d6e0586b0a20c7"
ALICE_ADDRESS = "01cf0e2f2f715450"
BOB_ADDRESS = "179b6b1cb6755e31"

SERVICE_KEY = "11" * 32
ALICE_KEY = "22" * 32
BOB_KEY = "33" * 32

REFERENCE_BLOCK_ID = "ab" * 32


def make_wallet_account(address: str, private_key: str, **kwargs) -> WalletAccount:
    """Create a wallet record the way it appears in wallet.json."""
    return WalletAccount.model_validate({
        "address": address,
        "privateKey": private_key,
        "sigAlgorithm": kwargs.get("sig_algorithm", "ECDSA_P256"),
        "hashAlgorithm": kwargs.get("hash_algorithm", "SHA3_256"),
    })


def account_created_event(address: str, tx_id: str = "") -> Event:
    """Event emitted by the node when an account is created."""
    return Event(
        type="flow.AccountCreated",
        transaction_id=tx_id,
        transaction_index=0,
        event_index=0,
        payload=cadence.Event(
            "flow.AccountCreated",
            [("address", cadence.Address.from_hex(normalize_address(address)))],
        ),
    )


@pytest.fixture
def service_account() -> WalletAccount:
    return make_wallet_account(SERVICE_ADDRESS, SERVICE_KEY)


@pytest.fixture
def wallet() -> Wallet:
    return Wallet(accounts={
        "alice": make_wallet_account(ALICE_ADDRESS, ALICE_KEY),
        "bob": make_wallet_account(BOB_ADDRESS, BOB_KEY, hash_algorithm="SHA2_256"),
    })


# ============================================================================
# Configuration Fixtures
# ============================================================================

@pytest.fixture
def project_dir(tmp_path: Path) -> Path:
    """A project directory laid out the way the tooling expects."""
    (tmp_path / "flow.json").write_text(json.dumps({
        "accounts": {
            "service": {
                "address": SERVICE_ADDRESS,
                "privateKey": SERVICE_KEY,
                "sigAlgorithm": "ECDSA_P256",
                "hashAlgorithm": "SHA3_256",
            }
        }
    }))
    (tmp_path / "wallet.json").write_text(json.dumps({
        "accounts": {
            "alice": {
                "address": ALICE_ADDRESS,
                "privateKey": ALICE_KEY,
                "sigAlgorithm": "ECDSA_P256",
                "hashAlgorithm": "SHA3_256",
            },
            "bob": {
                "address": "0x" + BOB_ADDRESS,
                "privateKey": BOB_KEY,
                "sigAlgorithm": "ECDSA_P256",
                "hashAlgorithm": "SHA2_256",
            },
        }
    }))

    for kind, name, code in [
        ("contracts", "alice", "access(all) contract Alice {}"),
        ("transactions", "create_collection", "transaction { prepare(acct: &Account) {} }"),
        ("transactions", "transfer", "transaction(to: Address) { prepare(a: &Account, b: &Account) {} }"),
        ("scripts", "test", "access(all) fun main(arg: String): String { return arg }"),
    ]:
        (tmp_path / kind).mkdir(exist_ok=True)
        (tmp_path / kind / f"{name}.cdc").write_text(code)

    return tmp_path


@pytest.fixture
def test_config(project_dir: Path) -> ToolingConfig:
    """Create a test configuration."""
    return ToolingConfig(
        network=NetworkType.LOCAL,
        access_node_url="http://flow.test/v1",
        base_path=str(project_dir),
        gas_limit=9999,
        seal_poll_interval_seconds=0.01,
        seal_timeout_seconds=5,
        log_level="DEBUG",
    )


# ============================================================================
# Mock Access Node
# ============================================================================

class MockAccessNode(AccessNode):
    """Mock access node for testing."""

    def __init__(self):
        self.accounts: Dict[str, Account] = {}
        self.block = BlockHeader(id=REFERENCE_BLOCK_ID, parent_id="cd" * 32, height=100)
        self.submitted: List[Tx] = []
        self.signed: List[entities.Transaction] = []
        self.next_results: List[TransactionResult] = []
        self.results: Dict[str, List[TransactionResult]] = {}
        self.fetches: List[str] = []
        self.script_result: Optional[cadence.Value] = None
        self.scripts: List[Tuple[bytes, List[cadence.Value]]] = []
        self._connected = False

    async def connect(self) -> None:
        self._connected = True

    async def disconnect(self) -> None:
        self._connected = False

    async def get_latest_block_header(self, sealed: bool = True) -> BlockHeader:
        return self.block

    async def get_account(self, address: str) -> Account:
        address = normalize_address(address)
        if address not in self.accounts:
            raise AccountNotFoundError(f"Could not get account for address: {address}")
        return self.accounts[address]

    async def send_transaction(self, tx: Tx) -> str:
        signed = tx.to_signed_grpc()
        tx_id = hashlib.sha3_256(bytes(signed)).hexdigest()
        self.submitted.append(tx)
        self.signed.append(signed)
        queued = self.next_results or [TransactionResult(status=TransactionStatus.SEALED)]
        self.results[tx_id] = [replace(r, transaction_id=tx_id) for r in queued]
        self.next_results = []
        return tx_id

    async def get_transaction_result(self, tx_id: str) -> TransactionResult:
        self.fetches.append(tx_id)
        pending = self.results.get(tx_id)
        if not pending:
            return TransactionResult(status=TransactionStatus.UNKNOWN, transaction_id=tx_id)
        return pending.pop(0) if len(pending) > 1 else pending[0]

    async def execute_script(
        self,
        code: bytes,
        arguments: Sequence[cadence.Value] = (),
    ) -> Optional[cadence.Value]:
        self.scripts.append((code, list(arguments)))
        return self.script_result

    def add_account(
        self,
        address: str,
        owner: WalletAccount,
        sequence_number: int = 0,
        balance: int = 100_000_000,
    ) -> None:
        """Register an account with a single key for the given wallet record."""
        address = normalize_address(address)
        key = account_key_for(owner)
        key.index = 0
        key.sequence_number = sequence_number
        key.revoked = False
        self.accounts[address] = Account(address=address, balance=balance, keys=[key])


@pytest.fixture
def mock_node(service_account, wallet) -> MockAccessNode:
    """Create a mock node knowing the service account and both wallet accounts."""
    node = MockAccessNode()
    node.add_account(SERVICE_ADDRESS, service_account, sequence_number=7)
    node.add_account(ALICE_ADDRESS, wallet.get("alice"), sequence_number=3)
    node.add_account(BOB_ADDRESS, wallet.get("bob"))
    return node


@pytest.fixture
def signer(service_account) -> InMemorySigner:
    return signer_for(service_account)
