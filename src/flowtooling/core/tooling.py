"""
Flow tooling orchestrator.

Runs the repetitive call sequences around the access node: creating
accounts, deploying contracts, sending transactions and running scripts
from the project's contracts/, transactions/ and scripts/ directories.
"""

from pathlib import Path
from typing import List, Optional, Sequence

import structlog
from flow_py_sdk import ProposalKey, Tx, cadence, create_account_template

from flowtooling.cadence import address as cadence_address
from flowtooling.config import NetworkType, NodeProvider, ToolingConfig, get_config
from flowtooling.errors import AddressMismatchError, ConfigurationError
from flowtooling.node.grpc_api import GrpcAccessNode
from flowtooling.node.interface import AccessNode, Account, TransactionResult
from flowtooling.node.rest import RestAccessNode
from flowtooling.node.seal import wait_for_seal
from flowtooling.tx.signer import account_key_for, signer_for
from flowtooling.wallet import Wallet, WalletAccount, load_service_account, load_wallet

logger = structlog.get_logger(__name__)

DEVNET_SERVICE_ACCOUNT_FILE = "~/.flow-dev.json"

ACCOUNT_CREATED_EVENT = "flow.AccountCreated"


class FlowTooling:
    """
    Convenience layer over a Flow access node.

    Usage:
        ```python
        async with FlowTooling.localhost() as flow:
            await flow.deploy_contract("nft")
            await flow.send_transaction("create_nft_collection", "ft")
            await flow.run_script("test", cadence.String("argument1"))
        ```
    """

    def __init__(
        self,
        service: WalletAccount,
        wallet: Wallet,
        config: Optional[ToolingConfig] = None,
        node: Optional[AccessNode] = None,
    ):
        """
        Initialize the tooling.

        Args:
            service: Service account paying for account creation
            wallet: Named accounts used as contract owners and signers
            config: Tooling configuration
            node: Custom access node (auto-created based on config if not provided)
        """
        self.config = config or get_config()
        self.service = service
        self.wallet = wallet
        if node:
            self.node = node
        elif self.config.node_provider == NodeProvider.GRPC:
            self.node = GrpcAccessNode(self.config)
        else:
            self.node = RestAccessNode(self.config)
        self.base_path = Path(self.config.base_path)

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_config(
        cls,
        config: Optional[ToolingConfig] = None,
        node: Optional[AccessNode] = None,
    ) -> "FlowTooling":
        """
        Create tooling from the service account and wallet files named in the config.

        Raises:
            ConfigurationError: If either file cannot be loaded
        """
        config = config or get_config()

        try:
            service = load_service_account(config.service_account_path)
        except ConfigurationError as e:
            raise ConfigurationError(f"run 'flow emulator init': {e}") from e

        try:
            wallet = load_wallet(config.wallet_path)
        except ConfigurationError as e:
            raise ConfigurationError(
                f"copy flow.json to wallet.json and specify new accounts with a given name: {e}"
            ) from e

        return cls(service, wallet, config=config, node=node)

    @classmethod
    def localhost(cls, gas_limit: int = 9999, base_path: str = ".") -> "FlowTooling":
        """Tooling for the local emulator with flow.json and wallet.json in base_path."""
        config = ToolingConfig(
            network=NetworkType.LOCAL,
            gas_limit=gas_limit,
            base_path=base_path,
        )
        return cls.from_config(config)

    @classmethod
    def localhost_with_parent_path(cls, path: str) -> "FlowTooling":
        return cls.localhost(base_path=path)

    @classmethod
    def devnet(cls, gas_limit: int = 9999) -> "FlowTooling":
        """Tooling for testnet with credentials read from ~/.flow-dev.json."""
        config = ToolingConfig(
            network=NetworkType.TESTNET,
            gas_limit=gas_limit,
            service_account_file=DEVNET_SERVICE_ACCOUNT_FILE,
        )
        return cls.from_config(config)

    async def __aenter__(self) -> "FlowTooling":
        await self.node.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.node.disconnect()

    # ------------------------------------------------------------------
    # Accounts and contracts
    # ------------------------------------------------------------------

    async def create_account(self, account_name: str) -> str:
        """
        Create the wallet account with the given name, without a contract.

        Returns:
            Address of the created account
        """
        address = await self._create(account_name, None)
        logger.info("account_created", account=account_name, address=address)
        return address

    async def deploy_contract(self, contract_name: str) -> str:
        """
        Deploy contracts/<name>.cdc to a new account with the same name from the wallet.

        Returns:
            Address of the account holding the contract
        """
        code = self._read_code("contracts", contract_name)
        address = await self._create(contract_name, code)
        logger.info("contract_deployed", contract=contract_name, address=address)
        return address

    async def _create(self, name: str, code: Optional[bytes]) -> str:
        user = self.wallet.get(name)
        service_address = cadence_address(self.service.address)

        service_key = await self.node.get_account_key(self.service.address, 0)
        service_signer = signer_for(self.service, service_key.hash_algo)

        header = await self.node.get_latest_block_header(sealed=True)

        tx = (
            create_account_template(
                keys=[account_key_for(user)],
                reference_block_id=bytes.fromhex(header.id),
                payer=service_address,
                proposal_key=ProposalKey(
                    key_address=service_address,
                    key_id=service_key.index,
                    key_sequence_number=service_key.sequence_number,
                ),
                contracts={name: code.decode("utf-8")} if code is not None else None,
            )
            .add_authorizers(service_address)
            .with_gas_limit(self.config.gas_limit)
            .with_envelope_signature(service_address, service_key.index, service_signer)
        )

        result = await self._submit(tx)

        created: Optional[str] = None
        for event in result.events_of_type(ACCOUNT_CREATED_EVENT):
            if isinstance(event.payload, cadence.Composite):
                value = event.payload.fields.get("address")
                if isinstance(value, cadence.Address):
                    created = value.hex()

        if created != user.address:
            raise AddressMismatchError(name, user.address, created)
        return created

    async def get_account(self, name: str) -> Account:
        """Get the on-chain account for a wallet entry."""
        account = self.wallet.get(name)
        return await self.node.get_account(account.address)

    def find_address(self, name: str) -> cadence.Address:
        """Cadence Address argument for a wallet entry."""
        return cadence_address(self.wallet.get(name).address)

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    async def send_transaction(
        self,
        filename: str,
        *signers: str,
        arguments: Sequence[cadence.Value] = (),
    ) -> TransactionResult:
        """
        Send transactions/<filename>.cdc signed by the named wallet accounts.

        The first signer proposes and pays; every distinct signer authorizes
        once, in the order given.

        Returns:
            The sealed transaction result
        """
        if not signers:
            raise ValueError("Need at least one signer to sign")

        accounts: List[WalletAccount] = []
        for name in signers:
            account = self.wallet.get(name)
            if all(account.address != a.address for a in accounts):
                accounts.append(account)

        code = self._read_code("transactions", filename)

        payer = accounts[0]
        payer_address = cadence_address(payer.address)
        proposer_key = await self.node.get_account_key(payer.address, 0)

        header = await self.node.get_latest_block_header(sealed=True)

        tx = (
            Tx(
                code=code.decode("utf-8"),
                reference_block_id=bytes.fromhex(header.id),
                payer=payer_address,
                proposal_key=ProposalKey(
                    key_address=payer_address,
                    key_id=proposer_key.index,
                    key_sequence_number=proposer_key.sequence_number,
                ),
            )
            .with_gas_limit(self.config.gas_limit)
            .add_authorizers(*[cadence_address(a.address) for a in accounts])
            .add_arguments(*arguments)
        )

        for account in accounts[1:]:
            key = await self.node.get_account_key(account.address, 0)
            tx.with_payload_signature(cadence_address(account.address), key.index, signer_for(account, key.hash_algo))

        tx.with_envelope_signature(payer_address, proposer_key.index, signer_for(payer, proposer_key.hash_algo))

        result = await self._submit(tx)
        logger.info(
            "transaction_applied",
            path=str(self._code_path("transactions", filename)),
            signer=signers[0],
            address=payer.address,
        )
        return result

    async def send_transaction_with_arguments(
        self,
        filename: str,
        signer: str,
        *arguments: cadence.Value,
    ) -> TransactionResult:
        return await self.send_transaction(filename, signer, arguments=arguments)

    async def send_transaction_with_multiple_signers_and_arguments(
        self,
        filename: str,
        signers: Sequence[str],
        *arguments: cadence.Value,
    ) -> TransactionResult:
        return await self.send_transaction(filename, *signers, arguments=arguments)

    async def _submit(self, tx: Tx) -> TransactionResult:
        tx_id = await self.node.send_transaction(tx)
        result = await wait_for_seal(
            self.node,
            tx_id,
            poll_interval=self.config.seal_poll_interval_seconds,
            timeout=self.config.seal_timeout_seconds,
            max_attempts=self.config.seal_max_attempts,
        )

        error = result.error
        if error is not None:
            logger.error("transaction_failed", tx_id=tx_id, error=result.error_message)
            raise error
        return result

    # ------------------------------------------------------------------
    # Scripts
    # ------------------------------------------------------------------

    async def run_script(self, filename: str, *arguments: cadence.Value) -> None:
        """Run scripts/<filename>.cdc for its log output only."""
        await self.run_script_returns(filename, *arguments)

    async def run_script_returns(self, filename: str, *arguments: cadence.Value) -> Optional[cadence.Value]:
        """
        Run a read-only script at the latest sealed block.

        Returns:
            The script result as a flow_py_sdk.cadence value
        """
        code = self._read_code("scripts", filename)

        logger.debug("script_arguments", script=filename, arguments=[str(a) for a in arguments])
        result = await self.node.execute_script(code, list(arguments))

        logger.info(
            "script_executed",
            path=str(self._code_path("scripts", filename)),
            result=str(result),
        )
        return result

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    def _code_path(self, kind: str, name: str) -> Path:
        return self.base_path / kind / f"{name}.cdc"

    def _read_code(self, kind: str, name: str) -> bytes:
        path = self._code_path(kind, name)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            raise FileNotFoundError(f"Could not read {kind[:-1]} file from path={path}") from None
