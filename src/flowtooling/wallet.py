"""
Wallet and service account files.

Account records are read verbatim from flow.json / wallet.json and kept
read-only for the lifetime of the process.
"""

import json
import os
from pathlib import Path
from typing import Dict, Union

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from flowtooling.cadence import normalize_address
from flowtooling.errors import ConfigurationError, UnknownAccountError

logger = structlog.get_logger(__name__)


class WalletAccount(BaseModel):
    """Key material for a single account, as written in flow.json / wallet.json."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    address: str
    private_key: str = Field(alias="privateKey")
    sig_algorithm: str = Field(default="ECDSA_P256", alias="sigAlgorithm")
    hash_algorithm: str = Field(default="SHA3_256", alias="hashAlgorithm")

    @field_validator("address")
    @classmethod
    def _normalize_address(cls, value: str) -> str:
        return normalize_address(value)

    @property
    def hex_address(self) -> str:
        return "0x" + self.address


class Wallet(BaseModel):
    """Named accounts available to sign transactions."""

    model_config = ConfigDict(extra="ignore")

    accounts: Dict[str, WalletAccount] = Field(default_factory=dict)

    def get(self, name: str) -> WalletAccount:
        """
        Look up an account by name.

        Raises:
            UnknownAccountError: If the wallet has no account with that name
        """
        try:
            return self.accounts[name]
        except KeyError:
            raise UnknownAccountError(name) from None

    def __contains__(self, name: object) -> bool:
        return name in self.accounts


class _ServiceAccounts(BaseModel):
    model_config = ConfigDict(extra="ignore")

    service: WalletAccount


class FlowJson(BaseModel):
    """The parts of flow.json the tooling reads."""

    model_config = ConfigDict(extra="ignore")

    accounts: _ServiceAccounts


class RawFlowConfig(BaseModel):
    """A whole project configuration file, for tools that want every field."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    address: str = ""
    gas_limit: int = Field(default=0, alias="gasLimit")
    accounts: Dict[str, WalletAccount] = Field(default_factory=dict)
    emulator_accounts: Dict[str, str] = Field(default_factory=dict, alias="emulatorAccounts")


def _load_json(path: Union[str, Path], what: str) -> dict:
    expanded = Path(os.path.expanduser(str(path)))
    try:
        with expanded.open("r", encoding="utf-8") as f:
            return json.load(f)
    except OSError as e:
        raise ConfigurationError(f"Could not read {what} json file {expanded}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Could not decode json into {what}: {e}") from e


def load_service_account(path: Union[str, Path] = "./flow.json") -> WalletAccount:
    """
    Read the service account from a flow.json file.

    Raises:
        ConfigurationError: If the file is missing or malformed
    """
    data = _load_json(path, "flow")
    try:
        flow_json = FlowJson.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Could not decode json into Flow: {e}") from e

    logger.debug("service_account_loaded", path=str(path), address=flow_json.accounts.service.address)
    return flow_json.accounts.service


def load_wallet(path: Union[str, Path] = "./wallet.json") -> Wallet:
    """
    Read a wallet file.

    Raises:
        ConfigurationError: If the file is missing or malformed
    """
    data = _load_json(path, "wallet")
    try:
        wallet = Wallet.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Could not decode json into Wallet: {e}") from e

    logger.debug("wallet_loaded", path=str(path), accounts=len(wallet.accounts))
    return wallet


def load_raw_flow_config(path: Union[str, Path]) -> RawFlowConfig:
    """Read a complete project configuration file."""
    data = _load_json(path, "flow")
    try:
        return RawFlowConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Could not decode json into RawFlowConfig: {e}") from e
