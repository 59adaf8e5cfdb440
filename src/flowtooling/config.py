"""
Configuration management for Flow tooling.

Supports configuration via environment variables and .env files.
"""

from enum import Enum
from typing import Optional, Tuple

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class NetworkType(str, Enum):
    """Flow networks reachable through an access node."""
    LOCAL = "local"
    TESTNET = "testnet"
    MAINNET = "mainnet"


class NodeProvider(str, Enum):
    """Supported transports to the access node."""
    REST = "rest"
    GRPC = "grpc"


EMULATOR_ACCESS_URL = "http://127.0.0.1:8888/v1"
EMULATOR_GRPC_HOST = "127.0.0.1"
EMULATOR_GRPC_PORT = 3569

ACCESS_URLS = {
    NetworkType.LOCAL: EMULATOR_ACCESS_URL,
    NetworkType.TESTNET: "https://rest-testnet.onflow.org/v1",
    NetworkType.MAINNET: "https://rest-mainnet.onflow.org/v1",
}

GRPC_HOSTS = {
    NetworkType.LOCAL: (EMULATOR_GRPC_HOST, EMULATOR_GRPC_PORT),
    NetworkType.TESTNET: ("access.devnet.nodes.onflow.org", 9000),
    NetworkType.MAINNET: ("access.mainnet.nodes.onflow.org", 9000),
}


class ToolingConfig(BaseSettings):
    """
    Configuration settings for Flow tooling.

    All settings can be configured via environment variables with the FLOWTOOLING_ prefix.
    """

    model_config = SettingsConfigDict(
        env_prefix="FLOWTOOLING_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Network settings
    network: NetworkType = Field(
        default=NetworkType.LOCAL,
        description="Flow network to connect to"
    )
    node_provider: NodeProvider = Field(
        default=NodeProvider.REST,
        description="Transport used to reach the access node"
    )
    access_node_url: Optional[str] = Field(
        default=None,
        description="Custom access node REST URL (optional)"
    )
    access_node_grpc_host: Optional[str] = Field(
        default=None,
        description="Custom access node gRPC host (optional)"
    )
    access_node_grpc_port: Optional[int] = Field(
        default=None,
        description="Custom access node gRPC port (optional)"
    )
    request_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="HTTP timeout for access node requests"
    )

    # Transaction settings
    gas_limit: int = Field(
        default=9999,
        ge=1,
        description="Gas limit applied to every transaction"
    )

    # Project layout
    base_path: str = Field(
        default=".",
        description="Directory holding contracts/, transactions/ and scripts/"
    )
    service_account_file: Optional[str] = Field(
        default=None,
        description="Path to the file holding the service account (defaults to <base_path>/flow.json)"
    )
    wallet_file: Optional[str] = Field(
        default=None,
        description="Path to the wallet file (defaults to <base_path>/wallet.json)"
    )

    # Seal polling
    seal_poll_interval_seconds: float = Field(
        default=1.0,
        gt=0,
        description="Delay between transaction result polls"
    )
    seal_timeout_seconds: Optional[float] = Field(
        default=None,
        gt=0,
        description="Give up waiting for a seal after this many seconds (unbounded if unset)"
    )
    seal_max_attempts: Optional[int] = Field(
        default=None,
        ge=1,
        description="Give up waiting for a seal after this many polls (unbounded if unset)"
    )

    # Logging settings
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format"
    )

    @property
    def access_url(self) -> str:
        """Get the access node URL based on network."""
        if self.access_node_url:
            return self.access_node_url.rstrip("/")
        return ACCESS_URLS.get(self.network, EMULATOR_ACCESS_URL)

    @property
    def grpc_address(self) -> Tuple[str, int]:
        """Get the access node gRPC host and port based on network."""
        host, port = GRPC_HOSTS.get(self.network, (EMULATOR_GRPC_HOST, EMULATOR_GRPC_PORT))
        return self.access_node_grpc_host or host, self.access_node_grpc_port or port

    @property
    def service_account_path(self) -> str:
        return self.service_account_file or f"{self.base_path}/flow.json"

    @property
    def wallet_path(self) -> str:
        return self.wallet_file or f"{self.base_path}/wallet.json"


# Global config instance
_config: Optional[ToolingConfig] = None


def get_config() -> ToolingConfig:
    """Get or create the global configuration instance."""
    global _config
    if _config is None:
        _config = ToolingConfig()
    return _config


def set_config(config: ToolingConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
