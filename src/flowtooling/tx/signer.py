"""
Transaction Signer - signers for wallet accounts.

Wraps flow_py_sdk's InMemorySigner around the key material read from
flow.json / wallet.json.
"""

from typing import Optional, Union

import structlog
from ecdsa import MalformedPointError
from flow_py_sdk import AccountKey, HashAlgo, InMemorySigner, SignAlgo

from flowtooling.wallet import WalletAccount

logger = structlog.get_logger(__name__)


def parse_sign_algo(value: Union[str, int, SignAlgo]) -> SignAlgo:
    """Signature algorithm from its name ("ECDSA_P256", case-insensitive) or number."""
    if isinstance(value, int):
        return SignAlgo(value)
    for algo in SignAlgo:
        if algo.name.lower() == str(value).strip().lower():
            return algo
    raise ValueError(f"Unsupported signature algorithm: {value}")


def parse_hash_algo(value: Union[str, int, HashAlgo]) -> HashAlgo:
    """Hash algorithm from its name ("SHA3_256", case-insensitive) or number."""
    if isinstance(value, int):
        return HashAlgo(value)
    for algo in HashAlgo:
        if algo.name.lower() == str(value).strip().lower():
            return algo
    raise ValueError(f"Unsupported hash algorithm: {value}")


def signer_for(
    account: WalletAccount,
    hash_algo: Optional[Union[str, HashAlgo]] = None,
) -> InMemorySigner:
    """
    Create a signer for a wallet account.

    Args:
        account: Wallet record holding key material and algorithms
        hash_algo: Override the record's hash algorithm, e.g. with the
            one registered for the key on chain

    Raises:
        ValueError: If an algorithm is unknown or the key cannot be decoded
    """
    sign_algo = parse_sign_algo(account.sig_algorithm)
    hash_algo = parse_hash_algo(hash_algo if hash_algo is not None else account.hash_algorithm)

    key_hex = account.private_key[2:] if account.private_key.startswith("0x") else account.private_key
    try:
        signer = InMemorySigner(
            hash_algo=hash_algo,
            sign_algo=sign_algo,
            private_key_hex=key_hex.zfill(64),
        )
    except (ValueError, MalformedPointError) as e:
        raise ValueError(f"Could not decode private key for {account.address}: {e}") from e

    logger.debug("signer_created", address=account.address, sign_algo=sign_algo.name, hash_algo=hash_algo.name)
    return signer


def public_key(signer: InMemorySigner) -> bytes:
    """Uncompressed public key point without the 04 prefix."""
    return signer.key.get_verifying_key().to_string()


def account_key_for(account: WalletAccount) -> AccountKey:
    """Full-weight account key registering a wallet account's public key."""
    signer = signer_for(account)
    return AccountKey(
        public_key=public_key(signer),
        sign_algo=parse_sign_algo(account.sig_algorithm),
        hash_algo=signer.hash_algo,
    )
