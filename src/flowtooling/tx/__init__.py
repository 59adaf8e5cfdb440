"""
Transaction module.

Signers for wallet accounts; transactions themselves are flow_py_sdk.Tx.
"""

from flowtooling.tx.signer import account_key_for, parse_hash_algo, parse_sign_algo, signer_for

__all__ = [
    "account_key_for",
    "parse_hash_algo",
    "parse_sign_algo",
    "signer_for",
]
