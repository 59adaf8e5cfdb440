"""
Exception hierarchy for Flow tooling.
"""

from typing import Any, Optional


class FlowToolingError(Exception):
    """Base class for all errors raised by flowtooling."""
    pass


class ConfigurationError(FlowToolingError):
    """Raised when a service account or wallet file cannot be loaded."""
    pass


class UnknownAccountError(FlowToolingError):
    """Raised when a name is not present in the wallet."""

    def __init__(self, name: str):
        super().__init__(f"Invalid account name {name}: not found in wallet")
        self.name = name


class AddressMismatchError(FlowToolingError):
    """Raised when a created account does not get the address recorded in the wallet."""

    def __init__(self, name: str, expected: str, actual: Optional[str]):
        super().__init__(
            f"The address for account={name} does not match {expected} != {actual}"
        )
        self.name = name
        self.expected = expected
        self.actual = actual


class TransactionExecutionError(FlowToolingError):
    """Raised when a transaction was sealed with an execution error."""

    def __init__(self, tx_id: str, error_message: str):
        super().__init__(f"Transaction {tx_id} failed: {error_message}")
        self.tx_id = tx_id
        self.error_message = error_message


class SealTimeoutError(FlowToolingError):
    """Raised when a transaction does not seal within the configured bounds."""

    def __init__(self, tx_id: str, attempts: int, last_result: Any = None):
        status = getattr(last_result, "status", None)
        super().__init__(
            f"Transaction {tx_id} not sealed after {attempts} attempt(s), last status={status}"
        )
        self.tx_id = tx_id
        self.attempts = attempts
        self.last_result = last_result


class TransactionExpiredError(SealTimeoutError):
    """Raised when a transaction expired before it could be sealed."""
    pass
