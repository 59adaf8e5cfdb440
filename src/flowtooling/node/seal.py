"""
Seal waiter.

Polls the access node for a transaction result until the transaction is sealed.
"""

import asyncio
from typing import Awaitable, Callable, Optional

import structlog

from flowtooling.errors import SealTimeoutError, TransactionExpiredError
from flowtooling.node.interface import AccessNode, TransactionResult, TransactionStatus

logger = structlog.get_logger(__name__)

DEFAULT_POLL_INTERVAL = 1.0


async def wait_for_seal(
    node: AccessNode,
    tx_id: str,
    poll_interval: float = DEFAULT_POLL_INTERVAL,
    timeout: Optional[float] = None,
    max_attempts: Optional[int] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> TransactionResult:
    """
    Wait for a transaction to be sealed.

    The result is fetched immediately and then once per ``poll_interval``
    until its status is SEALED. Errors raised while fetching propagate
    straight away; only "not sealed yet" is retried. A sealed result that
    carries an execution error is returned as is.

    Args:
        node: Access node to query
        tx_id: Id of the submitted transaction
        poll_interval: Seconds to sleep between fetches
        timeout: Give up after this many seconds (wait forever if None)
        max_attempts: Give up after this many fetches (unbounded if None)
        sleep: Coroutine used to wait between fetches

    Returns:
        The sealed transaction result

    Raises:
        SealTimeoutError: If timeout or max_attempts is exceeded
        TransactionExpiredError: If the transaction expired before sealing
    """
    loop = asyncio.get_running_loop()
    started = loop.time()

    logger.debug("seal_wait_started", tx_id=tx_id, poll_interval=poll_interval)

    result = await node.get_transaction_result(tx_id)
    attempts = 1

    while result.status != TransactionStatus.SEALED:
        if result.status == TransactionStatus.EXPIRED:
            logger.warning("transaction_expired", tx_id=tx_id, attempts=attempts)
            raise TransactionExpiredError(tx_id, attempts, result)

        if max_attempts is not None and attempts >= max_attempts:
            logger.warning("seal_wait_timeout", tx_id=tx_id, attempts=attempts, status=result.status.value)
            raise SealTimeoutError(tx_id, attempts, result)

        delay = poll_interval
        if timeout is not None:
            remaining = timeout - (loop.time() - started)
            if remaining <= 0:
                logger.warning("seal_wait_timeout", tx_id=tx_id, attempts=attempts, status=result.status.value)
                raise SealTimeoutError(tx_id, attempts, result)
            # never sleep past the deadline
            delay = min(poll_interval, remaining)

        await sleep(delay)

        result = await node.get_transaction_result(tx_id)
        attempts += 1
        logger.debug("seal_wait_polling", tx_id=tx_id, attempt=attempts, status=result.status.value)

    logger.debug("transaction_sealed", tx_id=tx_id, attempts=attempts)
    return result
