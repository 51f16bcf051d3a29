"""Azure Network SDK boundary.

The Azure management SDK is synchronous. Calls are pushed onto the default
executor and bounded with asyncio.wait_for so a hung request can neither
block the event loop nor hold a parent lock forever.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any, TypeVar

from azure.mgmt.network import NetworkManagementClient

from .config import Config
from .security import get_managed_identity_credential

logger = logging.getLogger(__name__)

T = TypeVar("T")


def create_network_client(config: Config) -> NetworkManagementClient:
    """Create a NetworkManagementClient authenticated via managed identity.

    Raises:
        SecretlessViolationError: If credential environment variables are set.
    """
    credential = get_managed_identity_credential(config.managed_identity_client_id)
    return NetworkManagementClient(
        credential=credential,
        subscription_id=config.subscription_id,
    )


async def execute_with_timeout(
    operation: Callable[[], T],
    timeout_seconds: float,
    operation_name: str,
) -> T:
    """Run a blocking SDK call in the executor with a timeout.

    Cancellation of the calling task propagates as asyncio.CancelledError.
    The worker thread is not interrupted: the SDK call still runs to
    completion after a timeout or cancellation and only its result is
    discarded. A write issued this way can land after the caller has given
    up and released its lock.

    Args:
        operation: Zero-argument callable performing the SDK call.
        timeout_seconds: Maximum time to wait for the call.
        operation_name: Human-readable name for logging.

    Returns:
        Whatever ``operation`` returns.

    Raises:
        TimeoutError: If the call exceeds ``timeout_seconds``.
    """
    loop = asyncio.get_event_loop()
    try:
        return await asyncio.wait_for(
            loop.run_in_executor(None, operation),
            timeout=timeout_seconds,
        )
    except TimeoutError:
        logger.error(
            f"{operation_name} timed out",
            extra={"timeout_seconds": timeout_seconds},
        )
        raise


async def wait_for_poller(poller: Any, timeout_seconds: float, operation_name: str) -> Any:
    """Wait for an azure-core LROPoller to finish."""
    return await execute_with_timeout(poller.result, timeout_seconds, operation_name)
