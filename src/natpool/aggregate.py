"""Load balancer aggregate access.

The load balancer is the aggregate root: NAT pools and frontend IP
configurations have no write API of their own and are changed by editing
the load balancer's collections and submitting the whole document.

This module holds the read side (fetching the aggregate, locating named
elements in its collections) and the generic collection editor used by
every sub-resource type that shares the parent.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import Any, TypeVar

from azure.core.exceptions import AzureError, ResourceNotFoundError
from azure.mgmt.network import NetworkManagementClient
from azure.mgmt.network.models import FrontendIPConfiguration, InboundNatPool, LoadBalancer

from .client import execute_with_timeout
from .config import DEFAULT_FETCH_TIMEOUT_SECONDS
from .errors import RemoteOperationError
from .resource_id import parse_load_balancer_id

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _by_name(element: Any) -> str | None:
    return getattr(element, "name", None)


# =============================================================================
# Collection editor
# =============================================================================


def replace_element(
    collection: Sequence[T] | None,
    key: str,
    new_element: T,
    key_fn: Callable[[T], str | None] = _by_name,
) -> list[T]:
    """Return a new list with ``new_element`` in place of every element keyed ``key``.

    Existing elements with the same key are dropped, not merged, and the new
    element is appended at the end. The input collection is not modified.
    """
    working = [element for element in (collection or []) if key_fn(element) != key]
    working.append(new_element)
    return working


def remove_element(
    collection: Sequence[T] | None,
    key: str,
    key_fn: Callable[[T], str | None] = _by_name,
) -> list[T]:
    """Return a new list without the elements keyed ``key``."""
    return [element for element in (collection or []) if key_fn(element) != key]


# =============================================================================
# Locators
# =============================================================================


def _find_by_name(collection: Sequence[T] | None, name: str) -> tuple[T | None, int, bool]:
    for index, element in enumerate(collection or []):
        if _by_name(element) == name:
            return element, index, True
    return None, -1, False


def find_nat_pool(
    load_balancer: LoadBalancer, name: str
) -> tuple[InboundNatPool | None, int, bool]:
    """Find a NAT pool by exact name.

    Returns:
        ``(pool, index, found)``. When ``found`` is False the pool is None and
        the index is -1.
    """
    return _find_by_name(load_balancer.inbound_nat_pools, name)


def find_frontend_ip_configuration(
    load_balancer: LoadBalancer, name: str
) -> tuple[FrontendIPConfiguration | None, int, bool]:
    """Find a frontend IP configuration by exact name."""
    return _find_by_name(load_balancer.frontend_ip_configurations, name)


# =============================================================================
# Fetcher
# =============================================================================


class LoadBalancerFetcher:
    """Retrieves the current load balancer document by ID.

    No retries happen here; the caller owns retry policy.
    """

    def __init__(
        self,
        client: NetworkManagementClient,
        timeout_seconds: float = DEFAULT_FETCH_TIMEOUT_SECONDS,
    ) -> None:
        self._client = client
        self._timeout_seconds = timeout_seconds

    async def fetch(
        self,
        load_balancer_id: str,
        *,
        operation: str = "fetch",
        resource_name: str | None = None,
    ) -> tuple[LoadBalancer | None, bool]:
        """Fetch a load balancer.

        Args:
            load_balancer_id: Full ARM ID of the load balancer.
            operation: Calling operation, used for error context.
            resource_name: NAT pool being reconciled, used for error context.

        Returns:
            ``(load_balancer, True)`` if it exists, ``(None, False)`` if ARM
            reports it as not found.

        Raises:
            ValidationError: If the ID is not a load balancer ID.
            RemoteOperationError: On any other Azure failure or timeout.
        """
        resource_group, name = parse_load_balancer_id(load_balancer_id)

        try:
            load_balancer = await execute_with_timeout(
                lambda: self._client.load_balancers.get(resource_group, name),
                timeout_seconds=self._timeout_seconds,
                operation_name=f"Get load balancer {name}",
            )
        except ResourceNotFoundError:
            logger.info(
                "Load balancer not found",
                extra={"load_balancer": name, "resource_group": resource_group},
            )
            return None, False
        except TimeoutError as e:
            raise RemoteOperationError(
                f"Timed out after {self._timeout_seconds}s retrieving load balancer "
                f"{name!r} (resource group {resource_group!r})",
                operation=operation,
                resource_name=resource_name,
                parent_name=name,
            ) from e
        except AzureError as e:
            raise RemoteOperationError(
                f"Retrieving load balancer {name!r} (resource group {resource_group!r}): {e}",
                operation=operation,
                resource_name=resource_name,
                parent_name=name,
            ) from e

        return load_balancer, True

    async def provisioning_state(self, load_balancer_id: str) -> str | None:
        """Return the load balancer's current provisioning state.

        A load balancer that disappears while being polled reports no state.
        """
        load_balancer, found = await self.fetch(load_balancer_id, operation="poll")
        if not found or load_balancer is None:
            return None
        state = load_balancer.provisioning_state
        return str(getattr(state, "value", state)) if state is not None else None
