"""Inbound NAT pool reconciliation against a shared load balancer.

Azure has no write API for a single NAT pool. Every change is a
read-modify-write of the whole load balancer:

1. Lock the load balancer ID (siblings serialize on the same parent)
2. Fetch the current load balancer
3. Splice the NAT pool collection (replace by name, or remove)
4. Submit the whole load balancer and wait for the long-running operation
5. Wait for the provisioning state to settle
6. Re-fetch and confirm the change, extracting the assigned NAT pool ID
7. Unlock

The load balancer document held locally is only ever the one fetched
inside the current critical section. Nothing is cached across operations.

CONSISTENCY: step 6 is a single re-fetch. It assumes ARM is consistent as
soon as the provisioning state reports success. If that ever stops holding,
the re-fetch needs a bounded retry-on-not-found instead of failing with
InvariantViolation.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from azure.core.exceptions import AzureError
from azure.mgmt.network import NetworkManagementClient
from azure.mgmt.network.models import InboundNatPool, LoadBalancer

from .aggregate import LoadBalancerFetcher, find_nat_pool, remove_element, replace_element
from .builder import build_nat_pool
from .client import execute_with_timeout, wait_for_poller
from .config import (
    DEFAULT_FETCH_TIMEOUT_SECONDS,
    DEFAULT_OPERATION_TIMEOUT_SECONDS,
    Config,
    PollingConfig,
)
from .errors import (
    CompletionTimeoutError,
    InvariantViolation,
    NatPoolError,
    RemoteOperationError,
)
from .locks import NamedLockRegistry
from .models import ImportedNatPool, NatPoolSpec, NatPoolState
from .poller import await_with_config
from .resource_id import (
    FRONTEND_IP_CONFIGURATIONS_KEY,
    NAT_POOLS_KEY,
    load_balancer_id_from_child,
    parse_load_balancer_id,
    parse_resource_id,
)

logger = logging.getLogger(__name__)


class ReconcilePhase(str, Enum):
    """Progress of a single reconcile operation."""

    IDLE = "Idle"
    LOCKED = "Locked"
    FETCHED = "Fetched"
    MUTATED = "Mutated"
    SUBMITTED = "Submitted"
    CONFIRMED = "Confirmed"
    DONE = "Done"
    # Terminal states reached early
    GONE = "Gone"
    ABORTED = "Aborted"


TERMINAL_PHASES = frozenset({ReconcilePhase.DONE, ReconcilePhase.GONE, ReconcilePhase.ABORTED})


@dataclass
class ReconcileResult:
    """Outcome of one create/update/delete operation."""

    operation: str
    nat_pool: str
    load_balancer_id: str
    phase: ReconcilePhase = ReconcilePhase.IDLE
    nat_pool_id: str | None = None
    changed: bool = False
    start_time: datetime = field(default_factory=lambda: datetime.now(UTC))
    end_time: datetime | None = None
    error: BaseException | None = None

    def advance(self, phase: ReconcilePhase) -> None:
        """Move to ``phase``; terminal phases also stamp the end time."""
        logger.debug(
            "Reconcile phase",
            extra={
                "operation": self.operation,
                "nat_pool": self.nat_pool,
                "from_phase": self.phase.value,
                "to_phase": phase.value,
            },
        )
        self.phase = phase
        if phase in TERMINAL_PHASES:
            self.end_time = datetime.now(UTC)

    def abort(self, error: BaseException) -> None:
        self.error = error
        self.advance(ReconcilePhase.ABORTED)

    @property
    def duration_seconds(self) -> float:
        """Calculate duration in seconds."""
        if self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time).total_seconds()

    @property
    def success(self) -> bool:
        return self.error is None


class NatPoolReconciler:
    """Create, read, update and delete inbound NAT pools.

    All reconcilers editing sub-resources of the same load balancers must
    share one NamedLockRegistry; that is what makes sibling edits safe.
    """

    def __init__(
        self,
        client: NetworkManagementClient,
        locks: NamedLockRegistry,
        *,
        polling: PollingConfig | None = None,
        operation_timeout_seconds: float = DEFAULT_OPERATION_TIMEOUT_SECONDS,
        fetch_timeout_seconds: float = DEFAULT_FETCH_TIMEOUT_SECONDS,
    ) -> None:
        self._client = client
        self._locks = locks
        self._polling = polling or PollingConfig()
        self._operation_timeout_seconds = operation_timeout_seconds
        self._submit_timeout_seconds = fetch_timeout_seconds
        self._fetcher = LoadBalancerFetcher(client, timeout_seconds=fetch_timeout_seconds)

    @classmethod
    def from_config(
        cls,
        config: Config,
        client: NetworkManagementClient,
        locks: NamedLockRegistry | None = None,
    ) -> NatPoolReconciler:
        """Build a reconciler using the timeouts and polling settings in ``config``."""
        return cls(
            client,
            locks or NamedLockRegistry(),
            polling=config.polling,
            operation_timeout_seconds=config.operation_timeout_seconds,
            fetch_timeout_seconds=config.fetch_timeout_seconds,
        )

    @property
    def locks(self) -> NamedLockRegistry:
        return self._locks

    # =========================================================================
    # Public operations
    # =========================================================================

    async def create_or_update(self, spec: NatPoolSpec) -> NatPoolState | None:
        """Make the load balancer's NAT pool named ``spec.name`` match ``spec``.

        A same-named pool is replaced entirely, never merged.

        Returns:
            The observed state after the update, or None if the load balancer
            no longer exists (the pool is then considered gone).

        Raises:
            ValidationError: If the frontend IP configuration cannot be resolved.
                Raised before anything is submitted.
            RemoteOperationError: If an Azure call fails.
            CompletionTimeoutError: If the update does not settle in time.
            InvariantViolation: If the re-fetched load balancer lacks the pool.
        """
        operation = "create_or_update"
        result = ReconcileResult(
            operation=operation, nat_pool=spec.name, load_balancer_id=spec.load_balancer_id
        )
        resource_group, lb_name = parse_load_balancer_id(spec.load_balancer_id)

        try:
            async with self._locks.hold(spec.load_balancer_id):
                result.advance(ReconcilePhase.LOCKED)

                load_balancer, exists = await self._fetcher.fetch(
                    spec.load_balancer_id, operation=operation, resource_name=spec.name
                )
                if not exists or load_balancer is None:
                    logger.info(
                        "Load balancer not found, NAT pool is gone",
                        extra={"nat_pool": spec.name, "load_balancer": lb_name},
                    )
                    result.advance(ReconcilePhase.GONE)
                    return None
                result.advance(ReconcilePhase.FETCHED)

                new_pool = build_nat_pool(spec, load_balancer)
                _, _, replacing = find_nat_pool(load_balancer, spec.name)
                load_balancer.inbound_nat_pools = replace_element(
                    load_balancer.inbound_nat_pools, spec.name, new_pool
                )
                result.advance(ReconcilePhase.MUTATED)
                logger.info(
                    "Updating NAT pool" if replacing else "Creating NAT pool",
                    extra={"nat_pool": spec.name, "load_balancer": lb_name},
                )

                await self._submit(load_balancer, resource_group, lb_name, operation, spec.name)
                result.changed = True
                result.advance(ReconcilePhase.SUBMITTED)

                await self._await_provisioned(spec.load_balancer_id, lb_name)
                confirmed = await self._refetch(
                    spec.load_balancer_id, lb_name, operation, spec.name
                )
                pool = self._require_pool(confirmed, spec.name, lb_name, operation)
                result.nat_pool_id = pool.id
                result.advance(ReconcilePhase.CONFIRMED)

            state = self._project(pool, pool.id, spec.load_balancer_id)
            result.advance(ReconcilePhase.DONE)
            return state

        except asyncio.CancelledError as e:
            result.abort(e)
            raise
        except Exception as e:
            self._add_context(e, operation, spec.name, lb_name)
            result.abort(e)
            raise
        finally:
            self._log_result(result)

    async def read(
        self, nat_pool_id: str, load_balancer_id: str | None = None
    ) -> NatPoolState | None:
        """Read a NAT pool back from Azure.

        Takes no lock; reads never modify the load balancer.

        Args:
            nat_pool_id: Full ARM ID of the NAT pool.
            load_balancer_id: Parent ID; derived from ``nat_pool_id`` if omitted.

        Returns:
            Observed state, or None if the load balancer or the pool no longer
            exists. The caller should then drop its record of the pool.
        """
        parsed = parse_resource_id(nat_pool_id)
        name = parsed.require(NAT_POOLS_KEY, nat_pool_id)
        load_balancer_id = load_balancer_id or load_balancer_id_from_child(nat_pool_id)

        load_balancer, exists = await self._fetcher.fetch(
            load_balancer_id, operation="read", resource_name=name
        )
        if not exists or load_balancer is None:
            logger.info(
                "Load balancer not found, NAT pool is gone",
                extra={"nat_pool": name, "load_balancer_id": load_balancer_id},
            )
            return None

        pool, _, found = find_nat_pool(load_balancer, name)
        if not found or pool is None:
            logger.info(
                "NAT pool not found",
                extra={"nat_pool": name, "load_balancer": load_balancer.name},
            )
            return None

        return self._project(pool, nat_pool_id, load_balancer_id)

    async def delete(self, target: NatPoolSpec | str) -> None:
        """Remove a NAT pool from its load balancer.

        Deleting a pool that is already gone, or whose load balancer is gone,
        succeeds without submitting anything.

        Args:
            target: The pool's spec, or its full ARM ID.
        """
        operation = "delete"
        if isinstance(target, NatPoolSpec):
            name, load_balancer_id = target.name, target.load_balancer_id
        else:
            name = parse_resource_id(target).require(NAT_POOLS_KEY, target)
            load_balancer_id = load_balancer_id_from_child(target)

        result = ReconcileResult(
            operation=operation, nat_pool=name, load_balancer_id=load_balancer_id
        )
        resource_group, lb_name = parse_load_balancer_id(load_balancer_id)

        try:
            async with self._locks.hold(load_balancer_id):
                result.advance(ReconcilePhase.LOCKED)

                load_balancer, exists = await self._fetcher.fetch(
                    load_balancer_id, operation=operation, resource_name=name
                )
                if not exists or load_balancer is None:
                    result.advance(ReconcilePhase.GONE)
                    return
                result.advance(ReconcilePhase.FETCHED)

                existing, _, found = find_nat_pool(load_balancer, name)
                if not found or existing is None:
                    logger.info(
                        "NAT pool already deleted",
                        extra={"nat_pool": name, "load_balancer": lb_name},
                    )
                    result.advance(ReconcilePhase.DONE)
                    return
                result.nat_pool_id = existing.id

                load_balancer.inbound_nat_pools = remove_element(
                    load_balancer.inbound_nat_pools, name
                )
                result.advance(ReconcilePhase.MUTATED)
                logger.info(
                    "Deleting NAT pool",
                    extra={"nat_pool": name, "load_balancer": lb_name},
                )

                await self._submit(load_balancer, resource_group, lb_name, operation, name)
                result.changed = True
                result.advance(ReconcilePhase.SUBMITTED)

                await self._await_provisioned(load_balancer_id, lb_name)
                confirmed = await self._refetch(load_balancer_id, lb_name, operation, name)
                _, _, still_present = find_nat_pool(confirmed, name)
                if still_present:
                    raise InvariantViolation(
                        "NAT pool is still present after the load balancer update",
                        operation=operation,
                        resource_name=name,
                        parent_name=lb_name,
                    )
                result.advance(ReconcilePhase.CONFIRMED)

            result.advance(ReconcilePhase.DONE)

        except asyncio.CancelledError as e:
            result.abort(e)
            raise
        except Exception as e:
            self._add_context(e, operation, name, lb_name)
            result.abort(e)
            raise
        finally:
            self._log_result(result)

    def import_state(self, nat_pool_id: str) -> ImportedNatPool:
        """Adopt an existing NAT pool; see import_nat_pool()."""
        return import_nat_pool(nat_pool_id)

    # =========================================================================
    # Remote steps
    # =========================================================================

    async def _submit(
        self,
        load_balancer: LoadBalancer,
        resource_group: str,
        lb_name: str,
        operation: str,
        nat_pool: str,
    ) -> None:
        """Submit the whole load balancer and wait for the long-running operation."""
        context = {"operation": operation, "resource_name": nat_pool, "parent_name": lb_name}
        where = f"load balancer {lb_name!r} (resource group {resource_group!r})"

        try:
            poller = await execute_with_timeout(
                lambda: self._client.load_balancers.begin_create_or_update(
                    resource_group, lb_name, load_balancer
                ),
                timeout_seconds=self._submit_timeout_seconds,
                operation_name=f"Submit load balancer {lb_name}",
            )
        except TimeoutError as e:
            raise CompletionTimeoutError(
                f"Timed out after {self._submit_timeout_seconds}s submitting {where}",
                timeout_seconds=self._submit_timeout_seconds,
                **context,
            ) from e
        except AzureError as e:
            raise RemoteOperationError(f"Creating/updating {where}: {e}", **context) from e

        try:
            await wait_for_poller(
                poller,
                timeout_seconds=self._operation_timeout_seconds,
                operation_name=f"Update load balancer {lb_name}",
            )
        except TimeoutError as e:
            raise CompletionTimeoutError(
                f"Timed out after {self._operation_timeout_seconds}s waiting for the "
                f"update of {where}",
                timeout_seconds=self._operation_timeout_seconds,
                **context,
            ) from e
        except AzureError as e:
            raise RemoteOperationError(
                f"Waiting for the completion of {where}: {e}", **context
            ) from e

    async def _await_provisioned(self, load_balancer_id: str, lb_name: str) -> str:
        return await await_with_config(
            lambda: self._fetcher.provisioning_state(load_balancer_id),
            self._polling,
            description=f"load balancer {lb_name} to become available",
        )

    async def _refetch(
        self, load_balancer_id: str, lb_name: str, operation: str, nat_pool: str
    ) -> LoadBalancer:
        load_balancer, exists = await self._fetcher.fetch(
            load_balancer_id, operation=operation, resource_name=nat_pool
        )
        if not exists or load_balancer is None:
            raise InvariantViolation(
                "Load balancer disappeared after update",
                operation=operation,
                resource_name=nat_pool,
                parent_name=lb_name,
            )
        if load_balancer.id is None:
            raise InvariantViolation(
                "Cannot read load balancer ID after update",
                operation=operation,
                resource_name=nat_pool,
                parent_name=lb_name,
            )
        return load_balancer

    @staticmethod
    def _require_pool(
        load_balancer: LoadBalancer, name: str, lb_name: str, operation: str
    ) -> InboundNatPool:
        if load_balancer.inbound_nat_pools is None:
            raise InvariantViolation(
                "Load balancer has no NAT pool collection after update",
                operation=operation,
                resource_name=name,
                parent_name=lb_name,
            )
        pool, _, found = find_nat_pool(load_balancer, name)
        if not found or pool is None or not pool.id:
            raise InvariantViolation(
                "Cannot find created NAT pool ID",
                operation=operation,
                resource_name=name,
                parent_name=lb_name,
            )
        return pool

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _project(pool: InboundNatPool, nat_pool_id: str, load_balancer_id: str) -> NatPoolState:
        """Project an InboundNatPool into observed state."""
        feip_id: str | None = None
        feip_name: str | None = None
        if pool.frontend_ip_configuration is not None and pool.frontend_ip_configuration.id:
            feip_id = pool.frontend_ip_configuration.id
            feip_name = parse_resource_id(feip_id).get(FRONTEND_IP_CONFIGURATIONS_KEY)

        protocol: Any = pool.protocol
        if protocol is not None:
            protocol = str(getattr(protocol, "value", protocol))
        return NatPoolState(
            id=pool.id or nat_pool_id,
            name=pool.name,
            load_balancer_id=load_balancer_id,
            resource_group_name=parse_resource_id(nat_pool_id).resource_group,
            protocol=protocol,
            frontend_port_start=pool.frontend_port_range_start,
            frontend_port_end=pool.frontend_port_range_end,
            backend_port=pool.backend_port,
            frontend_ip_configuration_name=feip_name,
            frontend_ip_configuration_id=feip_id,
        )

    @staticmethod
    def _add_context(error: Exception, operation: str, nat_pool: str, lb_name: str) -> None:
        """Fill in missing context on a NatPoolError before it propagates."""
        if not isinstance(error, NatPoolError):
            return
        error.operation = error.operation or operation
        error.resource_name = error.resource_name or nat_pool
        error.parent_name = error.parent_name or lb_name

    def _log_result(self, result: ReconcileResult) -> None:
        """Log reconciliation result with structured data."""
        extra: dict[str, Any] = {
            "operation": result.operation,
            "nat_pool": result.nat_pool,
            "load_balancer_id": result.load_balancer_id,
            "phase": result.phase.value,
            "changed": result.changed,
            "duration_seconds": result.duration_seconds,
        }
        if result.nat_pool_id is not None:
            extra["nat_pool_id"] = result.nat_pool_id

        if isinstance(result.error, asyncio.CancelledError):
            logger.warning("Reconciliation cancelled", extra=extra)
        elif result.error is not None:
            extra["error"] = str(result.error)
            extra["error_type"] = type(result.error).__name__
            logger.error("Reconciliation failed", extra=extra)
        else:
            logger.info("Reconciliation result", extra=extra)


def import_nat_pool(nat_pool_id: str) -> ImportedNatPool:
    """Reconstruct the identifying fields of an existing NAT pool from its ID.

    Used to adopt pools created outside the reconciler. No Azure call is
    made; a subsequent read() fills in the rest.

    Raises:
        ValidationError: If the ID is not a NAT pool ID.
    """
    parsed = parse_resource_id(nat_pool_id)
    return ImportedNatPool(
        id=nat_pool_id,
        name=parsed.require(NAT_POOLS_KEY, nat_pool_id),
        resource_group_name=parsed.resource_group,
        load_balancer_id=load_balancer_id_from_child(nat_pool_id),
    )
