"""Error taxonomy for NAT pool reconciliation.

Every error carries the operation being performed, the NAT pool name and
the parent load balancer name so a failure reported to the orchestrator
can be diagnosed without re-running it.

Only two conditions are ever swallowed by the reconciler: deleting a NAT
pool that is already gone and reading a NAT pool that is already gone.
Everything else propagates.
"""

from __future__ import annotations


class NatPoolError(Exception):
    """Base class for all reconciliation errors."""

    def __init__(
        self,
        message: str,
        *,
        operation: str | None = None,
        resource_name: str | None = None,
        parent_name: str | None = None,
    ) -> None:
        self.operation = operation
        self.resource_name = resource_name
        self.parent_name = parent_name
        super().__init__(message)

    def __str__(self) -> str:
        message = super().__str__()
        context = []
        if self.operation:
            context.append(f"operation={self.operation}")
        if self.resource_name:
            context.append(f"nat_pool={self.resource_name}")
        if self.parent_name:
            context.append(f"load_balancer={self.parent_name}")
        if not context:
            return message
        return f"{message} ({', '.join(context)})"

    @property
    def context(self) -> dict[str, str | None]:
        """Context fields for structured logging."""
        return {
            "operation": self.operation,
            "nat_pool": self.resource_name,
            "load_balancer": self.parent_name,
        }


class NotFoundError(NatPoolError):
    """Raised when the parent load balancer or a sibling reference is missing."""

    pass


class ValidationError(NatPoolError):
    """Raised for malformed identifiers or unresolvable cross-references.

    Always fatal, never retried by the reconciler.
    """

    pass


class MissingReferenceError(ValidationError, NotFoundError):
    """Raised when a referenced frontend IP configuration does not exist."""

    pass


class RemoteOperationError(NatPoolError):
    """Raised when an Azure API call fails.

    The underlying azure-core exception is chained as ``__cause__``.
    Retry policy belongs to the caller.
    """

    pass


class UnexpectedStateError(RemoteOperationError):
    """Raised when the provisioning state leaves the expected pending/target sets."""

    def __init__(self, message: str, *, state: str | None = None, **kwargs: str | None) -> None:
        self.state = state
        super().__init__(message, **kwargs)


class CompletionTimeoutError(NatPoolError, TimeoutError):
    """Raised when waiting for an operation to settle exceeds its budget."""

    def __init__(
        self, message: str, *, timeout_seconds: float | None = None, **kwargs: str | None
    ) -> None:
        self.timeout_seconds = timeout_seconds
        super().__init__(message, **kwargs)


class InvariantViolation(NatPoolError):
    """Raised when the remote state is inconsistent with a just-completed update.

    Example: the re-fetched load balancer does not contain the NAT pool that
    was just submitted.
    """

    pass
