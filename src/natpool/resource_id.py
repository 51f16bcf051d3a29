"""Azure resource ID parsing.

Azure resource IDs follow the pattern:
/subscriptions/{sub}/resourceGroups/{rg}/providers/{namespace}/{type}/{name}[/{childType}/{childName}...]

A NAT pool ID is therefore:
/subscriptions/{sub}/resourceGroups/{rg}/providers/Microsoft.Network/loadBalancers/{lb}/inboundNatPools/{pool}
"""

from __future__ import annotations

from dataclasses import dataclass, field

from .errors import ValidationError

NETWORK_PROVIDER = "Microsoft.Network"
LOAD_BALANCERS_KEY = "loadBalancers"
NAT_POOLS_KEY = "inboundNatPools"
FRONTEND_IP_CONFIGURATIONS_KEY = "frontendIPConfigurations"


@dataclass(frozen=True)
class ResourceId:
    """A parsed Azure resource ID.

    ``path`` holds the type/name pairs following the provider namespace in
    the order they appear, e.g. ``{"loadBalancers": "lb1", "inboundNatPools": "pool1"}``.
    """

    subscription_id: str
    resource_group: str
    provider: str | None = None
    path: dict[str, str] = field(default_factory=dict)

    def get(self, key: str) -> str | None:
        """Look up a path segment by type, ignoring case.

        ARM is inconsistent about casing (``frontendIPConfigurations`` vs
        ``frontendIpConfigurations``), so lookups never depend on it.
        """
        wanted = key.lower()
        for segment, value in self.path.items():
            if segment.lower() == wanted:
                return value
        return None

    def require(self, key: str, resource_id: str) -> str:
        """Like get() but raise ValidationError when the segment is missing."""
        value = self.get(key)
        if not value:
            raise ValidationError(f"Resource ID {resource_id!r} has no '{key}' segment")
        return value


def parse_resource_id(resource_id: str) -> ResourceId:
    """Parse an Azure resource ID into its components.

    Args:
        resource_id: Fully-qualified Azure resource ID.

    Returns:
        Parsed ResourceId.

    Raises:
        ValidationError: If the ID is empty, relative, or has an odd number of
            segments, or lacks a subscription or resource group.
    """
    if not resource_id or not resource_id.startswith("/"):
        raise ValidationError(f"Resource ID must be an absolute path: {resource_id!r}")

    segments = resource_id.strip("/").split("/")
    if len(segments) % 2 != 0:
        raise ValidationError(
            f"Resource ID has an odd number of segments, expected type/name pairs: {resource_id!r}"
        )

    components: list[tuple[str, str]] = []
    for i in range(0, len(segments), 2):
        key, value = segments[i], segments[i + 1]
        if not key or not value:
            raise ValidationError(f"Resource ID contains an empty segment: {resource_id!r}")
        components.append((key, value))

    subscription_id: str | None = None
    resource_group: str | None = None
    provider: str | None = None
    path: dict[str, str] = {}

    for key, value in components:
        lowered = key.lower()
        if lowered == "subscriptions" and subscription_id is None:
            subscription_id = value
        elif lowered == "resourcegroups" and resource_group is None:
            resource_group = value
        elif lowered == "providers" and provider is None:
            provider = value
        else:
            path[key] = value

    if not subscription_id:
        raise ValidationError(f"Resource ID has no subscription: {resource_id!r}")
    if not resource_group:
        raise ValidationError(f"Resource ID has no resource group: {resource_id!r}")

    return ResourceId(
        subscription_id=subscription_id,
        resource_group=resource_group,
        provider=provider,
        path=path,
    )


def parse_load_balancer_id(load_balancer_id: str) -> tuple[str, str]:
    """Return ``(resource_group, load_balancer_name)`` for a load balancer ID.

    Raises:
        ValidationError: If the ID is malformed or not a load balancer ID.
    """
    parsed = parse_resource_id(load_balancer_id)
    name = parsed.require(LOAD_BALANCERS_KEY, load_balancer_id)
    return parsed.resource_group, name


def load_balancer_id_from_child(child_id: str) -> str:
    """Derive the parent load balancer ID from a load balancer sub-resource ID.

    Raises:
        ValidationError: If the ID does not contain a load balancer segment.
    """
    parsed = parse_resource_id(child_id)
    name = parsed.require(LOAD_BALANCERS_KEY, child_id)
    return build_load_balancer_id(
        parsed.subscription_id, parsed.resource_group, name, provider=parsed.provider
    )


def build_load_balancer_id(
    subscription_id: str,
    resource_group: str,
    load_balancer_name: str,
    provider: str | None = None,
) -> str:
    """Build a load balancer resource ID."""
    return (
        f"/subscriptions/{subscription_id}"
        f"/resourceGroups/{resource_group}"
        f"/providers/{provider or NETWORK_PROVIDER}/{LOAD_BALANCERS_KEY}/{load_balancer_name}"
    )
