"""Build the wire representation of a NAT pool from desired state."""

from __future__ import annotations

from azure.mgmt.network.models import InboundNatPool, LoadBalancer, SubResource

from .aggregate import find_frontend_ip_configuration
from .errors import MissingReferenceError
from .models import NatPoolSpec


def build_nat_pool(spec: NatPoolSpec, load_balancer: LoadBalancer) -> InboundNatPool:
    """Translate a NatPoolSpec into an InboundNatPool for ``load_balancer``.

    Ports and protocol are copied as-is; they were validated when the spec
    was parsed. The frontend IP configuration is resolved by name against
    the load balancer's own collection and referenced by ID.

    The returned pool has no ID. Azure assigns one when the load balancer
    is persisted.

    Raises:
        MissingReferenceError: If the frontend IP configuration does not
            exist on the load balancer.
    """
    frontend_ip_configuration: SubResource | None = None

    if spec.frontend_ip_configuration_name:
        config, _, exists = find_frontend_ip_configuration(
            load_balancer, spec.frontend_ip_configuration_name
        )
        if not exists or config is None:
            raise MissingReferenceError(
                f"Cannot find frontend IP configuration with the name "
                f"{spec.frontend_ip_configuration_name!r}",
                operation="build",
                resource_name=spec.name,
                parent_name=load_balancer.name,
            )
        frontend_ip_configuration = SubResource(id=config.id)

    return InboundNatPool(
        name=spec.name,
        protocol=spec.protocol,
        frontend_port_range_start=spec.frontend_port_start,
        frontend_port_range_end=spec.frontend_port_end,
        backend_port=spec.backend_port,
        frontend_ip_configuration=frontend_ip_configuration,
    )
