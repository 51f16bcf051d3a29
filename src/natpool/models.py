"""Pydantic models for NAT pool desired and observed state.

These models provide:
1. Type-safe YAML parsing (snake_case or camelCase keys)
2. Validation at the boundary (fail fast, fail loudly)
3. A single definition of the fields read back from Azure
"""

from __future__ import annotations

from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .errors import ValidationError as ResourceIdError
from .resource_id import LOAD_BALANCERS_KEY, parse_resource_id

# =============================================================================
# Field types
# =============================================================================

PortNumber = Annotated[int, Field(ge=1, le=65535)]

# Canonical casing used by the Azure Network API
SUPPORTED_PROTOCOLS: dict[str, str] = {
    "tcp": "Tcp",
    "udp": "Udp",
}


def normalize_protocol(value: str) -> str:
    """Normalize a protocol name to its canonical casing.

    Raises:
        ValueError: If the protocol is not TCP or UDP.
    """
    canonical = SUPPORTED_PROTOCOLS.get(str(value).strip().lower())
    if canonical is None:
        raise ValueError(f"protocol must be one of {sorted(SUPPORTED_PROTOCOLS.values())}")
    return canonical


def canonical_protocol(value: str | None) -> str | None:
    """Like normalize_protocol() but pass unknown values through unchanged.

    Used for observed state: Azure also reports protocols this tool never
    writes, e.g. "All" on a pool edited elsewhere.
    """
    if value is None:
        return None
    return SUPPORTED_PROTOCOLS.get(str(value).strip().lower(), str(value))


class _NatPoolFields(BaseModel):
    """Fields shared by desired and observed NAT pool state."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    name: Annotated[str, Field(min_length=1, max_length=80)]
    load_balancer_id: Annotated[str, Field(min_length=1, alias="loadBalancerId")]
    resource_group_name: str | None = Field(None, alias="resourceGroupName")
    protocol: str
    frontend_port_start: PortNumber = Field(alias="frontendPortStart")
    frontend_port_end: PortNumber = Field(alias="frontendPortEnd")
    backend_port: PortNumber = Field(alias="backendPort")
    frontend_ip_configuration_name: Annotated[
        str, Field(min_length=1, alias="frontendIpConfigurationName")
    ]


class NatPoolSpec(_NatPoolFields):
    """Desired state of one inbound NAT pool.

    ``name`` and ``load_balancer_id`` identify the pool and cannot change
    for an existing pool; changing either means a different pool.
    """

    @field_validator("protocol")
    @classmethod
    def validate_protocol(cls, v: str) -> str:
        return normalize_protocol(v)

    @field_validator("load_balancer_id")
    @classmethod
    def validate_load_balancer_id(cls, v: str) -> str:
        try:
            parsed = parse_resource_id(v)
        except ResourceIdError as e:
            raise ValueError(str(e)) from e
        if not parsed.get(LOAD_BALANCERS_KEY):
            raise ValueError(f"load_balancer_id is not a load balancer ID: {v}")
        return v

    @model_validator(mode="before")
    @classmethod
    def derive_resource_group(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        if data.get("resource_group_name") or data.get("resourceGroupName"):
            return data
        load_balancer_id = data.get("load_balancer_id") or data.get("loadBalancerId")
        if not isinstance(load_balancer_id, str):
            return data
        try:
            resource_group = parse_resource_id(load_balancer_id).resource_group
        except ResourceIdError:
            # reported by validate_load_balancer_id
            return data
        return {**data, "resource_group_name": resource_group}


class NatPoolState(_NatPoolFields):
    """Observed state of an inbound NAT pool as read back from Azure."""

    id: str
    # Taken as reported; only desired state is held to the port and protocol bounds
    protocol: str | None = None
    frontend_port_start: int | None = Field(None, alias="frontendPortStart")
    frontend_port_end: int | None = Field(None, alias="frontendPortEnd")
    backend_port: int | None = Field(None, alias="backendPort")
    # Pools created outside this reconciler may lack a frontend reference
    frontend_ip_configuration_name: str | None = Field(None, alias="frontendIpConfigurationName")
    frontend_ip_configuration_id: str | None = Field(None, alias="frontendIpConfigurationId")

    @field_validator("protocol")
    @classmethod
    def canonicalize_protocol(cls, v: str | None) -> str | None:
        return canonical_protocol(v)

    def matches(self, spec: NatPoolSpec) -> bool:
        """Check whether every desired field equals its observed value."""
        return (
            self.name == spec.name
            and self.protocol == spec.protocol
            and self.frontend_port_start == spec.frontend_port_start
            and self.frontend_port_end == spec.frontend_port_end
            and self.backend_port == spec.backend_port
            and self.frontend_ip_configuration_name == spec.frontend_ip_configuration_name
        )


class ImportedNatPool(BaseModel):
    """Minimal state reconstructed from a NAT pool ID alone."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    resource_group_name: str
    load_balancer_id: str
