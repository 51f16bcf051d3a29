"""Tests for NAT pool pydantic models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from natpool.models import NatPoolSpec, NatPoolState, normalize_protocol

LB_ID = (
    "/subscriptions/12345678-1234-1234-1234-123456789012/resourceGroups/rg-network"
    "/providers/Microsoft.Network/loadBalancers/lb1"
)


def spec_data(**overrides: object) -> dict[str, object]:
    data: dict[str, object] = {
        "name": "pool1",
        "loadBalancerId": LB_ID,
        "protocol": "Tcp",
        "frontendPortStart": 50000,
        "frontendPortEnd": 50100,
        "backendPort": 22,
        "frontendIpConfigurationName": "feip1",
    }
    data.update(overrides)
    return data


class TestNormalizeProtocol:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("Tcp", "Tcp"), ("TCP", "Tcp"), ("tcp", "Tcp"), (" udp ", "Udp"), ("UDP", "Udp")],
    )
    def test_canonical_casing(self, raw: str, expected: str) -> None:
        assert normalize_protocol(raw) == expected

    @pytest.mark.parametrize("raw", ["All", "icmp", ""])
    def test_unsupported(self, raw: str) -> None:
        with pytest.raises(ValueError):
            normalize_protocol(raw)


class TestNatPoolSpec:
    """Tests for NatPoolSpec validation."""

    def test_camel_case_keys(self) -> None:
        spec = NatPoolSpec.model_validate(spec_data())

        assert spec.name == "pool1"
        assert spec.load_balancer_id == LB_ID
        assert spec.frontend_port_start == 50000
        assert spec.frontend_ip_configuration_name == "feip1"

    def test_snake_case_keys(self) -> None:
        spec = NatPoolSpec(
            name="pool1",
            load_balancer_id=LB_ID,
            protocol="udp",
            frontend_port_start=1,
            frontend_port_end=65535,
            backend_port=65535,
            frontend_ip_configuration_name="feip1",
        )

        assert spec.protocol == "Udp"

    def test_resource_group_derived(self) -> None:
        spec = NatPoolSpec.model_validate(spec_data())

        assert spec.resource_group_name == "rg-network"

    def test_explicit_resource_group_kept(self) -> None:
        spec = NatPoolSpec.model_validate(spec_data(resourceGroupName="rg-other"))

        assert spec.resource_group_name == "rg-other"

    @pytest.mark.parametrize(
        "field",
        ["frontendPortStart", "frontendPortEnd", "backendPort"],
    )
    @pytest.mark.parametrize("value", [0, 65536, -1])
    def test_port_out_of_range(self, field: str, value: int) -> None:
        with pytest.raises(ValidationError):
            NatPoolSpec.model_validate(spec_data(**{field: value}))

    def test_unsupported_protocol(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            NatPoolSpec.model_validate(spec_data(protocol="All"))

        assert "protocol" in str(exc_info.value)

    def test_malformed_load_balancer_id(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            NatPoolSpec.model_validate(spec_data(loadBalancerId="lb1"))

        assert "absolute path" in str(exc_info.value)

    def test_load_balancer_id_of_other_type(self) -> None:
        other = LB_ID.replace("loadBalancers", "virtualNetworks")

        with pytest.raises(ValidationError) as exc_info:
            NatPoolSpec.model_validate(spec_data(loadBalancerId=other))

        assert "not a load balancer ID" in str(exc_info.value)

    @pytest.mark.parametrize(
        "missing",
        ["name", "loadBalancerId", "protocol", "frontendIpConfigurationName"],
    )
    def test_required_fields(self, missing: str) -> None:
        data = spec_data()
        del data[missing]

        with pytest.raises(ValidationError):
            NatPoolSpec.model_validate(data)

    def test_unknown_keys_ignored(self) -> None:
        spec = NatPoolSpec.model_validate(spec_data(enableFloatingIp=True))

        assert spec.name == "pool1"

    def test_frozen(self) -> None:
        spec = NatPoolSpec.model_validate(spec_data())

        with pytest.raises(ValidationError):
            spec.backend_port = 80  # type: ignore[misc]


class TestNatPoolState:
    def test_matches(self) -> None:
        spec = NatPoolSpec.model_validate(spec_data())
        state = NatPoolState.model_validate(
            {**spec_data(), "id": f"{LB_ID}/inboundNatPools/pool1"}
        )

        assert state.matches(spec)
        assert not state.model_copy(update={"backend_port": 80}).matches(spec)

    def test_frontend_name_optional(self) -> None:
        data = spec_data(id=f"{LB_ID}/inboundNatPools/pool1")
        del data["frontendIpConfigurationName"]

        state = NatPoolState.model_validate(data)

        assert state.frontend_ip_configuration_name is None
        assert state.frontend_ip_configuration_id is None

    def test_observed_protocol_passed_through(self) -> None:
        data = spec_data(id=f"{LB_ID}/inboundNatPools/pool1", protocol="All")

        state = NatPoolState.model_validate(data)

        assert state.protocol == "All"

    def test_observed_protocol_casing_normalized(self) -> None:
        state = NatPoolState.model_validate(
            spec_data(id=f"{LB_ID}/inboundNatPools/pool1", protocol="udp")
        )

        assert state.protocol == "Udp"

    def test_observed_ports_optional(self) -> None:
        data = spec_data(id=f"{LB_ID}/inboundNatPools/pool1")
        for key in ("protocol", "frontendPortStart", "frontendPortEnd", "backendPort"):
            del data[key]

        state = NatPoolState.model_validate(data)

        assert state.protocol is None
        assert state.backend_port is None
