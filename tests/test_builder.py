"""Tests for building InboundNatPool payloads."""

from __future__ import annotations

import pytest
from azure_mock import MockNetworkClient

from natpool.builder import build_nat_pool
from natpool.errors import MissingReferenceError, NotFoundError, ValidationError
from natpool.models import NatPoolSpec


def make_spec(lb_id: str, **overrides: object) -> NatPoolSpec:
    data: dict[str, object] = {
        "name": "pool1",
        "load_balancer_id": lb_id,
        "protocol": "Tcp",
        "frontend_port_start": 50000,
        "frontend_port_end": 50100,
        "backend_port": 22,
        "frontend_ip_configuration_name": "feip1",
    }
    data.update(overrides)
    return NatPoolSpec.model_validate(data)


class TestBuildNatPool:
    def test_fields_copied(self, client: MockNetworkClient, lb_id: str) -> None:
        load_balancer = client.state.get_load_balancer("lb1")

        pool = build_nat_pool(make_spec(lb_id), load_balancer)

        assert pool.name == "pool1"
        assert pool.protocol == "Tcp"
        assert pool.frontend_port_range_start == 50000
        assert pool.frontend_port_range_end == 50100
        assert pool.backend_port == 22
        assert pool.id is None

    def test_frontend_reference_resolved_to_id(self, client: MockNetworkClient, lb_id: str) -> None:
        load_balancer = client.state.get_load_balancer("lb1")

        pool = build_nat_pool(make_spec(lb_id), load_balancer)

        assert pool.frontend_ip_configuration.id == f"{lb_id}/frontendIPConfigurations/feip1"

    def test_protocol_is_canonical(self, client: MockNetworkClient, lb_id: str) -> None:
        load_balancer = client.state.get_load_balancer("lb1")

        pool = build_nat_pool(make_spec(lb_id, protocol="udp"), load_balancer)

        assert pool.protocol == "Udp"

    def test_missing_frontend(self, client: MockNetworkClient, lb_id: str) -> None:
        load_balancer = client.state.get_load_balancer("lb1")

        with pytest.raises(MissingReferenceError) as exc_info:
            build_nat_pool(
                make_spec(lb_id, frontend_ip_configuration_name="feip-missing"), load_balancer
            )

        error = exc_info.value
        assert isinstance(error, ValidationError)
        assert isinstance(error, NotFoundError)
        assert "Cannot find frontend IP configuration with the name 'feip-missing'" in str(error)
        assert error.resource_name == "pool1"
        assert error.parent_name == "lb1"

    def test_does_not_touch_load_balancer(self, client: MockNetworkClient, lb_id: str) -> None:
        load_balancer = client.state.get_load_balancer("lb1")

        build_nat_pool(make_spec(lb_id), load_balancer)

        assert load_balancer.inbound_nat_pools == []
