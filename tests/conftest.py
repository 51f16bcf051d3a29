"""Pytest configuration and fixtures."""

import sys
from pathlib import Path

import pytest

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

# Add tests to path for azure_mock imports
tests_path = Path(__file__).parent
sys.path.insert(0, str(tests_path))

from azure_mock import MockNetworkClient  # noqa: E402

from natpool.config import PollingConfig  # noqa: E402
from natpool.locks import NamedLockRegistry  # noqa: E402
from natpool.reconciler import NatPoolReconciler  # noqa: E402

# Millisecond polling keeps the suite fast
FAST_POLLING = PollingConfig(
    timeout_seconds=2.0,
    min_interval_seconds=0.001,
    max_interval_seconds=0.01,
)


@pytest.fixture
def client() -> MockNetworkClient:
    return MockNetworkClient()


@pytest.fixture
def lb_id(client: MockNetworkClient) -> str:
    """A load balancer with one frontend IP configuration and no NAT pools."""
    return client.state.add_load_balancer("lb1", frontend_ip_configurations=["feip1"])


@pytest.fixture
def locks() -> NamedLockRegistry:
    return NamedLockRegistry()


@pytest.fixture
def reconciler(client: MockNetworkClient, locks: NamedLockRegistry) -> NatPoolReconciler:
    return NatPoolReconciler(
        client,  # type: ignore[arg-type]
        locks,
        polling=FAST_POLLING,
        operation_timeout_seconds=5,
        fetch_timeout_seconds=5,
    )
