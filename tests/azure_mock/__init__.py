"""Azure Network API mock for integration testing.

Provides an in-memory stand-in for NetworkManagementClient so the
reconciler can be exercised end to end without Azure connectivity.

Key Features:
- In-memory load balancers with whole-document get/update semantics
- Automatic ID assignment for new NAT pools and frontend IP configurations
- Scripted provisioning states after an update
- One-shot error injection for get, submit and the long-running poller
- Call log for asserting on what was (not) submitted

Usage:
    from azure_mock import MockNetworkClient

    client = MockNetworkClient()
    lb_id = client.state.add_load_balancer("lb1", frontend_ip_configurations=["feip1"])
    reconciler = NatPoolReconciler(client, NamedLockRegistry())
"""

from .context import MockNetworkContext
from .network import (
    DEFAULT_RESOURCE_GROUP,
    DEFAULT_SUBSCRIPTION_ID,
    MockCall,
    MockLROPoller,
    MockNetworkClient,
    MockNetworkState,
    load_balancer_id,
    nat_pool,
)

__all__ = [
    "DEFAULT_RESOURCE_GROUP",
    "DEFAULT_SUBSCRIPTION_ID",
    "MockCall",
    "MockLROPoller",
    "MockNetworkClient",
    "MockNetworkContext",
    "MockNetworkState",
    "load_balancer_id",
    "nat_pool",
]
