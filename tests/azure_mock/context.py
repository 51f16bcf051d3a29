"""Azure mock context for CLI tests.

Patches the Network client factory used by the CLI with an in-memory mock.
"""

from __future__ import annotations

from typing import Any
from unittest import mock

from .network import MockNetworkClient, MockNetworkState


class MockNetworkContext:
    """Context manager for Network API mocking.

    Patches:
    - natpool.cli.create_network_client → returns a MockNetworkClient

    Usage:
        with MockNetworkContext() as ctx:
            lb_id = ctx.state.add_load_balancer("lb1", frontend_ip_configurations=["feip1"])
            result = CliRunner().invoke(cli, ["apply", "-f", "pool.yaml"])
            assert ctx.state.submit_count == 1
    """

    def __init__(self, state: MockNetworkState | None = None) -> None:
        self._state = state
        self._client: MockNetworkClient | None = None
        self._patches: list[Any] = []
        self.factory_calls = 0

    @property
    def state(self) -> MockNetworkState:
        """Get the mock network state.

        Raises:
            RuntimeError: If accessed outside of context.
        """
        if self._client is None:
            raise RuntimeError("MockNetworkContext must be used as a context manager")
        return self._client.state

    @property
    def client(self) -> MockNetworkClient:
        if self._client is None:
            raise RuntimeError("MockNetworkContext must be used as a context manager")
        return self._client

    def _factory(self, config: Any) -> MockNetworkClient:  # noqa: ARG002 - factory signature
        self.factory_calls += 1
        return self.client

    def __enter__(self) -> MockNetworkContext:
        self._client = MockNetworkClient(self._state)
        patcher = mock.patch("natpool.cli.create_network_client", side_effect=self._factory)
        patcher.start()
        self._patches.append(patcher)
        return self

    def __exit__(self, *args: Any) -> None:
        for patcher in reversed(self._patches):
            patcher.stop()
        self._patches.clear()
