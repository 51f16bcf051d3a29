"""Managed identity credentials for the Network API.

The reconciler authenticates only with a managed identity. Secret-bearing
environment variables (service principal secrets, certificates, user
passwords) make DefaultAzureCredential-style chains pick them up silently,
so their presence is treated as a fatal misconfiguration.
"""

from __future__ import annotations

import logging
import os

from azure.identity import ManagedIdentityCredential

logger = logging.getLogger(__name__)

# Environment variables that indicate secret-based authentication
FORBIDDEN_CREDENTIAL_ENV_VARS: tuple[str, ...] = (
    "AZURE_CLIENT_SECRET",
    "AZURE_CLIENT_CERTIFICATE_PATH",
    "AZURE_CLIENT_CERTIFICATE_PASSWORD",
    "AZURE_USERNAME",
    "AZURE_PASSWORD",
)

SECRETLESS_VIOLATION_MESSAGE = (
    "SECURITY VIOLATION: {env_var} is set. The NAT pool reconciler authenticates "
    "with a managed identity only. Remove the variable and grant the identity "
    "Network Contributor on the load balancer's resource group."
)


class SecretlessViolationError(Exception):
    """Raised when a credential secret is present in the environment."""

    pass


def enforce_secretless_architecture() -> None:
    """Refuse to continue when credential secrets are present.

    Raises:
        SecretlessViolationError: If any forbidden variable is set.
    """
    for env_var in FORBIDDEN_CREDENTIAL_ENV_VARS:
        if os.environ.get(env_var):
            logger.critical(
                "Secretless architecture violation",
                extra={"security_event": "credential_detected", "env_var": env_var},
            )
            raise SecretlessViolationError(SECRETLESS_VIOLATION_MESSAGE.format(env_var=env_var))


def get_managed_identity_credential(
    client_id: str | None = None,
) -> ManagedIdentityCredential:
    """Return a ManagedIdentityCredential after checking the environment.

    Args:
        client_id: Client ID of a user-assigned identity. None selects the
            system-assigned identity.

    Raises:
        SecretlessViolationError: If credential environment variables are set.
    """
    enforce_secretless_architecture()

    if client_id:
        logger.info(
            "Using user-assigned managed identity",
            extra={"client_id": client_id[:8] + "..." if len(client_id) > 8 else client_id},
        )
        return ManagedIdentityCredential(client_id=client_id)

    logger.info("Using system-assigned managed identity")
    return ManagedIdentityCredential()
