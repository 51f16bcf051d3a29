"""Configuration management with validation.

All limits are validated at load time so a misconfigured reconciler fails
before it touches a load balancer.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field


class ConfigurationError(Exception):
    """Raised when configuration validation fails."""

    pass


# Configuration constants with documented bounds
DEFAULT_OPERATION_TIMEOUT_SECONDS = 1800
DEFAULT_FETCH_TIMEOUT_SECONDS = 120

# Provisioning state polling after a load balancer update
DEFAULT_POLL_TIMEOUT_SECONDS = 600
DEFAULT_POLL_MIN_INTERVAL_SECONDS = 1.0
DEFAULT_POLL_MAX_INTERVAL_SECONDS = 10.0
MAX_POLL_TIMEOUT_SECONDS = 3600

DEFAULT_PENDING_STATES: tuple[str, ...] = ("Accepted", "Updating")
DEFAULT_TARGET_STATES: tuple[str, ...] = ("Succeeded",)

# Spec file limits
MAX_SPEC_FILE_SIZE_BYTES = 1024 * 1024  # 1MB max spec file

VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
VALID_LOG_FORMATS = ("json", "text")

# Input validation patterns
VALID_SUBSCRIPTION_ID_PATTERN = r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$"


@dataclass(frozen=True)
class PollingConfig:
    """Provisioning state polling behaviour.

    The pending and target sets are configuration rather than logic so they
    can be adjusted for API versions that report different transient states.
    """

    timeout_seconds: float = DEFAULT_POLL_TIMEOUT_SECONDS
    min_interval_seconds: float = DEFAULT_POLL_MIN_INTERVAL_SECONDS
    max_interval_seconds: float = DEFAULT_POLL_MAX_INTERVAL_SECONDS
    pending_states: tuple[str, ...] = DEFAULT_PENDING_STATES
    target_states: tuple[str, ...] = DEFAULT_TARGET_STATES


@dataclass(frozen=True)
class Config:
    """Reconciler configuration loaded from environment variables.

    All fields are validated at construction time. Invalid configurations
    raise ConfigurationError immediately rather than failing mid-operation.
    """

    subscription_id: str

    # User-assigned identity; None selects the system-assigned identity
    managed_identity_client_id: str | None = None

    # Timing
    operation_timeout_seconds: int = DEFAULT_OPERATION_TIMEOUT_SECONDS
    fetch_timeout_seconds: int = DEFAULT_FETCH_TIMEOUT_SECONDS
    polling: PollingConfig = field(default_factory=PollingConfig)

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        errors: list[str] = []

        if not self.subscription_id:
            errors.append("AZURE_SUBSCRIPTION_ID is required")
        elif not re.match(VALID_SUBSCRIPTION_ID_PATTERN, self.subscription_id.lower()):
            errors.append(f"AZURE_SUBSCRIPTION_ID must be a valid GUID: {self.subscription_id}")

        if self.operation_timeout_seconds < 1:
            errors.append("OPERATION_TIMEOUT must be at least 1 second")

        if self.fetch_timeout_seconds < 1:
            errors.append("FETCH_TIMEOUT must be at least 1 second")

        polling = self.polling
        if not (0 < polling.timeout_seconds <= MAX_POLL_TIMEOUT_SECONDS):
            errors.append(f"POLL_TIMEOUT must be between 1 and {MAX_POLL_TIMEOUT_SECONDS} seconds")

        if polling.min_interval_seconds <= 0:
            errors.append("POLL_MIN_INTERVAL must be positive")
        elif polling.max_interval_seconds < polling.min_interval_seconds:
            errors.append("POLL_MAX_INTERVAL must not be smaller than POLL_MIN_INTERVAL")

        if not polling.target_states:
            errors.append("POLL_TARGET_STATES must name at least one state")

        overlap = set(polling.pending_states) & set(polling.target_states)
        if overlap:
            errors.append(f"States cannot be both pending and target: {sorted(overlap)}")

        if self.log_level.upper() not in VALID_LOG_LEVELS:
            errors.append(f"LOG_LEVEL must be one of {VALID_LOG_LEVELS}: {self.log_level}")

        if self.log_format not in VALID_LOG_FORMATS:
            errors.append(f"LOG_FORMAT must be one of {VALID_LOG_FORMATS}: {self.log_format}")

        if errors:
            error_msg = "Configuration validation failed:\n  - " + "\n  - ".join(errors)
            raise ConfigurationError(error_msg)

    @classmethod
    def from_env(cls) -> Config:
        """Load configuration from environment variables.

        Environment Variables:
            AZURE_SUBSCRIPTION_ID: Subscription holding the load balancers
            AZURE_CLIENT_ID: Optional user-assigned managed identity client ID
            OPERATION_TIMEOUT: Seconds to wait for a load balancer update (default: 1800)
            FETCH_TIMEOUT: Seconds to wait for a load balancer read (default: 120)
            POLL_TIMEOUT: Seconds to wait for the provisioning state (default: 600)
            POLL_MIN_INTERVAL: First backoff interval in seconds (default: 1)
            POLL_MAX_INTERVAL: Backoff ceiling in seconds (default: 10)
            POLL_PENDING_STATES: Comma separated transient states (default: Accepted,Updating)
            POLL_TARGET_STATES: Comma separated terminal states (default: Succeeded)
            LOG_LEVEL: Root log level (default: INFO)
            LOG_FORMAT: "json" or "text" (default: json)
        """

        def get_int(key: str, default: int) -> int:
            value = os.environ.get(key)
            if value is None:
                return default
            try:
                return int(value)
            except ValueError as e:
                raise ConfigurationError(f"{key} must be an integer: {value}") from e

        def get_float(key: str, default: float) -> float:
            value = os.environ.get(key)
            if value is None:
                return default
            try:
                return float(value)
            except ValueError as e:
                raise ConfigurationError(f"{key} must be a number: {value}") from e

        def get_states(key: str, default: tuple[str, ...]) -> tuple[str, ...]:
            value = os.environ.get(key)
            if value is None:
                return default
            return tuple(s.strip() for s in value.split(",") if s.strip())

        return cls(
            subscription_id=os.environ.get("AZURE_SUBSCRIPTION_ID", ""),
            managed_identity_client_id=os.environ.get("AZURE_CLIENT_ID") or None,
            operation_timeout_seconds=get_int(
                "OPERATION_TIMEOUT", DEFAULT_OPERATION_TIMEOUT_SECONDS
            ),
            fetch_timeout_seconds=get_int("FETCH_TIMEOUT", DEFAULT_FETCH_TIMEOUT_SECONDS),
            polling=PollingConfig(
                timeout_seconds=get_float("POLL_TIMEOUT", DEFAULT_POLL_TIMEOUT_SECONDS),
                min_interval_seconds=get_float(
                    "POLL_MIN_INTERVAL", DEFAULT_POLL_MIN_INTERVAL_SECONDS
                ),
                max_interval_seconds=get_float(
                    "POLL_MAX_INTERVAL", DEFAULT_POLL_MAX_INTERVAL_SECONDS
                ),
                pending_states=get_states("POLL_PENDING_STATES", DEFAULT_PENDING_STATES),
                target_states=get_states("POLL_TARGET_STATES", DEFAULT_TARGET_STATES),
            ),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),
            log_format=os.environ.get("LOG_FORMAT", "json").lower(),
        )
