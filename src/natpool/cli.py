"""NAT pool reconciler CLI (natpool).

Usage:
    natpool apply -f pool.yaml                  # Create or update a NAT pool
    natpool show <nat-pool-id>                  # Read a NAT pool back from Azure
    natpool delete <nat-pool-id>                # Delete by ID
    natpool delete -f pool.yaml                 # Delete by spec
    natpool import <nat-pool-id>                # Print state reconstructed from an ID

Configuration comes from the environment (see Config.from_env).
"""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path
from typing import Any

import click

from .client import create_network_client
from .config import Config, ConfigurationError
from .errors import NatPoolError
from .locks import NamedLockRegistry
from .main import setup_logging
from .models import NatPoolSpec
from .reconciler import NatPoolReconciler, import_nat_pool
from .security import SecretlessViolationError
from .spec_loader import SpecLoadError, load_nat_pool_spec

# Exit codes
EXIT_SECURITY_VIOLATION = 2
EXIT_GONE = 3


def _load_config() -> Config:
    try:
        return Config.from_env()
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e


def _build_reconciler(config: Config) -> NatPoolReconciler:
    try:
        client = create_network_client(config)
    except SecretlessViolationError as e:
        click.echo(str(e), err=True)
        sys.exit(EXIT_SECURITY_VIOLATION)
    return NatPoolReconciler.from_config(config, client, NamedLockRegistry())


def _run(coro: Any) -> Any:
    """Run a reconciler coroutine, mapping domain errors to CLI errors."""
    try:
        return asyncio.run(coro)
    except NatPoolError as e:
        raise click.ClickException(f"{type(e).__name__}: {e}") from e


def _load_spec(spec_file: Path) -> NatPoolSpec:
    try:
        return load_nat_pool_spec(spec_file)
    except SpecLoadError as e:
        raise click.ClickException(str(e)) from e


def _echo_json(data: dict[str, Any]) -> None:
    click.echo(json.dumps(data, indent=2, sort_keys=True))


@click.group()
@click.version_option(package_name="natpool")
def cli() -> None:
    """Reconcile Azure load balancer inbound NAT pools."""


@cli.command()
@click.option(
    "-f",
    "--file",
    "spec_file",
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="NAT pool spec (YAML).",
)
def apply(spec_file: Path) -> None:
    """Create or update the NAT pool described by a spec file."""
    config = _load_config()
    setup_logging(config.log_level, config.log_format)
    spec = _load_spec(spec_file)
    reconciler = _build_reconciler(config)

    state = _run(reconciler.create_or_update(spec))
    if state is None:
        click.echo(f"Load balancer {spec.load_balancer_id} not found, nothing to apply", err=True)
        sys.exit(EXIT_GONE)
    _echo_json(state.model_dump())


@cli.command()
@click.argument("nat_pool_id")
@click.option("--load-balancer-id", default=None, help="Parent ID, derived from the ID if omitted.")
def show(nat_pool_id: str, load_balancer_id: str | None) -> None:
    """Read a NAT pool back from Azure."""
    config = _load_config()
    setup_logging(config.log_level, config.log_format)
    reconciler = _build_reconciler(config)

    state = _run(reconciler.read(nat_pool_id, load_balancer_id))
    if state is None:
        click.echo(f"NAT pool {nat_pool_id} no longer exists", err=True)
        sys.exit(EXIT_GONE)
    _echo_json(state.model_dump())


@cli.command()
@click.argument("nat_pool_id", required=False)
@click.option(
    "-f",
    "--file",
    "spec_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="NAT pool spec (YAML) identifying the pool to delete.",
)
def delete(nat_pool_id: str | None, spec_file: Path | None) -> None:
    """Delete a NAT pool by ID or by spec file."""
    if (nat_pool_id is None) == (spec_file is None):
        raise click.UsageError("Pass either NAT_POOL_ID or --file, not both")

    config = _load_config()
    setup_logging(config.log_level, config.log_format)
    target = _load_spec(spec_file) if spec_file is not None else nat_pool_id
    reconciler = _build_reconciler(config)

    _run(reconciler.delete(target))
    click.echo("Deleted", err=True)


@cli.command(name="import")
@click.argument("nat_pool_id")
def import_(nat_pool_id: str) -> None:
    """Print the identifying state of an existing NAT pool.

    Only parses the ID; no Azure call is made.
    """
    try:
        imported = import_nat_pool(nat_pool_id)
    except NatPoolError as e:
        raise click.ClickException(str(e)) from e
    _echo_json(imported.model_dump())
