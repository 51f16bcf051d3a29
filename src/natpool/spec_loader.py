"""NAT pool spec file loading with validation.

Spec files are YAML, either flat:

    name: pool1
    loadBalancerId: /subscriptions/.../loadBalancers/lb1
    protocol: Tcp
    ...

or wrapped Kubernetes-style with apiVersion/kind/metadata/spec.

SECURITY: File size is checked before reading.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from .config import MAX_SPEC_FILE_SIZE_BYTES
from .models import NatPoolSpec

logger = logging.getLogger(__name__)

SPEC_KIND = "InboundNatPool"


class SpecLoadError(Exception):
    """Raised when spec loading or validation fails."""

    pass


def load_nat_pool_spec(spec_path: Path) -> NatPoolSpec:
    """Load and validate a NAT pool spec from YAML.

    Args:
        spec_path: Path to the YAML file.

    Returns:
        Validated NatPoolSpec.

    Raises:
        SpecLoadError: If the file cannot be read or fails validation.
    """
    if not spec_path.exists():
        raise SpecLoadError(f"Spec file not found: {spec_path}")

    try:
        file_size = spec_path.stat().st_size
    except OSError as e:
        raise SpecLoadError(f"Failed to stat spec file {spec_path}: {e}") from e

    if file_size > MAX_SPEC_FILE_SIZE_BYTES:
        raise SpecLoadError(
            f"Spec file exceeds maximum size of {MAX_SPEC_FILE_SIZE_BYTES} bytes: {spec_path}"
        )

    try:
        content = spec_path.read_text(encoding="utf-8")
    except OSError as e:
        raise SpecLoadError(f"Failed to read spec file {spec_path}: {e}") from e

    try:
        raw_data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise SpecLoadError(f"Invalid YAML in {spec_path}: {e}") from e

    if not isinstance(raw_data, dict):
        raise SpecLoadError(f"Spec file must contain a YAML mapping: {spec_path}")

    if "apiVersion" in raw_data and "spec" in raw_data:
        kind = raw_data.get("kind")
        if kind is not None and kind != SPEC_KIND:
            raise SpecLoadError(f"Unsupported kind {kind!r}, expected {SPEC_KIND!r}: {spec_path}")
        spec_data = raw_data.get("spec", {})
        if not isinstance(spec_data, dict):
            raise SpecLoadError(f"Spec section must be a mapping: {spec_path}")
        # metadata.name stands in for a missing spec.name
        metadata = raw_data.get("metadata") or {}
        if "name" not in spec_data and isinstance(metadata, dict) and metadata.get("name"):
            spec_data = {**spec_data, "name": metadata["name"]}
    else:
        spec_data = raw_data

    try:
        spec = NatPoolSpec.model_validate(spec_data)
    except ValidationError as e:
        errors = []
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            msg = error["msg"]
            errors.append(f"  - {loc}: {msg}")

        error_list = "\n".join(errors)
        raise SpecLoadError(f"Validation failed for {spec_path}:\n{error_list}") from e

    logger.info("Loaded NAT pool spec '%s' from %s", spec.name, spec_path)
    return spec
