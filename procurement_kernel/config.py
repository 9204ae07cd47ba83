"""
Kernel configuration (``procurement_kernel.config``).

Responsibility
--------------
Loads the runtime settings from YAML into a frozen ``KernelSettings``.
Services receive settings through their constructors; nothing else reads
configuration files or the environment.

Resolution order
----------------
1. Packaged ``defaults.yaml``.
2. The file at ``path``, or ``$PROCUREMENT_KERNEL_CONFIG`` when no path is
   given.  Keys present there override the defaults.
3. ``$DATABASE_URL`` overrides ``database_url``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown key, wrong type or non-positive numeric value  -> ``ValueError``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from procurement_kernel.domain.compliance import (
    DEFAULT_DAILY_LIMIT,
    DEFAULT_PRICE_TOLERANCE,
    CompliancePolicy,
)

CONFIG_ENV_VAR = "PROCUREMENT_KERNEL_CONFIG"
DATABASE_URL_ENV_VAR = "DATABASE_URL"
DEFAULTS_PATH = Path(__file__).with_name("defaults.yaml")


@dataclass(frozen=True)
class KernelSettings:
    database_url: str = "sqlite://"
    price_tolerance: Decimal = DEFAULT_PRICE_TOLERANCE
    default_daily_limit: Decimal = DEFAULT_DAILY_LIMIT
    proof_validity_days: int = 90
    escalate_on_any_failed_check: bool = False
    collaborator_timeout_seconds: float = 10
    ledger_network: str = "Lisk Sepolia"

    def __post_init__(self) -> None:
        for name in (
            "price_tolerance",
            "default_daily_limit",
            "proof_validity_days",
            "collaborator_timeout_seconds",
        ):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")

    @property
    def compliance_policy(self) -> CompliancePolicy:
        return CompliancePolicy(
            price_tolerance=self.price_tolerance,
            escalate_on_any_failed_check=self.escalate_on_any_failed_check,
        )


def load_yaml_file(path: Path) -> dict[str, Any]:
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at top level")
    return data


def _coerce(name: str, value: Any) -> Any:
    if name in ("price_tolerance", "default_daily_limit"):
        if isinstance(value, bool):
            raise ValueError(f"{name} must be a number, got {value!r}")
        try:
            return Decimal(str(value))
        except InvalidOperation:
            raise ValueError(f"{name} must be a number, got {value!r}") from None
    if name == "proof_validity_days":
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError(f"{name} must be an integer, got {value!r}")
        return value
    if name == "collaborator_timeout_seconds":
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"{name} must be a number, got {value!r}")
        return value
    if name == "escalate_on_any_failed_check":
        if not isinstance(value, bool):
            raise ValueError(f"{name} must be true or false, got {value!r}")
        return value
    if not isinstance(value, str) or not value:
        raise ValueError(f"{name} must be a non-empty string, got {value!r}")
    return value


def settings_from_mapping(data: dict[str, Any]) -> KernelSettings:
    known = {f.name for f in fields(KernelSettings)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown configuration keys: {', '.join(unknown)}")
    return KernelSettings(**{name: _coerce(name, value) for name, value in data.items()})


def load_settings(path: str | Path | None = None) -> KernelSettings:
    """
    Resolve settings from the packaged defaults, an optional override file
    and the environment.
    """
    data = load_yaml_file(DEFAULTS_PATH)

    override = path or os.environ.get(CONFIG_ENV_VAR)
    if override:
        data.update(load_yaml_file(Path(override)))

    database_url = os.environ.get(DATABASE_URL_ENV_VAR)
    if database_url:
        data["database_url"] = database_url

    return settings_from_mapping(data)
