"""
Configuration Loader (``payroll_config.loader``).

Responsibility
--------------
Loads a YAML payroll configuration file and parses it into the typed
``payroll_config.schema.PayrollConfig``.  Keys that are absent fall back
to the schema defaults; keys that are present are validated.

Architecture position
---------------------
**Config layer** -- infrastructure tooling.  The runtime entry point is
``payroll_config.get_active_config()``.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the
  *effective* configuration, so equal settings share a checksum whether
  they came from defaults or from YAML.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown top-level key or out-of-range value  -> ``ValueError``.

Audit relevance
---------------
The checksum is recorded on every bulk-run audit event, tying each run to
the exact rates it used.

Example YAML::

    basic_ratio: "0.40"
    allowance_ratio: "0.15"
    processing_deadline_day: 25
    bulk_max_workers: 4
    statutory:
      esi_threshold: "21000"
      metro_cities: [Mumbai, Delhi]
      professional_tax:
        default_state: Maharashtra
        states:
          Maharashtra:
            - [0, 5000, 0]
            - [5001, null, 200]
        city_keywords:
          Maharashtra: [mumbai, pune]
      income_tax_slabs:
        - {threshold: 300000, base_tax: 0, rate: "0.05"}
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import replace
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from payroll_config.schema import PayrollConfig
from payroll_engines.statutory import (
    DEFAULT_RATES,
    IncomeTaxSlab,
    ProfessionalTaxSlab,
    StatutoryRates,
)

_TOP_LEVEL_KEYS = frozenset({
    "basic_ratio",
    "allowance_ratio",
    "lop_divisor",
    "processing_deadline_day",
    "bulk_max_workers",
    "default_designation",
    "statutory",
})

_RATE_KEYS = (
    "hra_metro_rate",
    "hra_non_metro_rate",
    "da_rate",
    "pf_employee_rate",
    "pf_employer_rate",
    "esi_threshold",
    "esi_employee_rate",
    "esi_employer_rate",
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_decimal(value: Any, name: str) -> Decimal:
    """Parse YAML scalars into Decimal via ``str`` so floats never leak in."""
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValueError(f"{name} must be numeric, got {value!r}") from exc
    if not result.is_finite():
        raise ValueError(f"{name} must be finite, got {value!r}")
    return result


def parse_pt_slabs(state: str, rows: list[Any]) -> tuple[ProfessionalTaxSlab, ...]:
    """Parse ``[min, max, amount]`` rows; ``max`` may be null for unbounded."""
    slabs: list[ProfessionalTaxSlab] = []
    for index, row in enumerate(rows):
        if not isinstance(row, (list, tuple)) or len(row) != 3:
            raise ValueError(
                f"professional_tax.states.{state}[{index}] must be [min, max, amount]"
            )
        lo, hi, amount = row
        label = f"professional_tax.states.{state}[{index}]"
        slabs.append(ProfessionalTaxSlab(
            min_gross=parse_decimal(lo, label),
            max_gross=parse_decimal(hi, label) if hi is not None else None,
            amount=parse_decimal(amount, label),
        ))
    return tuple(sorted(slabs, key=lambda s: s.min_gross))


def parse_income_tax_slabs(rows: list[dict[str, Any]]) -> tuple[IncomeTaxSlab, ...]:
    slabs = tuple(
        IncomeTaxSlab(
            threshold=parse_decimal(row["threshold"], "income_tax_slabs.threshold"),
            base_tax=parse_decimal(row.get("base_tax", 0), "income_tax_slabs.base_tax"),
            rate=parse_decimal(row["rate"], "income_tax_slabs.rate"),
        )
        for row in rows
    )
    return tuple(sorted(slabs, key=lambda s: s.threshold, reverse=True))


def parse_statutory(data: dict[str, Any]) -> StatutoryRates:
    """Parse the ``statutory`` block on top of the default rates."""
    changes: dict[str, Any] = {}
    for key in _RATE_KEYS:
        if key in data:
            changes[key] = parse_decimal(data[key], f"statutory.{key}")
    if "metro_cities" in data:
        changes["metro_cities"] = tuple(str(city) for city in data["metro_cities"])
    if "income_tax_slabs" in data:
        changes["income_tax_slabs"] = parse_income_tax_slabs(data["income_tax_slabs"])

    pt = data.get("professional_tax") or {}
    if "default_state" in pt:
        changes["pt_default_state"] = str(pt["default_state"])
    if "states" in pt:
        changes["pt_state_slabs"] = {
            str(state): parse_pt_slabs(str(state), rows)
            for state, rows in pt["states"].items()
        }
    if "city_keywords" in pt:
        changes["pt_city_keywords"] = tuple(
            (str(state), tuple(str(k).lower() for k in keywords))
            for state, keywords in pt["city_keywords"].items()
        )

    return replace(DEFAULT_RATES, **changes)


def parse_config(data: dict[str, Any]) -> PayrollConfig:
    """Parse a full configuration dict into a checksummed PayrollConfig."""
    unknown = set(data) - _TOP_LEVEL_KEYS
    if unknown:
        raise ValueError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")

    kwargs: dict[str, Any] = {}
    for key in ("basic_ratio", "allowance_ratio", "lop_divisor"):
        if key in data:
            kwargs[key] = parse_decimal(data[key], key)
    for key in ("processing_deadline_day", "bulk_max_workers"):
        if key in data:
            kwargs[key] = int(data[key])
    if "default_designation" in data:
        kwargs["default_designation"] = str(data["default_designation"])
    if "statutory" in data:
        kwargs["statutory"] = parse_statutory(data["statutory"] or {})

    return with_checksum(PayrollConfig(**kwargs))


def load_config(path: Path) -> PayrollConfig:
    """Load and parse a YAML configuration file."""
    return parse_config(load_yaml_file(path))


def config_to_dict(config: PayrollConfig) -> dict[str, Any]:
    """Canonical, JSON-ready view of the effective configuration."""
    rates = config.statutory
    return {
        "basic_ratio": config.basic_ratio,
        "allowance_ratio": config.allowance_ratio,
        "lop_divisor": config.lop_divisor,
        "processing_deadline_day": config.processing_deadline_day,
        "bulk_max_workers": config.bulk_max_workers,
        "default_designation": config.default_designation,
        "statutory": {
            **{key: getattr(rates, key) for key in _RATE_KEYS},
            "metro_cities": list(rates.metro_cities),
            "pt_default_state": rates.pt_default_state,
            "pt_state_slabs": {
                state: [[s.min_gross, s.max_gross, s.amount] for s in slabs]
                for state, slabs in rates.state_slabs.items()
            },
            "pt_city_keywords": [[state, list(kw)] for state, kw in rates.pt_city_keywords],
            "income_tax_slabs": [
                [s.threshold, s.base_tax, s.rate] for s in rates.income_tax_slabs
            ],
        },
    }


def _json_default(value: Any) -> str:
    if isinstance(value, Decimal):
        return format(value.normalize(), "f")
    return str(value)


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=_json_default)
    return hashlib.sha256(canonical.encode()).hexdigest()


def with_checksum(config: PayrollConfig) -> PayrollConfig:
    """Return ``config`` with its checksum field populated."""
    return replace(config, checksum=compute_checksum(config_to_dict(config)))
