"""
Configuration Schema (``payroll_config.schema``).

Responsibility
--------------
Typed, frozen configuration for payroll runs: CTC split ratios, the
loss-of-pay divisor, the processing deadline, bulk concurrency, and the
statutory rate tables handed to ``payroll_engines.statutory``.

Architecture position
---------------------
**Config layer** -- pure data.  Imports the engine's rate bundle type only.

Invariants enforced
-------------------
* Ratios lie in [0, 1] and sum to at most 1.
* ``lop_divisor`` is positive; ``processing_deadline_day`` is 1-31;
  ``bulk_max_workers`` is at least 1.

Failure modes
-------------
* ``ValueError`` from ``__post_init__`` on any out-of-range value.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from payroll_engines.statutory import DEFAULT_RATES, StatutoryRates


@dataclass(frozen=True)
class PayrollConfig:
    """Runtime configuration for the payroll core."""

    basic_ratio: Decimal = Decimal("0.40")
    allowance_ratio: Decimal = Decimal("0.15")
    lop_divisor: Decimal = Decimal("30")
    processing_deadline_day: int = 25
    bulk_max_workers: int = 1
    default_designation: str = "Other"
    statutory: StatutoryRates = field(default_factory=lambda: DEFAULT_RATES)
    checksum: str = ""

    def __post_init__(self) -> None:
        for name in ("basic_ratio", "allowance_ratio"):
            value = getattr(self, name)
            if not Decimal("0") <= value <= Decimal("1"):
                raise ValueError(f"{name} must be within [0, 1], got {value}")
        if self.basic_ratio + self.allowance_ratio > Decimal("1"):
            raise ValueError("basic_ratio + allowance_ratio must not exceed 1")
        if self.lop_divisor <= Decimal("0"):
            raise ValueError(f"lop_divisor must be positive, got {self.lop_divisor}")
        if not 1 <= self.processing_deadline_day <= 31:
            raise ValueError(
                f"processing_deadline_day must be 1-31, got {self.processing_deadline_day}"
            )
        if self.bulk_max_workers < 1:
            raise ValueError(f"bulk_max_workers must be >= 1, got {self.bulk_max_workers}")
