"""
Module: payroll_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    payroll calculation engines.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May import only payroll_kernel exceptions and logging.
    MUST NOT import payroll_services or payroll_batch.

Invariants enforced:
    - Purity: engines never read the clock or any store.  Dates are passed
      in as explicit parameters.
    - Decimal-only arithmetic: floats are never used for money.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Engine invocations are traced via ``@traced_engine`` (see
    ``payroll_engines.tracer``), emitting PAYROLL_ENGINE_TRACE records.
"""

from payroll_engines.amortization import (
    AmortizationResult,
    ScheduleLine,
    add_months,
    calculate_emi,
    calculate_emi_with_dates,
)
from payroll_engines.statutory import (
    DEFAULT_RATES,
    Contribution,
    IncomeTaxSlab,
    ProfessionalTaxSlab,
    StatutoryBreakdown,
    StatutoryRates,
    calculate_dearness_allowance,
    calculate_house_rent_allowance,
    calculate_income_tax_withholding,
    calculate_professional_tax,
    calculate_provident_fund,
    calculate_state_insurance,
    calculate_statutory_breakdown,
    is_metro,
    resolve_professional_tax_state,
    round_to_unit,
)
from payroll_engines.tracer import compute_input_fingerprint, traced_engine

__all__ = [
    "AmortizationResult",
    "Contribution",
    "DEFAULT_RATES",
    "IncomeTaxSlab",
    "ProfessionalTaxSlab",
    "ScheduleLine",
    "StatutoryBreakdown",
    "StatutoryRates",
    "add_months",
    "calculate_dearness_allowance",
    "calculate_emi",
    "calculate_emi_with_dates",
    "calculate_house_rent_allowance",
    "calculate_income_tax_withholding",
    "calculate_professional_tax",
    "calculate_provident_fund",
    "calculate_state_insurance",
    "calculate_statutory_breakdown",
    "compute_input_fingerprint",
    "is_metro",
    "resolve_professional_tax_state",
    "round_to_unit",
    "traced_engine",
]
