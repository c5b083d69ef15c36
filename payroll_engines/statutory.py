"""
Statutory Engine - Salary components and mandatory withholdings.

Pure, total functions of (basic pay, location, gross pay).  Every rate and
table is a keyword parameter defaulting to the module constants below, so
configuration can override them without this module reading any config.

Components:
    * House-rent allowance: 50% of basic in a metro city, else 40%.
    * Dearness allowance: 25% of basic.
    * Provident fund: 12% employee + 12% employer on (basic + DA).
    * State insurance: 0.75% employee + 3.25% employer when gross <= 21000.
    * Professional tax: state slab selected from the location string.
    * Income-tax withholding: annualized gross through a progressive table,
      divided by 12.  Illustrative constants, not a tax-compliance engine.

All amounts are rounded half-up to the currency unit.

Usage:
    from decimal import Decimal
    from payroll_engines.statutory import calculate_state_insurance

    esi = calculate_state_insurance(Decimal("20000"))
    print(esi.employee, esi.employer)  # 150 650
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from payroll_engines.tracer import traced_engine
from payroll_kernel.logging_config import get_logger

logger = get_logger("engines.statutory")

ZERO = Decimal("0")
UNIT = Decimal("1")
MONTHS_PER_YEAR = Decimal("12")


@dataclass(frozen=True)
class ProfessionalTaxSlab:
    """Monthly professional tax for gross pay in ``[min_gross, max_gross]``.

    ``max_gross`` of None means unbounded.
    """

    min_gross: Decimal
    max_gross: Decimal | None
    amount: Decimal

    def contains(self, gross: Decimal) -> bool:
        return self.min_gross <= gross and (self.max_gross is None or gross <= self.max_gross)


@dataclass(frozen=True)
class IncomeTaxSlab:
    """Annual income above ``threshold`` taxed at ``rate`` on top of ``base_tax``."""

    threshold: Decimal
    base_tax: Decimal
    rate: Decimal


@dataclass(frozen=True)
class Contribution:
    """Employee-side deduction and employer-side contribution."""

    employee: Decimal
    employer: Decimal

    @property
    def total(self) -> Decimal:
        return self.employee + self.employer


@dataclass(frozen=True)
class StatutoryBreakdown:
    """Every statutory component for one employee-month."""

    basic_salary: Decimal
    dearness_allowance: Decimal
    house_rent_allowance: Decimal
    other_allowances: Decimal
    provident_fund: Contribution
    state_insurance: Contribution
    professional_tax: Decimal
    professional_tax_state: str
    income_tax: Decimal

    @property
    def gross_salary(self) -> Decimal:
        return (
            self.basic_salary
            + self.dearness_allowance
            + self.house_rent_allowance
            + self.other_allowances
        )


def _d(value: str) -> Decimal:
    return Decimal(value)


def _slabs(*rows: tuple[str, str | None, str]) -> tuple[ProfessionalTaxSlab, ...]:
    return tuple(
        ProfessionalTaxSlab(_d(lo), _d(hi) if hi is not None else None, _d(amount))
        for lo, hi, amount in rows
    )


DEFAULT_METRO_CITIES: tuple[str, ...] = (
    "Mumbai", "Delhi", "Kolkata", "Chennai", "Bangalore", "Hyderabad", "Pune",
)
DEFAULT_HRA_METRO_RATE = _d("0.50")
DEFAULT_HRA_NON_METRO_RATE = _d("0.40")
DEFAULT_DA_RATE = _d("0.25")
DEFAULT_PF_EMPLOYEE_RATE = _d("0.12")
DEFAULT_PF_EMPLOYER_RATE = _d("0.12")
DEFAULT_ESI_THRESHOLD = _d("21000")
DEFAULT_ESI_EMPLOYEE_RATE = _d("0.0075")
DEFAULT_ESI_EMPLOYER_RATE = _d("0.0325")

DEFAULT_PT_STATE = "Maharashtra"

DEFAULT_PT_SLABS: dict[str, tuple[ProfessionalTaxSlab, ...]] = {
    "Maharashtra": _slabs(
        ("0", "5000", "0"), ("5001", "10000", "150"),
        ("10001", "15000", "175"), ("15001", None, "200"),
    ),
    "Karnataka": _slabs(
        ("0", "10000", "0"), ("10001", "15000", "150"), ("15001", None, "200"),
    ),
    "West Bengal": _slabs(
        ("0", "10000", "0"), ("10001", "15000", "110"),
        ("15001", "25000", "130"), ("25001", None, "150"),
    ),
    "Tamil Nadu": _slabs(("0", "21000", "0"), ("21001", None, "250")),
    "Gujarat": _slabs(
        ("0", "5000", "0"), ("5001", "10000", "150"), ("10001", None, "200"),
    ),
    "Delhi": _slabs(("0", "10000", "0"), ("10001", None, "200")),
    "Kerala": _slabs(
        ("0", "11000", "0"), ("11001", "16000", "120"), ("16001", None, "200"),
    ),
    "Punjab": _slabs(("0", "10000", "0"), ("10001", None, "200")),
    "Rajasthan": _slabs(("0", "10000", "0"), ("10001", None, "200")),
    "Uttar Pradesh": _slabs(("0", "10000", "0"), ("10001", None, "200")),
}

# Checked in order; the first state with a keyword in the location wins.
DEFAULT_PT_CITY_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("Maharashtra", ("mumbai", "pune", "nagpur")),
    ("Karnataka", ("bangalore", "mysore")),
    ("West Bengal", ("kolkata", "howrah")),
    ("Tamil Nadu", ("chennai", "coimbatore")),
    ("Gujarat", ("ahmedabad", "surat")),
    ("Delhi", ("delhi", "noida", "gurgaon")),
    ("Kerala", ("kochi", "trivandrum")),
    ("Punjab", ("chandigarh", "ludhiana")),
    ("Rajasthan", ("jaipur", "udaipur")),
    ("Uttar Pradesh", ("lucknow", "kanpur")),
)

# Highest threshold first.
DEFAULT_INCOME_TAX_SLABS: tuple[IncomeTaxSlab, ...] = (
    IncomeTaxSlab(_d("1500000"), _d("187500"), _d("0.30")),
    IncomeTaxSlab(_d("1200000"), _d("112500"), _d("0.20")),
    IncomeTaxSlab(_d("900000"), _d("37500"), _d("0.15")),
    IncomeTaxSlab(_d("600000"), _d("7500"), _d("0.10")),
    IncomeTaxSlab(_d("300000"), _d("0"), _d("0.05")),
)


def round_to_unit(amount: Decimal) -> Decimal:
    """Round half-up to the whole currency unit."""
    return amount.quantize(UNIT, rounding=ROUND_HALF_UP)


def is_metro(location: str, metro_cities: Iterable[str] = DEFAULT_METRO_CITIES) -> bool:
    """True when ``location`` contains a metro city name (case-insensitive)."""
    lowered = (location or "").lower()
    return any(city.lower() in lowered for city in metro_cities)


def calculate_house_rent_allowance(
    basic_salary: Decimal,
    location: str,
    *,
    metro_cities: Iterable[str] = DEFAULT_METRO_CITIES,
    metro_rate: Decimal = DEFAULT_HRA_METRO_RATE,
    non_metro_rate: Decimal = DEFAULT_HRA_NON_METRO_RATE,
) -> Decimal:
    rate = metro_rate if is_metro(location, metro_cities) else non_metro_rate
    return round_to_unit(basic_salary * rate)


def calculate_dearness_allowance(
    basic_salary: Decimal,
    *,
    rate: Decimal = DEFAULT_DA_RATE,
) -> Decimal:
    return round_to_unit(basic_salary * rate)


def calculate_provident_fund(
    basic_salary: Decimal,
    dearness_allowance: Decimal,
    *,
    employee_rate: Decimal = DEFAULT_PF_EMPLOYEE_RATE,
    employer_rate: Decimal = DEFAULT_PF_EMPLOYER_RATE,
) -> Contribution:
    """Provident fund on (basic + DA), each share rounded independently."""
    base = basic_salary + dearness_allowance
    return Contribution(
        employee=round_to_unit(base * employee_rate),
        employer=round_to_unit(base * employer_rate),
    )


def calculate_state_insurance(
    gross_salary: Decimal,
    *,
    threshold: Decimal = DEFAULT_ESI_THRESHOLD,
    employee_rate: Decimal = DEFAULT_ESI_EMPLOYEE_RATE,
    employer_rate: Decimal = DEFAULT_ESI_EMPLOYER_RATE,
) -> Contribution:
    """State insurance applies only when gross pay is at or below the threshold."""
    if gross_salary > threshold:
        return Contribution(employee=ZERO, employer=ZERO)
    return Contribution(
        employee=round_to_unit(gross_salary * employee_rate),
        employer=round_to_unit(gross_salary * employer_rate),
    )


def resolve_professional_tax_state(
    location: str,
    *,
    city_keywords: Sequence[tuple[str, Sequence[str]]] = DEFAULT_PT_CITY_KEYWORDS,
    default_state: str = DEFAULT_PT_STATE,
) -> str:
    lowered = (location or "").lower()
    for state, keywords in city_keywords:
        if any(keyword in lowered for keyword in keywords):
            return state
    return default_state


def calculate_professional_tax(
    gross_salary: Decimal,
    location: str,
    *,
    state_slabs: Mapping[str, Sequence[ProfessionalTaxSlab]] = DEFAULT_PT_SLABS,
    city_keywords: Sequence[tuple[str, Sequence[str]]] = DEFAULT_PT_CITY_KEYWORDS,
    default_state: str = DEFAULT_PT_STATE,
) -> Decimal:
    """Monthly professional tax from the first slab whose range contains gross.

    A fractional gross between one slab's max and the next slab's min
    matches no slab and owes nothing.
    """
    state = resolve_professional_tax_state(
        location, city_keywords=city_keywords, default_state=default_state,
    )
    slabs = state_slabs.get(state) or state_slabs.get(default_state) or ()
    for slab in slabs:
        if slab.contains(gross_salary):
            return slab.amount
    return ZERO


def calculate_income_tax_withholding(
    annual_gross: Decimal,
    *,
    slabs: Sequence[IncomeTaxSlab] = DEFAULT_INCOME_TAX_SLABS,
) -> Decimal:
    """Monthly withholding: progressive annual tax / 12, rounded."""
    for slab in sorted(slabs, key=lambda s: s.threshold, reverse=True):
        if annual_gross > slab.threshold:
            annual_tax = (annual_gross - slab.threshold) * slab.rate + slab.base_tax
            return round_to_unit(annual_tax / MONTHS_PER_YEAR)
    return ZERO


@dataclass(frozen=True)
class StatutoryRates:
    """Bundle of every overridable rate and table."""

    metro_cities: tuple[str, ...] = DEFAULT_METRO_CITIES
    hra_metro_rate: Decimal = DEFAULT_HRA_METRO_RATE
    hra_non_metro_rate: Decimal = DEFAULT_HRA_NON_METRO_RATE
    da_rate: Decimal = DEFAULT_DA_RATE
    pf_employee_rate: Decimal = DEFAULT_PF_EMPLOYEE_RATE
    pf_employer_rate: Decimal = DEFAULT_PF_EMPLOYER_RATE
    esi_threshold: Decimal = DEFAULT_ESI_THRESHOLD
    esi_employee_rate: Decimal = DEFAULT_ESI_EMPLOYEE_RATE
    esi_employer_rate: Decimal = DEFAULT_ESI_EMPLOYER_RATE
    pt_default_state: str = DEFAULT_PT_STATE
    pt_state_slabs: Mapping[str, tuple[ProfessionalTaxSlab, ...]] | None = None
    pt_city_keywords: tuple[tuple[str, tuple[str, ...]], ...] = DEFAULT_PT_CITY_KEYWORDS
    income_tax_slabs: tuple[IncomeTaxSlab, ...] = DEFAULT_INCOME_TAX_SLABS

    @property
    def state_slabs(self) -> Mapping[str, tuple[ProfessionalTaxSlab, ...]]:
        return self.pt_state_slabs if self.pt_state_slabs is not None else DEFAULT_PT_SLABS


DEFAULT_RATES = StatutoryRates()


@traced_engine(
    "statutory", "1.0",
    fingerprint_fields=("basic_salary", "other_allowances", "location"),
)
def calculate_statutory_breakdown(
    basic_salary: Decimal,
    other_allowances: Decimal,
    location: str,
    rates: StatutoryRates = DEFAULT_RATES,
) -> StatutoryBreakdown:
    """Assemble allowances, gross pay and every statutory deduction.

    Gross = basic + DA + HRA + other allowances; insurance, professional
    tax and income tax are then computed on that gross.
    """
    da = calculate_dearness_allowance(basic_salary, rate=rates.da_rate)
    hra = calculate_house_rent_allowance(
        basic_salary,
        location,
        metro_cities=rates.metro_cities,
        metro_rate=rates.hra_metro_rate,
        non_metro_rate=rates.hra_non_metro_rate,
    )
    gross = basic_salary + da + hra + other_allowances

    pf = calculate_provident_fund(
        basic_salary, da,
        employee_rate=rates.pf_employee_rate,
        employer_rate=rates.pf_employer_rate,
    )
    esi = calculate_state_insurance(
        gross,
        threshold=rates.esi_threshold,
        employee_rate=rates.esi_employee_rate,
        employer_rate=rates.esi_employer_rate,
    )
    pt_state = resolve_professional_tax_state(
        location,
        city_keywords=rates.pt_city_keywords,
        default_state=rates.pt_default_state,
    )
    professional_tax = calculate_professional_tax(
        gross,
        location,
        state_slabs=rates.state_slabs,
        city_keywords=rates.pt_city_keywords,
        default_state=rates.pt_default_state,
    )
    income_tax = calculate_income_tax_withholding(
        gross * MONTHS_PER_YEAR, slabs=rates.income_tax_slabs,
    )

    return StatutoryBreakdown(
        basic_salary=basic_salary,
        dearness_allowance=da,
        house_rent_allowance=hra,
        other_allowances=other_allowances,
        provident_fund=pf,
        state_insurance=esi,
        professional_tax=professional_tax,
        professional_tax_state=pt_state,
        income_tax=income_tax,
    )
