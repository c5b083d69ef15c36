"""
Payroll value objects (``payroll_kernel.domain.payroll``).

Responsibility
--------------
The explicit, typed payroll component record.  Gross, total deductions and
net are derived properties, so they cannot drift from the components they
summarize.  Also owns the pay-period helpers used by every service.

Architecture position
---------------------
**Kernel domain layer** -- pure.  No I/O.

Invariants enforced
-------------------
* ``net_salary == gross_salary - total_deductions`` for every instance.
* Employer contributions (``pf_employer``, ``esi_employer``) are never
  deducted from net pay.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass, fields, replace
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from uuid import UUID

from payroll_kernel.domain.approval import PayrollStatus
from payroll_kernel.exceptions import InvalidPeriodError, ValidationError

ZERO = Decimal("0")

MIN_PAYROLL_YEAR = 2000
MAX_PAYROLL_YEAR = 2100

# Fields a maker may edit on a Draft; everything else is derived or identity.
EDITABLE_COMPONENTS: frozenset[str] = frozenset({
    "basic_salary",
    "dearness_allowance",
    "house_rent_allowance",
    "other_allowances",
    "pf_employee",
    "pf_employer",
    "esi_employee",
    "esi_employer",
    "income_tax",
    "professional_tax",
    "lop_days",
    "lop_deduction",
    "loan_deduction",
})


@dataclass(frozen=True)
class DateRange:
    """Inclusive calendar date range."""

    start: date
    end: date

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ValueError(f"DateRange end {self.end} precedes start {self.start}")

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1

    def clip(self, start: date, end: date) -> DateRange | None:
        """Intersection with ``[start, end]``, or None when disjoint."""
        lo = max(self.start, start)
        hi = min(self.end, end)
        if hi < lo:
            return None
        return DateRange(lo, hi)


def validate_period(month: int, year: int) -> None:
    """Raise InvalidPeriodError unless month is 1-12 and year is plausible."""
    if (
        isinstance(month, bool)
        or not isinstance(month, int)
        or not isinstance(year, int)
        or not 1 <= month <= 12
        or not MIN_PAYROLL_YEAR <= year <= MAX_PAYROLL_YEAR
    ):
        raise InvalidPeriodError(month, year)


def month_date_range(month: int, year: int) -> DateRange:
    """First through last calendar day of the pay period."""
    validate_period(month, year)
    last_day = calendar.monthrange(year, month)[1]
    return DateRange(date(year, month, 1), date(year, month, last_day))


def period_date(month: int, year: int) -> date:
    """Representative date of a pay period (the first of the month)."""
    validate_period(month, year)
    return date(year, month, 1)


@dataclass(frozen=True)
class PayrollComponents:
    """Every monetary component of one payroll record.

    Derived totals are properties, never stored fields.  Use
    ``with_changes`` to produce an edited copy.
    """

    basic_salary: Decimal = ZERO
    dearness_allowance: Decimal = ZERO
    house_rent_allowance: Decimal = ZERO
    other_allowances: Decimal = ZERO
    pf_employee: Decimal = ZERO
    pf_employer: Decimal = ZERO
    esi_employee: Decimal = ZERO
    esi_employer: Decimal = ZERO
    income_tax: Decimal = ZERO
    professional_tax: Decimal = ZERO
    lop_days: Decimal = ZERO
    lop_deduction: Decimal = ZERO
    loan_deduction: Decimal = ZERO

    @property
    def gross_salary(self) -> Decimal:
        return (
            self.basic_salary
            + self.dearness_allowance
            + self.house_rent_allowance
            + self.other_allowances
        )

    @property
    def total_deductions(self) -> Decimal:
        return (
            self.pf_employee
            + self.esi_employee
            + self.income_tax
            + self.professional_tax
            + self.lop_deduction
            + self.loan_deduction
        )

    @property
    def net_salary(self) -> Decimal:
        return self.gross_salary - self.total_deductions

    def with_changes(self, **changes: Decimal) -> PayrollComponents:
        """Copy with the given components replaced (values coerced to Decimal)."""
        coerced: dict[str, Decimal] = {}
        for name, value in changes.items():
            try:
                coerced[name] = Decimal(str(value))
            except InvalidOperation as exc:
                raise ValidationError(f"{name} must be numeric, got {value!r}") from exc
            if not coerced[name].is_finite() or coerced[name] < 0:
                raise ValidationError(f"{name} must be a non-negative amount, got {value!r}")
        return replace(self, **coerced)

    def as_dict(self) -> dict[str, Decimal]:
        """Components plus derived totals, keyed by field name."""
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data["gross_salary"] = self.gross_salary
        data["total_deductions"] = self.total_deductions
        data["net_salary"] = self.net_salary
        return data


@dataclass(frozen=True)
class LoanDeductionDetail:
    """One loan's contribution to a record's loan deduction."""

    loan_id: str
    schedule_entry_id: UUID
    installment_number: int
    installment_amount: Decimal
    outstanding_balance: Decimal


@dataclass(frozen=True)
class ApprovalHistoryEntry:
    """Append-only audit line on a payroll record."""

    sequence: int
    action: str
    actor_id: str
    actor_name: str
    actor_role: str
    comment: str
    occurred_at: datetime


@dataclass(frozen=True)
class PayrollRecordSnapshot:
    """Immutable view of a persisted payroll record."""

    record_id: UUID
    tenant_id: str
    employee_id: str
    employee_code: str
    employee_name: str
    employee_designation: str
    month: int
    year: int
    components: PayrollComponents
    status: PayrollStatus
    maker_id: str
    maker_name: str
    checker_id: str | None = None
    checker_name: str | None = None
    finance_approver_id: str | None = None
    finance_approver_name: str | None = None
    rejection_reason: str | None = None
    submitted_at: datetime | None = None
    approved_at: datetime | None = None
    rejected_at: datetime | None = None
    processed_at: datetime | None = None
    paid_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    loan_details: tuple[LoanDeductionDetail, ...] = ()
    approval_history: tuple[ApprovalHistoryEntry, ...] = ()

    @property
    def gross_salary(self) -> Decimal:
        return self.components.gross_salary

    @property
    def net_salary(self) -> Decimal:
        return self.components.net_salary
