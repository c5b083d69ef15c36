"""
Amortization Engine - Fixed-installment (EMI) loan repayment schedules.

Pure functions with no I/O.  Given a principal, an annual interest rate in
percent and a tenor in months, produces the installment amount and a
period-by-period schedule whose final outstanding balance is exactly zero.

Formula (non-zero rate):
    EMI = P * m * (1 + m)^n / ((1 + m)^n - 1),   m = rate / 12 / 100

Usage:
    from decimal import Decimal
    from payroll_engines.amortization import calculate_emi

    result = calculate_emi(Decimal("100000"), Decimal("12"), 12)
    print(result.installment_amount)  # 8884.88
    print(result.schedule[-1].outstanding_balance)  # 0.00
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass, replace
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext

from payroll_engines.tracer import traced_engine
from payroll_kernel.exceptions import (
    InvalidAmountError,
    InvalidRateError,
    InvalidTenorError,
)
from payroll_kernel.logging_config import get_logger

logger = get_logger("engines.amortization")

ZERO = Decimal("0")
CENT = Decimal("0.01")
UNIT = Decimal("1")
MAX_RATE = Decimal("100")
MONTHS_PER_YEAR = Decimal("12")
HUNDRED = Decimal("100")
ANNUITY_PRECISION = 60


@dataclass(frozen=True)
class ScheduleLine:
    """One installment of a repayment schedule."""

    installment_number: int
    principal_amount: Decimal
    interest_amount: Decimal
    installment_amount: Decimal
    outstanding_balance: Decimal
    due_date: date | None = None


@dataclass(frozen=True)
class AmortizationResult:
    """Installment amount, totals and the full schedule."""

    principal: Decimal
    annual_rate: Decimal
    tenor_months: int
    installment_amount: Decimal
    total_amount: Decimal
    total_interest: Decimal
    schedule: tuple[ScheduleLine, ...]


def _to_decimal(value: object) -> Decimal | None:
    if isinstance(value, bool):
        return None
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return None
    if not result.is_finite():
        return None
    return result


def _validate(principal: object, annual_rate: object, tenor_months: object) -> tuple[Decimal, Decimal, int]:
    amount = _to_decimal(principal)
    if amount is None or amount <= ZERO:
        raise InvalidAmountError(str(principal))

    if isinstance(tenor_months, bool) or not isinstance(tenor_months, int) or tenor_months < 1:
        raise InvalidTenorError(str(tenor_months))

    rate = _to_decimal(annual_rate)
    if rate is None or rate < ZERO or rate > MAX_RATE:
        raise InvalidRateError(str(annual_rate))

    return amount.quantize(CENT, rounding=ROUND_HALF_UP), rate, tenor_months


def _zero_rate_schedule(principal: Decimal, tenor: int) -> tuple[Decimal, list[ScheduleLine]]:
    installment = (principal / tenor).quantize(UNIT, rounding=ROUND_HALF_UP)
    outstanding = principal
    lines: list[ScheduleLine] = []
    for number in range(1, tenor + 1):
        if number == tenor:
            principal_part = outstanding
        else:
            principal_part = min(installment, outstanding)
        outstanding -= principal_part
        lines.append(ScheduleLine(
            installment_number=number,
            principal_amount=principal_part,
            interest_amount=ZERO,
            installment_amount=principal_part,
            outstanding_balance=outstanding,
        ))
    return installment, lines


def _annuity_schedule(
    principal: Decimal, rate: Decimal, tenor: int,
) -> tuple[Decimal, list[ScheduleLine]]:
    monthly_rate = rate / MONTHS_PER_YEAR / HUNDRED
    with localcontext() as ctx:
        ctx.prec = ANNUITY_PRECISION
        factor = (1 + monthly_rate) ** tenor
        if factor == 1:
            # Rate too small to move the compounding factor at all.
            return _zero_rate_schedule(principal, tenor)
        installment = (principal * monthly_rate * factor / (factor - 1)).quantize(
            CENT, rounding=ROUND_HALF_UP,
        )

    outstanding = principal
    lines: list[ScheduleLine] = []
    for number in range(1, tenor + 1):
        interest = (outstanding * monthly_rate).quantize(CENT, rounding=ROUND_HALF_UP)
        principal_part = installment - interest
        # Final period, or rounding drift that would overshoot, settles the balance.
        if number == tenor or principal_part >= outstanding:
            principal_part = outstanding
        outstanding -= principal_part
        lines.append(ScheduleLine(
            installment_number=number,
            principal_amount=principal_part,
            interest_amount=interest,
            installment_amount=principal_part + interest,
            outstanding_balance=outstanding,
        ))
    return installment, lines


@traced_engine(
    "amortization", "1.0",
    fingerprint_fields=("principal", "annual_rate", "tenor_months"),
)
def calculate_emi(
    principal: Decimal,
    annual_rate: Decimal,
    tenor_months: int,
) -> AmortizationResult:
    """Compute the EMI and full repayment schedule.

    Args:
        principal: Loan amount, strictly positive.  Quantized to 0.01.
        annual_rate: Annual interest rate in percent, within [0, 100].
        tenor_months: Number of monthly installments, a positive integer.

    Returns:
        AmortizationResult whose schedule sums to ``total_amount`` and ends
        with an outstanding balance of exactly zero.

    Raises:
        InvalidAmountError: principal <= 0 or not numeric.
        InvalidTenorError: tenor is not a positive integer.
        InvalidRateError: rate outside [0, 100].
    """
    amount, rate, tenor = _validate(principal, annual_rate, tenor_months)

    if rate == ZERO:
        installment, lines = _zero_rate_schedule(amount, tenor)
    else:
        installment, lines = _annuity_schedule(amount, rate, tenor)

    total_amount = sum((line.installment_amount for line in lines), ZERO)
    return AmortizationResult(
        principal=amount,
        annual_rate=rate,
        tenor_months=tenor,
        installment_amount=installment,
        total_amount=total_amount,
        total_interest=total_amount - amount,
        schedule=tuple(lines),
    )


def add_months(start: date, months: int) -> date:
    """Shift ``start`` by whole months, clamping the day to the month's end."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def calculate_emi_with_dates(
    principal: Decimal,
    annual_rate: Decimal,
    tenor_months: int,
    start_date: date,
) -> AmortizationResult:
    """Like ``calculate_emi`` with a monthly due date on each line.

    The first installment falls due on ``start_date``; each later one a
    month after its predecessor.
    """
    result = calculate_emi(principal, annual_rate, tenor_months)
    dated = tuple(
        replace(line, due_date=add_months(start_date, index))
        for index, line in enumerate(result.schedule)
    )
    logger.debug(
        "emi_schedule_dated",
        extra={
            "tenor_months": result.tenor_months,
            "first_due_date": dated[0].due_date,
            "last_due_date": dated[-1].due_date,
        },
    )
    return replace(result, schedule=dated)
