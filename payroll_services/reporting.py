"""
Module: payroll_services.reporting
Responsibility: Read-only payroll statistics: per-designation totals and a
    status breakdown for one tenant and pay period.
Architecture position: Services > read side.  Aggregates stored payroll
    records with SQL GROUP BY; never writes.

Failure modes:
    - Returns empty groupings and zero totals when the period has no records.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from payroll_kernel.domain.approval import PayrollStatus
from payroll_kernel.domain.payroll import validate_period
from payroll_kernel.models.payroll_record import PayrollRecordModel

ZERO = Decimal("0")


@dataclass(frozen=True)
class DesignationTotals:
    """Aggregate pay figures for one designation."""

    designation: str
    employee_count: int
    total_basic: Decimal
    total_gross: Decimal
    total_net: Decimal


@dataclass(frozen=True)
class PayrollStats:
    tenant_id: str
    month: int
    year: int
    record_count: int
    total_gross: Decimal
    total_deductions: Decimal
    total_net: Decimal
    by_status: dict[str, int] = field(default_factory=dict)
    by_designation: tuple[DesignationTotals, ...] = ()

    @property
    def paid_count(self) -> int:
        return self.by_status.get(PayrollStatus.PAID.value, 0)

    @property
    def pending_count(self) -> int:
        """Records not yet paid."""
        return self.record_count - self.paid_count


def summarize_by_designation(
    rows: Iterable[tuple[str, Decimal, Decimal, Decimal]],
) -> tuple[DesignationTotals, ...]:
    """Group ``(designation, basic, gross, net)`` rows, ordered by designation."""
    groups: dict[str, list[Decimal]] = {}
    counts: dict[str, int] = {}
    for designation, basic, gross, net in rows:
        totals = groups.setdefault(designation, [ZERO, ZERO, ZERO])
        totals[0] += basic
        totals[1] += gross
        totals[2] += net
        counts[designation] = counts.get(designation, 0) + 1
    return tuple(
        DesignationTotals(
            designation=name,
            employee_count=counts[name],
            total_basic=groups[name][0],
            total_gross=groups[name][1],
            total_net=groups[name][2],
        )
        for name in sorted(groups)
    )


class PayrollStatsReport:
    """Aggregate queries over stored payroll records."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def stats_for_period(self, tenant_id: str, month: int, year: int) -> PayrollStats:
        validate_period(month, year)
        period = (
            PayrollRecordModel.tenant_id == tenant_id,
            PayrollRecordModel.month == month,
            PayrollRecordModel.year == year,
        )

        status_rows = self.session.execute(
            select(PayrollRecordModel.status, func.count(PayrollRecordModel.id))
            .where(*period)
            .group_by(PayrollRecordModel.status)
        ).all()
        by_status = {status: count for status, count in status_rows}

        designation_rows = self.session.execute(
            select(
                PayrollRecordModel.employee_designation,
                func.count(PayrollRecordModel.id),
                func.sum(PayrollRecordModel.basic_salary),
                func.sum(PayrollRecordModel.gross_salary),
                func.sum(PayrollRecordModel.net_salary),
            )
            .where(*period)
            .group_by(PayrollRecordModel.employee_designation)
            .order_by(PayrollRecordModel.employee_designation)
        ).all()
        by_designation = tuple(
            DesignationTotals(
                designation=row[0],
                employee_count=row[1],
                total_basic=Decimal(str(row[2] or ZERO)),
                total_gross=Decimal(str(row[3] or ZERO)),
                total_net=Decimal(str(row[4] or ZERO)),
            )
            for row in designation_rows
        )

        total_gross = sum((d.total_gross for d in by_designation), ZERO)
        total_net = sum((d.total_net for d in by_designation), ZERO)
        return PayrollStats(
            tenant_id=tenant_id,
            month=month,
            year=year,
            record_count=sum(by_status.values()),
            total_gross=total_gross,
            total_deductions=total_gross - total_net,
            total_net=total_net,
            by_status=by_status,
            by_designation=by_designation,
        )
