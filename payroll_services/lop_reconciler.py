"""
LossOfPayReconciler -- converts absence into a loss-of-pay deduction.

Responsibility:
    For one employee and pay period, counts absent attendance days and
    approved unpaid leave overlapping the calendar month, then prices the
    total with a flat daily rate of ``gross / divisor`` (30 by default,
    regardless of the month's length).

Architecture position:
    Services -- imperative shell over the attendance and leave
    collaborators.  Pure arithmetic is delegated to domain value objects.

Invariants enforced:
    - Leave spans are clipped to the month; only the overlapping days count.
    - Half-day spans count 0.5 per overlapping day.
    - Only approved leave of an unpaid type is counted, even if the store
      returns more.

Failure modes:
    - Never raises for collaborator failures.  Any lookup error, including
      malformed data such as an inverted leave span, is wrapped
      as DependencyQueryError, logged at WARNING, and the result degrades to
      zero days and zero deduction with ``degraded=True``.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from decimal import Decimal
from typing import TypeVar

from payroll_engines.statutory import round_to_unit
from payroll_kernel.domain.collaborators import AttendanceStore, LeaveStore
from payroll_kernel.domain.payroll import DateRange, month_date_range
from payroll_kernel.exceptions import DependencyQueryError
from payroll_kernel.logging_config import get_logger

logger = get_logger("services.lop")

ZERO = Decimal("0")
DEFAULT_LOP_DIVISOR = Decimal("30")

T = TypeVar("T")


@dataclass(frozen=True)
class LossOfPayResult:
    days: Decimal
    deduction: Decimal
    degraded: bool = False

    @classmethod
    def zero(cls, degraded: bool = False) -> LossOfPayResult:
        return cls(days=ZERO, deduction=ZERO, degraded=degraded)


class LossOfPayReconciler:
    """Reconciles attendance and leave records into a loss-of-pay figure."""

    def __init__(
        self,
        attendance: AttendanceStore,
        leaves: LeaveStore,
        divisor: Decimal = DEFAULT_LOP_DIVISOR,
    ) -> None:
        self._attendance = attendance
        self._leaves = leaves
        self._divisor = divisor

    def reconcile(
        self,
        tenant_id: str,
        employee_id: str,
        month: int,
        year: int,
        gross_pay: Decimal,
    ) -> LossOfPayResult:
        period = month_date_range(month, year)
        try:
            absent = self._query(
                "attendance",
                lambda: Decimal(
                    self._attendance.count_absent_days(tenant_id, employee_id, period)
                ),
            )
            leave_days = self._query(
                "leave",
                lambda: self._leave_days(tenant_id, employee_id, period),
            )
        except DependencyQueryError as exc:
            logger.warning(
                "lop_lookup_degraded",
                extra={
                    "dependency": exc.dependency,
                    "detail": exc.detail,
                    "month": month,
                    "year": year,
                },
            )
            return LossOfPayResult.zero(degraded=True)

        days = absent + leave_days
        if days == ZERO:
            return LossOfPayResult.zero()

        deduction = round_to_unit(days * gross_pay / self._divisor)
        logger.info(
            "lop_reconciled",
            extra={
                "absent_days": str(absent),
                "leave_days": str(leave_days),
                "lop_days": str(days),
                "lop_deduction": str(deduction),
            },
        )
        return LossOfPayResult(days=days, deduction=deduction)

    def _leave_days(self, tenant_id: str, employee_id: str, period: DateRange) -> Decimal:
        spans = self._leaves.find_approved_unpaid_leave_overlapping(
            tenant_id, employee_id, period,
        )
        return sum(
            (
                span.overlap_days(period)
                for span in spans
                if span.is_unpaid and span.is_approved
            ),
            ZERO,
        )

    @staticmethod
    def _query(dependency: str, call: Callable[[], T]) -> T:
        try:
            return call()
        except DependencyQueryError:
            raise
        except Exception as exc:
            raise DependencyQueryError(dependency, str(exc)) from exc
