"""
LoanDeductionIntegrator -- applies loan installments to a payroll run.

Responsibility:
    Sums the installments (principal + interest) due in the payroll month
    across all of an employee's loans and records one detail line per
    installment.  Runs in two passes:

    1. ``compute`` before the payroll record exists, for the net-salary math.
    2. ``link`` after the record is inserted, re-querying the installments,
       writing the back-reference, and returning the recomputed deduction so
       the caller can correct any drift.

Architecture position:
    Services -- wraps the ``LoanScheduleStore`` collaborator.

Failure modes:
    - Never raises for collaborator failures.  Lookup errors degrade to a
      zero deduction with ``degraded=True`` and a WARNING log.  A failed
      ``link`` also returns ``degraded=True`` and the caller keeps the first
      pass figures.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from payroll_kernel.domain.collaborators import LoanScheduleStore, ScheduleEntry
from payroll_kernel.domain.payroll import LoanDeductionDetail
from payroll_kernel.exceptions import DependencyQueryError
from payroll_kernel.logging_config import get_logger

logger = get_logger("services.loan_integrator")

ZERO = Decimal("0")


@dataclass(frozen=True)
class LoanDeduction:
    total: Decimal
    details: tuple[LoanDeductionDetail, ...] = ()
    entry_ids: tuple[UUID, ...] = ()
    degraded: bool = False

    @classmethod
    def zero(cls, degraded: bool = False) -> LoanDeduction:
        return cls(total=ZERO, degraded=degraded)

    @classmethod
    def from_entries(cls, entries: list[ScheduleEntry]) -> LoanDeduction:
        details = tuple(
            LoanDeductionDetail(
                loan_id=entry.loan_id,
                schedule_entry_id=entry.entry_id,
                installment_number=entry.installment_number,
                installment_amount=entry.amount_due,
                outstanding_balance=entry.outstanding_balance,
            )
            for entry in entries
        )
        return cls(
            total=sum((entry.amount_due for entry in entries), ZERO),
            details=details,
            entry_ids=tuple(entry.entry_id for entry in entries),
        )


class LoanDeductionIntegrator:
    """Two-pass loan deduction for one employee-month."""

    def __init__(self, store: LoanScheduleStore) -> None:
        self._store = store

    def compute(self, tenant_id: str, employee_id: str, period_date: date) -> LoanDeduction:
        try:
            entries = self._store.find_due_installments(tenant_id, employee_id, period_date)
        except Exception as exc:
            self._log_degraded("compute", exc)
            return LoanDeduction.zero(degraded=True)
        return LoanDeduction.from_entries(entries)

    def link(
        self,
        tenant_id: str,
        employee_id: str,
        period_date: date,
        payroll_record_id: UUID,
    ) -> LoanDeduction:
        try:
            entries = self._store.find_due_installments(tenant_id, employee_id, period_date)
            deduction = LoanDeduction.from_entries(entries)
            if deduction.entry_ids:
                linked = self._store.link_installments_to_payroll(
                    list(deduction.entry_ids), payroll_record_id,
                )
                logger.info(
                    "loan_installments_linked",
                    extra={
                        "linked_count": linked,
                        "loan_deduction": str(deduction.total),
                    },
                )
        except Exception as exc:
            self._log_degraded("link", exc)
            return LoanDeduction.zero(degraded=True)
        return deduction

    @staticmethod
    def _log_degraded(phase: str, exc: Exception) -> None:
        if not isinstance(exc, DependencyQueryError):
            exc = DependencyQueryError("loan_schedule", str(exc))
        logger.warning(
            "loan_lookup_degraded",
            extra={"phase": phase, "dependency": exc.dependency, "detail": exc.detail},
        )
