"""
SqlLoanScheduleStore -- SQLAlchemy-backed loan EMI schedule store.

Responsibility:
    Implements the ``LoanScheduleStore`` collaborator over the
    ``loan_emi_schedule`` table, and persists new schedules generated by
    the amortization engine when a loan is disbursed.

Architecture position:
    Services -- imperative shell.  Shares the caller's session, so linking
    happens in the same transaction as the payroll record insert.

Invariants enforced:
    - ``find_due_installments`` returns every non-waived installment due in
      the period's calendar month, linked or not, so a record rebuilt after
      a Draft deletion re-links the same installments.
    - Linking sets the weak ``payroll_record_id`` back-reference and marks
      the installment PAID.

Failure modes:
    - DependencyQueryError wraps any SQLAlchemyError.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from payroll_engines.amortization import add_months, calculate_emi_with_dates
from payroll_kernel.domain.collaborators import ScheduleEntry
from payroll_kernel.exceptions import DependencyQueryError
from payroll_kernel.logging_config import get_logger
from payroll_kernel.models.loan_schedule import LoanEmiScheduleModel, ScheduleEntryStatus

logger = get_logger("services.loan_schedule_store")

_DEPENDENCY = "loan_schedule"


class SqlLoanScheduleStore:
    """Loan schedule collaborator backed by the payroll database."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def find_due_installments(
        self,
        tenant_id: str,
        employee_id: str,
        period_date: date,
    ) -> list[ScheduleEntry]:
        month_start = period_date.replace(day=1)
        next_month = add_months(month_start, 1)
        stmt = (
            select(LoanEmiScheduleModel)
            .where(
                LoanEmiScheduleModel.tenant_id == tenant_id,
                LoanEmiScheduleModel.employee_id == employee_id,
                LoanEmiScheduleModel.status != ScheduleEntryStatus.WAIVED.value,
                LoanEmiScheduleModel.due_date >= month_start,
                LoanEmiScheduleModel.due_date < next_month,
            )
            .order_by(LoanEmiScheduleModel.loan_id, LoanEmiScheduleModel.installment_number)
        )
        try:
            return [row.to_entry() for row in self._session.scalars(stmt)]
        except SQLAlchemyError as exc:
            raise DependencyQueryError(_DEPENDENCY, str(exc)) from exc

    def link_installments_to_payroll(
        self,
        entry_ids: list[UUID],
        payroll_record_id: UUID,
    ) -> int:
        if not entry_ids:
            return 0
        stmt = (
            update(LoanEmiScheduleModel)
            .where(LoanEmiScheduleModel.id.in_(entry_ids))
            .values(
                payroll_record_id=payroll_record_id,
                status=ScheduleEntryStatus.PAID.value,
            )
            .execution_options(synchronize_session=False)
        )
        try:
            result = self._session.execute(stmt)
        except SQLAlchemyError as exc:
            raise DependencyQueryError(_DEPENDENCY, str(exc)) from exc
        return result.rowcount

    def create_schedule(
        self,
        tenant_id: str,
        employee_id: str,
        loan_id: str,
        principal: Decimal,
        annual_rate: Decimal,
        tenor_months: int,
        first_due_date: date,
    ) -> list[ScheduleEntry]:
        """Generate and persist a full EMI schedule for a disbursed loan."""
        result = calculate_emi_with_dates(principal, annual_rate, tenor_months, first_due_date)
        rows = [
            LoanEmiScheduleModel(
                tenant_id=tenant_id,
                employee_id=employee_id,
                loan_id=loan_id,
                installment_number=line.installment_number,
                due_date=line.due_date,
                principal_amount=line.principal_amount,
                interest_amount=line.interest_amount,
                installment_amount=line.installment_amount,
                outstanding_balance=line.outstanding_balance,
                status=ScheduleEntryStatus.PENDING.value,
            )
            for line in result.schedule
        ]
        try:
            self._session.add_all(rows)
            self._session.flush()
        except SQLAlchemyError as exc:
            raise DependencyQueryError(_DEPENDENCY, str(exc)) from exc

        logger.info(
            "loan_schedule_created",
            extra={
                "loan_id": loan_id,
                "employee_id": employee_id,
                "tenor_months": tenor_months,
                "installment_amount": str(result.installment_amount),
                "total_interest": str(result.total_interest),
            },
        )
        return [row.to_entry() for row in rows]
