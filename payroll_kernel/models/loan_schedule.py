"""
Module: payroll_kernel.models.loan_schedule
Responsibility: ORM persistence for loan EMI schedule rows consumed by
    payroll runs.

Architecture position: Kernel > Models.  May import from db/base.py and the
    pure domain layer only.

Invariants enforced:
    - One row per (loan_id, installment_number).
    - payroll_record_id is a weak back-reference (no foreign key); it is set
      only after the paying payroll record exists.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import CheckConstraint, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from payroll_kernel.db.base import Base, UUIDString
from payroll_kernel.domain.collaborators import ScheduleEntry


class ScheduleEntryStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    WAIVED = "WAIVED"


class LoanEmiScheduleModel(Base):
    """One installment of a loan's repayment schedule."""

    __tablename__ = "loan_emi_schedule"

    __table_args__ = (
        UniqueConstraint(
            "loan_id", "installment_number",
            name="uq_loan_emi_schedule_installment",
        ),
        CheckConstraint(
            "status IN ('PENDING', 'PAID', 'WAIVED')",
            name="ck_loan_emi_schedule_valid_status",
        ),
        Index(
            "ix_loan_emi_schedule_employee_due",
            "tenant_id", "employee_id", "due_date",
        ),
    )

    tenant_id: Mapped[str] = mapped_column(String(100), nullable=False)
    employee_id: Mapped[str] = mapped_column(String(100), nullable=False)
    loan_id: Mapped[str] = mapped_column(String(100), nullable=False)
    installment_number: Mapped[int] = mapped_column(Integer, nullable=False)
    due_date: Mapped[date] = mapped_column(nullable=False)
    principal_amount: Mapped[Decimal] = mapped_column(nullable=False)
    interest_amount: Mapped[Decimal] = mapped_column(nullable=False)
    installment_amount: Mapped[Decimal] = mapped_column(nullable=False)
    outstanding_balance: Mapped[Decimal] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ScheduleEntryStatus.PENDING.value,
    )
    payroll_record_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    def __repr__(self) -> str:
        return (
            f"<LoanEmiSchedule {self.loan_id}#{self.installment_number} "
            f"due={self.due_date} status={self.status}>"
        )

    def to_entry(self) -> ScheduleEntry:
        """Convert ORM model to the collaborator value object."""
        return ScheduleEntry(
            entry_id=self.id,
            loan_id=self.loan_id,
            installment_number=self.installment_number,
            due_date=self.due_date,
            principal_amount=self.principal_amount,
            interest_amount=self.interest_amount,
            installment_amount=self.installment_amount,
            outstanding_balance=self.outstanding_balance,
            payroll_record_id=self.payroll_record_id,
        )
