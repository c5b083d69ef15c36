"""
Module: payroll_kernel.models.payroll_record
Responsibility: ORM persistence for payroll records, their per-loan deduction
    details and their append-only approval history.

Architecture position: Kernel > Models.  May import from db/base.py and the
    pure domain layer only.

Invariants enforced:
    - One record per (tenant_id, employee_id, month, year): UNIQUE constraint
      is the authoritative guard against concurrent duplicate inserts.
    - Stored gross_salary / net_salary are always written through
      apply_components(), so they equal the derived PayrollComponents totals.
    - Approval history rows are unique per (payroll_record_id, sequence).

Failure modes:
    - IntegrityError on duplicate (tenant, employee, period).
    - IntegrityError on a status value outside the lifecycle.

Audit relevance:
    Approval history is the segregation-of-duties trail: who made, checked,
    finance-approved and paid each record.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from payroll_kernel.db.base import Base, UUIDString
from payroll_kernel.domain.approval import PayrollStatus
from payroll_kernel.domain.payroll import (
    ApprovalHistoryEntry,
    LoanDeductionDetail,
    PayrollComponents,
    PayrollRecordSnapshot,
)

ZERO = Decimal("0")

_COMPONENT_COLUMNS = (
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
)


class PayrollRecordModel(Base):
    """Persistent payroll record for one employee and pay period."""

    __tablename__ = "payroll_records"

    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "employee_id", "month", "year",
            name="uq_payroll_records_employee_period",
        ),
        CheckConstraint(
            "status IN ('Draft', 'Submitted', 'Approved', 'Rejected', "
            "'Processed', 'Paid')",
            name="ck_payroll_records_valid_status",
        ),
        CheckConstraint(
            "month BETWEEN 1 AND 12",
            name="ck_payroll_records_valid_month",
        ),
        Index("ix_payroll_records_tenant_period", "tenant_id", "year", "month"),
        Index("ix_payroll_records_tenant_status", "tenant_id", "status"),
    )

    tenant_id: Mapped[str] = mapped_column(String(100), nullable=False)
    employee_id: Mapped[str] = mapped_column(String(100), nullable=False)
    employee_code: Mapped[str] = mapped_column(String(50), nullable=False)
    employee_name: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    employee_designation: Mapped[str] = mapped_column(
        String(200), nullable=False, default="",
    )
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)

    basic_salary: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    dearness_allowance: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    house_rent_allowance: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    other_allowances: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    gross_salary: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)

    pf_employee: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    pf_employer: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    esi_employee: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    esi_employer: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    income_tax: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    professional_tax: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    lop_days: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    lop_deduction: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    loan_deduction: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)
    net_salary: Mapped[Decimal] = mapped_column(nullable=False, default=ZERO)

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PayrollStatus.DRAFT.value,
    )
    maker_id: Mapped[str] = mapped_column(String(100), nullable=False)
    maker_name: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    checker_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    checker_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    finance_approver_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    finance_approver_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    submitted_at: Mapped[datetime | None] = mapped_column(nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(nullable=True)
    processed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False)
    updated_at: Mapped[datetime] = mapped_column(nullable=False)

    loan_details: Mapped[list[PayrollLoanDeductionModel]] = relationship(
        back_populates="payroll_record",
        cascade="all, delete-orphan",
        order_by="PayrollLoanDeductionModel.loan_id",
        lazy="selectin",
    )
    approval_history: Mapped[list[PayrollApprovalHistoryModel]] = relationship(
        back_populates="payroll_record",
        cascade="all, delete-orphan",
        order_by="PayrollApprovalHistoryModel.sequence",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return (
            f"<PayrollRecord {self.id} {self.employee_code} "
            f"{self.year}-{self.month:02d} status={self.status}>"
        )

    def components(self) -> PayrollComponents:
        """Current monetary components as a pure value object."""
        return PayrollComponents(
            **{name: getattr(self, name) for name in _COMPONENT_COLUMNS}
        )

    def apply_components(self, components: PayrollComponents) -> None:
        """Write components and their derived totals onto the row."""
        for name in _COMPONENT_COLUMNS:
            setattr(self, name, getattr(components, name))
        self.gross_salary = components.gross_salary
        self.net_salary = components.net_salary

    def next_history_sequence(self) -> int:
        if not self.approval_history:
            return 1
        return max(entry.sequence for entry in self.approval_history) + 1

    def to_dto(self) -> PayrollRecordSnapshot:
        """Convert ORM model to frozen domain DTO."""
        return PayrollRecordSnapshot(
            record_id=self.id,
            tenant_id=self.tenant_id,
            employee_id=self.employee_id,
            employee_code=self.employee_code,
            employee_name=self.employee_name,
            employee_designation=self.employee_designation,
            month=self.month,
            year=self.year,
            components=self.components(),
            status=PayrollStatus(self.status),
            maker_id=self.maker_id,
            maker_name=self.maker_name,
            checker_id=self.checker_id,
            checker_name=self.checker_name,
            finance_approver_id=self.finance_approver_id,
            finance_approver_name=self.finance_approver_name,
            rejection_reason=self.rejection_reason,
            submitted_at=self.submitted_at,
            approved_at=self.approved_at,
            rejected_at=self.rejected_at,
            processed_at=self.processed_at,
            paid_at=self.paid_at,
            created_at=self.created_at,
            updated_at=self.updated_at,
            loan_details=tuple(d.to_dto() for d in self.loan_details),
            approval_history=tuple(h.to_dto() for h in self.approval_history),
        )


class PayrollLoanDeductionModel(Base):
    """Per-loan installment deducted by a payroll record."""

    __tablename__ = "payroll_loan_deductions"

    payroll_record_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("payroll_records.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    loan_id: Mapped[str] = mapped_column(String(100), nullable=False)
    schedule_entry_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    installment_number: Mapped[int] = mapped_column(Integer, nullable=False)
    installment_amount: Mapped[Decimal] = mapped_column(nullable=False)
    outstanding_balance: Mapped[Decimal] = mapped_column(nullable=False)

    payroll_record: Mapped[PayrollRecordModel] = relationship(
        back_populates="loan_details",
    )

    def to_dto(self) -> LoanDeductionDetail:
        return LoanDeductionDetail(
            loan_id=self.loan_id,
            schedule_entry_id=self.schedule_entry_id,
            installment_number=self.installment_number,
            installment_amount=self.installment_amount,
            outstanding_balance=self.outstanding_balance,
        )

    @classmethod
    def from_dto(cls, dto: LoanDeductionDetail) -> PayrollLoanDeductionModel:
        return cls(
            loan_id=dto.loan_id,
            schedule_entry_id=dto.schedule_entry_id,
            installment_number=dto.installment_number,
            installment_amount=dto.installment_amount,
            outstanding_balance=dto.outstanding_balance,
        )


class PayrollApprovalHistoryModel(Base):
    """One append-only approval history line."""

    __tablename__ = "payroll_approval_history"

    __table_args__ = (
        UniqueConstraint(
            "payroll_record_id", "sequence",
            name="uq_payroll_approval_history_sequence",
        ),
    )

    payroll_record_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("payroll_records.id", ondelete="CASCADE"),
        nullable=False,
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    actor_id: Mapped[str] = mapped_column(String(100), nullable=False)
    actor_name: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    actor_role: Mapped[str] = mapped_column(String(50), nullable=False)
    comment: Mapped[str] = mapped_column(Text, nullable=False, default="")
    occurred_at: Mapped[datetime] = mapped_column(nullable=False)

    payroll_record: Mapped[PayrollRecordModel] = relationship(
        back_populates="approval_history",
    )

    def to_dto(self) -> ApprovalHistoryEntry:
        return ApprovalHistoryEntry(
            sequence=self.sequence,
            action=self.action,
            actor_id=self.actor_id,
            actor_name=self.actor_name,
            actor_role=self.actor_role,
            comment=self.comment,
            occurred_at=self.occurred_at,
        )
