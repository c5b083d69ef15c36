"""
Collaborator contracts (``payroll_kernel.domain.collaborators``).

Responsibility
--------------
Value objects exchanged with the systems that surround payroll (employee
directory, attendance, leave, loans, audit, notifications) and the
``Protocol`` each of them must satisfy.  The payroll core depends only on
these shapes, never on a concrete store.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects and structural protocols.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Protocol, runtime_checkable
from uuid import UUID

from payroll_kernel.domain.payroll import DateRange

ZERO = Decimal("0")
HALF = Decimal("0.5")

EMPLOYEE_STATUS_ACTIVE = "Active"

# Leave types that reduce pay, compared case-insensitively.
UNPAID_LEAVE_TYPES: frozenset[str] = frozenset({
    "lop",
    "loss of pay",
    "unpaid",
    "unpaid leave",
})
LEAVE_STATUS_APPROVED = "Approved"


@dataclass(frozen=True)
class Employee:
    """Read-only view of an employee supplied by the directory."""

    employee_id: str
    tenant_id: str
    employee_code: str
    first_name: str = ""
    last_name: str = ""
    designation: str = ""
    location: str = ""
    base_pay: Decimal | None = None
    status: str = EMPLOYEE_STATUS_ACTIVE
    email: str | None = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_active(self) -> bool:
        return self.status == EMPLOYEE_STATUS_ACTIVE


@dataclass(frozen=True)
class LeaveSpan:
    """An approved leave request covering ``start_date..end_date``."""

    leave_type: str
    start_date: date
    end_date: date
    status: str = LEAVE_STATUS_APPROVED
    half_day: bool = False

    @property
    def is_unpaid(self) -> bool:
        return self.leave_type.strip().lower() in UNPAID_LEAVE_TYPES

    @property
    def is_approved(self) -> bool:
        return self.status == LEAVE_STATUS_APPROVED

    def overlap_days(self, period: DateRange) -> Decimal:
        """Days of this span inside ``period``; half-day spans count 0.5 per day."""
        clipped = DateRange(self.start_date, self.end_date).clip(period.start, period.end)
        if clipped is None:
            return ZERO
        days = Decimal(clipped.days)
        return days * HALF if self.half_day else days


@dataclass(frozen=True)
class ScheduleEntry:
    """One installment row of a loan's EMI schedule."""

    entry_id: UUID
    loan_id: str
    installment_number: int
    due_date: date
    principal_amount: Decimal
    interest_amount: Decimal
    installment_amount: Decimal
    outstanding_balance: Decimal
    payroll_record_id: UUID | None = None

    @property
    def amount_due(self) -> Decimal:
        return self.principal_amount + self.interest_amount


@dataclass(frozen=True)
class AuditEvent:
    """Fire-and-forget audit record handed to the audit sink."""

    action: str
    tenant_id: str
    actor_id: str
    entity_type: str
    entity_id: str
    occurred_at: datetime
    payload: dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class EmployeeDirectory(Protocol):
    def find_active_employees(self, tenant_id: str) -> list[Employee]: ...

    def find_employee(self, tenant_id: str, employee_id: str) -> Employee | None: ...


@runtime_checkable
class AttendanceStore(Protocol):
    def count_absent_days(
        self, tenant_id: str, employee_id: str, date_range: DateRange,
    ) -> int: ...


@runtime_checkable
class LeaveStore(Protocol):
    def find_approved_unpaid_leave_overlapping(
        self, tenant_id: str, employee_id: str, date_range: DateRange,
    ) -> list[LeaveSpan]: ...


@runtime_checkable
class LoanScheduleStore(Protocol):
    def find_due_installments(
        self, tenant_id: str, employee_id: str, period_date: date,
    ) -> list[ScheduleEntry]: ...

    def link_installments_to_payroll(
        self, entry_ids: list[UUID], payroll_record_id: UUID,
    ) -> int: ...


@runtime_checkable
class AuditSink(Protocol):
    def record(self, event: AuditEvent) -> None: ...


@runtime_checkable
class NotificationSink(Protocol):
    def notify(self, employee: Employee, template_id: str, payload: dict[str, Any]) -> None: ...
