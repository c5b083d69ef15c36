"""
payroll_batch.types -- Pure frozen dataclasses for bulk payroll runs.

ZERO I/O.  Follows the kernel DTO pattern: frozen dataclasses with enum
status fields and tuples for immutable collections.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from payroll_kernel.domain.collaborators import Employee
from payroll_kernel.domain.payroll import PayrollRecordSnapshot
from payroll_kernel.exceptions import PayrollKernelError, PersistenceError
from payroll_services.reporting import DesignationTotals

UNEXPECTED_ERROR = "UNEXPECTED_ERROR"


class BulkRunStatus(str, Enum):
    SUCCESS = "SUCCESS"


@dataclass(frozen=True)
class EmployeeOutcome:
    """A record created by the run."""

    employee_id: str
    employee_code: str
    employee_name: str
    record_id: UUID
    designation: str
    basic_salary: Decimal
    gross_salary: Decimal
    net_salary: Decimal

    @classmethod
    def from_snapshot(cls, snapshot: PayrollRecordSnapshot) -> EmployeeOutcome:
        return cls(
            employee_id=snapshot.employee_id,
            employee_code=snapshot.employee_code,
            employee_name=snapshot.employee_name,
            record_id=snapshot.record_id,
            designation=snapshot.employee_designation,
            basic_salary=snapshot.components.basic_salary,
            gross_salary=snapshot.gross_salary,
            net_salary=snapshot.net_salary,
        )


@dataclass(frozen=True)
class EmployeeFailure:
    """An employee the run could not process, with a machine-readable code."""

    employee_id: str
    employee_code: str
    employee_name: str
    error_code: str
    error_message: str

    @classmethod
    def from_error(cls, employee: Employee, error: Exception) -> EmployeeFailure:
        if isinstance(error, PayrollKernelError):
            code = error.code
        else:
            code = UNEXPECTED_ERROR
        return cls(
            employee_id=employee.employee_id,
            employee_code=employee.employee_code,
            employee_name=employee.full_name,
            error_code=code,
            error_message=str(error),
        )

    @property
    def is_duplicate(self) -> bool:
        return self.error_code == "DUPLICATE_RECORD"

    @property
    def is_persistence_error(self) -> bool:
        return self.error_code == PersistenceError.code


@dataclass(frozen=True)
class BulkRunResult:
    """Immutable result of one bulk payroll run.

    ``status`` is SUCCESS whenever the run completes; per-employee problems
    are reported in ``failures``.
    """

    run_id: UUID
    tenant_id: str
    month: int
    year: int
    status: BulkRunStatus
    total_employees: int
    created: tuple[EmployeeOutcome, ...] = ()
    failures: tuple[EmployeeFailure, ...] = ()
    summary: tuple[DesignationTotals, ...] = ()
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_ms: int = 0
    config_checksum: str = ""

    @property
    def created_count(self) -> int:
        return len(self.created)

    @property
    def failed_count(self) -> int:
        return len(self.failures)

    def failures_with_code(self, code: str) -> tuple[EmployeeFailure, ...]:
        return tuple(f for f in self.failures if f.error_code == code)
