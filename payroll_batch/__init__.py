"""Bulk payroll runs."""

from payroll_batch.orchestrator import BulkPayrollOrchestrator
from payroll_batch.types import (
    BulkRunResult,
    BulkRunStatus,
    EmployeeFailure,
    EmployeeOutcome,
)

__all__ = [
    "BulkPayrollOrchestrator",
    "BulkRunResult",
    "BulkRunStatus",
    "EmployeeFailure",
    "EmployeeOutcome",
]
