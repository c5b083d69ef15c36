"""ORM models for the payroll kernel."""

from payroll_kernel.models.loan_schedule import LoanEmiScheduleModel, ScheduleEntryStatus
from payroll_kernel.models.payroll_record import (
    PayrollApprovalHistoryModel,
    PayrollLoanDeductionModel,
    PayrollRecordModel,
)

__all__ = [
    "LoanEmiScheduleModel",
    "PayrollApprovalHistoryModel",
    "PayrollLoanDeductionModel",
    "PayrollRecordModel",
    "ScheduleEntryStatus",
    "import_all_models",
]


def import_all_models() -> None:
    """Ensure every model module is imported so Base.metadata is complete."""
    import payroll_kernel.models.loan_schedule  # noqa: F401
    import payroll_kernel.models.payroll_record  # noqa: F401
