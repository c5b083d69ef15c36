"""Payroll services: record building, loss of pay, loans and statistics."""

from payroll_services.loan_integrator import LoanDeduction, LoanDeductionIntegrator
from payroll_services.loan_schedule_store import SqlLoanScheduleStore
from payroll_services.lop_reconciler import LossOfPayReconciler, LossOfPayResult
from payroll_services.record_builder import PayrollRecordBuilder
from payroll_services.reporting import (
    DesignationTotals,
    PayrollStats,
    PayrollStatsReport,
    summarize_by_designation,
)

__all__ = [
    "DesignationTotals",
    "LoanDeduction",
    "LoanDeductionIntegrator",
    "LossOfPayReconciler",
    "LossOfPayResult",
    "PayrollRecordBuilder",
    "PayrollStats",
    "PayrollStatsReport",
    "SqlLoanScheduleStore",
    "summarize_by_designation",
]
