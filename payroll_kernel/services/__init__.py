"""Kernel services: approval lifecycle, audit emission, notifications."""

from payroll_kernel.services.approval_service import PayrollApprovalService
from payroll_kernel.services.auditor_service import AuditAction, PayrollAuditor
from payroll_kernel.services.notification_service import (
    TEMPLATE_PAYROLL_PAID,
    TEMPLATE_PAYROLL_PROCESSED,
    TEMPLATE_PAYSLIP_GENERATED,
    NotificationDispatcher,
)

__all__ = [
    "AuditAction",
    "NotificationDispatcher",
    "PayrollApprovalService",
    "PayrollAuditor",
    "TEMPLATE_PAYROLL_PAID",
    "TEMPLATE_PAYROLL_PROCESSED",
    "TEMPLATE_PAYSLIP_GENERATED",
]
