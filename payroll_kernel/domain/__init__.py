"""Pure domain types for the payroll kernel. No I/O."""

from payroll_kernel.domain.approval import (
    TRANSITIONS,
    Actor,
    ActorRole,
    PayrollAction,
    PayrollStatus,
    TransitionRule,
    evaluate_transition,
)
from payroll_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from payroll_kernel.domain.collaborators import (
    AttendanceStore,
    AuditEvent,
    AuditSink,
    Employee,
    EmployeeDirectory,
    LeaveSpan,
    LeaveStore,
    LoanScheduleStore,
    NotificationSink,
    ScheduleEntry,
)
from payroll_kernel.domain.payroll import (
    DateRange,
    PayrollComponents,
    month_date_range,
    period_date,
    validate_period,
)

__all__ = [
    "TRANSITIONS",
    "Actor",
    "ActorRole",
    "AttendanceStore",
    "AuditEvent",
    "AuditSink",
    "Clock",
    "DateRange",
    "DeterministicClock",
    "Employee",
    "EmployeeDirectory",
    "LeaveSpan",
    "LeaveStore",
    "LoanScheduleStore",
    "NotificationSink",
    "PayrollAction",
    "PayrollComponents",
    "PayrollStatus",
    "ScheduleEntry",
    "SystemClock",
    "TransitionRule",
    "evaluate_transition",
    "month_date_range",
    "period_date",
    "validate_period",
]
