"""
Typed Exception Hierarchy for the Payroll Kernel.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from PayrollKernelError:

    PayrollKernelError (base)
    |
    +-- ValidationError
    |   +-- InvalidAmountError
    |   +-- InvalidTenorError
    |   +-- InvalidRateError
    |   +-- InvalidPeriodError
    |   +-- MissingCompensationError
    |   +-- NonEditableFieldError
    |
    +-- DuplicateRecordError
    +-- PayrollRecordNotFoundError
    |
    +-- RoleViolationError
    |   +-- SelfApprovalForbiddenError
    |
    +-- StateTransitionError
    |   +-- RecordImmutableError
    |   +-- ConcurrentTransitionError
    |
    +-- DependencyQueryError
    +-- PersistenceError
    +-- EmptyOrganizationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                      | When Raised
----------------|---------------------------|-------------------------------------------
Validation      | INVALID_AMOUNT            | Loan principal <= 0
                | INVALID_TENOR             | Tenor is not a positive integer
                | INVALID_RATE              | Annual rate outside [0, 100]
                | INVALID_PERIOD            | Month outside 1-12 or implausible year
                | MISSING_COMPENSATION      | Employee has no positive CTC
                | NON_EDITABLE_FIELD        | Draft update touches a derived/identity field
----------------|---------------------------|-------------------------------------------
Record          | DUPLICATE_RECORD          | (tenant, employee, month, year) exists
                | PAYROLL_RECORD_NOT_FOUND  | Unknown id, or id of another tenant
----------------|---------------------------|-------------------------------------------
Duties          | ROLE_VIOLATION            | Actor role may not perform the action
                | SELF_APPROVAL_FORBIDDEN   | Maker approving their own record
----------------|---------------------------|-------------------------------------------
Lifecycle       | STATE_TRANSITION_ERROR    | Status does not allow the action
                | RECORD_IMMUTABLE          | Any mutation of a Paid record
                | CONCURRENT_TRANSITION     | Status changed under us (lost race)
----------------|---------------------------|-------------------------------------------
Dependencies    | DEPENDENCY_QUERY_FAILED   | Attendance/leave/loan/directory lookup failed
                | PERSISTENCE_ERROR         | Storage layer failure or timeout
                | EMPTY_ORGANIZATION        | Bulk run found no active employees

===============================================================================
HANDLING PATTERNS
===============================================================================

1. BULK RUNS SKIP AND CONTINUE:

    try:
        builder.build(employee, month, year, actor)
    except DuplicateRecordError as e:
        failures.append(EmployeeFailure.from_error(employee, e))

2. DEGRADE, DO NOT ABORT, ON DEPENDENCY FAILURE:

    except DependencyQueryError as e:
        logger.warning("lop_lookup_degraded", extra={"dependency": e.dependency})
        return LossOfPayResult.zero(degraded=True)

3. USE STRUCTURED DATA (not message parsing):

    except StateTransitionError as e:
        return {"error": e.code, "status": e.current_status, "action": e.action}
"""


class PayrollKernelError(Exception):
    """
    Base exception for all payroll kernel errors.

    All subclasses carry a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "PAYROLL_KERNEL_ERROR"


# Validation


class ValidationError(PayrollKernelError):
    """Malformed or missing required input. Reported, never retried."""

    code: str = "VALIDATION_ERROR"


class InvalidAmountError(ValidationError):
    """Loan principal must be strictly positive."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, amount: str):
        self.amount = amount
        super().__init__(f"Principal amount must be greater than 0, got {amount}")


class InvalidTenorError(ValidationError):
    """Tenor must be a positive whole number of months."""

    code: str = "INVALID_TENOR"

    def __init__(self, tenor: str):
        self.tenor = tenor
        super().__init__(f"Tenor must be a positive integer (months), got {tenor}")


class InvalidRateError(ValidationError):
    """Annual interest rate must lie in [0, 100]."""

    code: str = "INVALID_RATE"

    def __init__(self, rate: str):
        self.rate = rate
        super().__init__(f"Interest rate must be between 0 and 100, got {rate}")


class InvalidPeriodError(ValidationError):
    """Payroll period (month/year) is not valid."""

    code: str = "INVALID_PERIOD"

    def __init__(self, month: int, year: int):
        self.month = month
        self.year = year
        super().__init__(f"Invalid payroll period: month={month}, year={year}")


class MissingCompensationError(ValidationError):
    """Employee has no positive base compensation (CTC)."""

    code: str = "MISSING_COMPENSATION"

    def __init__(self, employee_id: str, employee_code: str | None = None):
        self.employee_id = employee_id
        self.employee_code = employee_code
        super().__init__(
            f"Employee {employee_code or employee_id} salary is not set or is 0. "
            "Please assign salary/CTC to employee."
        )


class NonEditableFieldError(ValidationError):
    """Draft update attempted to change a derived or identity field."""

    code: str = "NON_EDITABLE_FIELD"

    def __init__(self, field_names: list[str]):
        self.field_names = field_names
        super().__init__(
            f"Fields cannot be edited directly: {', '.join(sorted(field_names))}"
        )


# Record existence


class DuplicateRecordError(PayrollKernelError):
    """A payroll record already exists for the employee and period.

    Benign in bulk mode: the employee was already processed.
    """

    code: str = "DUPLICATE_RECORD"

    def __init__(
        self,
        tenant_id: str,
        employee_id: str,
        month: int,
        year: int,
        existing_record_id: str | None = None,
    ):
        self.tenant_id = tenant_id
        self.employee_id = employee_id
        self.month = month
        self.year = year
        self.existing_record_id = existing_record_id
        super().__init__(
            f"Payroll already exists for employee {employee_id} "
            f"for period {year}-{month:02d}"
        )


class PayrollRecordNotFoundError(PayrollKernelError):
    """Payroll record does not exist (or belongs to another tenant)."""

    code: str = "PAYROLL_RECORD_NOT_FOUND"

    def __init__(self, record_id: str):
        self.record_id = record_id
        super().__init__(f"Payroll record not found: {record_id}")


# Segregation of duties


class RoleViolationError(PayrollKernelError):
    """Actor's role is not allowed to perform the requested action."""

    code: str = "ROLE_VIOLATION"

    def __init__(
        self,
        action: str,
        actor_role: str,
        allowed_roles: list[str],
        message: str | None = None,
    ):
        self.action = action
        self.actor_role = actor_role
        self.allowed_roles = allowed_roles
        super().__init__(
            message
            or f"Access denied. Role '{actor_role}' cannot {action} payroll; "
            f"allowed roles: {', '.join(allowed_roles)}"
        )


class SelfApprovalForbiddenError(RoleViolationError):
    """An actor may not approve a record they made (or already checked)."""

    code: str = "SELF_APPROVAL_FORBIDDEN"

    def __init__(self, record_id: str, actor_id: str, action: str, actor_role: str):
        self.record_id = record_id
        self.actor_id = actor_id
        super().__init__(
            action,
            actor_role,
            [],
            message=(
                f"Actor {actor_id} cannot {action} payroll {record_id}: "
                "another administrator must approve"
            ),
        )


# Lifecycle


class StateTransitionError(PayrollKernelError):
    """The record's current status does not permit the action."""

    code: str = "STATE_TRANSITION_ERROR"

    def __init__(self, record_id: str, current_status: str, action: str, reason: str = ""):
        self.record_id = record_id
        self.current_status = current_status
        self.action = action
        message = f"Payroll cannot {action}. Current status: {current_status}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class RecordImmutableError(StateTransitionError):
    """Paid records are permanently immutable."""

    code: str = "RECORD_IMMUTABLE"

    def __init__(self, record_id: str, action: str):
        super().__init__(
            record_id, "Paid", action,
            reason="payroll that has already been paid cannot be modified",
        )


class ConcurrentTransitionError(StateTransitionError):
    """Status changed between load and update; another actor won the race."""

    code: str = "CONCURRENT_TRANSITION"

    def __init__(self, record_id: str, expected_status: str, action: str):
        self.expected_status = expected_status
        super().__init__(
            record_id, expected_status, action,
            reason="record was modified concurrently",
        )


# Infrastructure


class DependencyQueryError(PayrollKernelError):
    """A collaborator lookup (attendance, leave, loans, directory) failed."""

    code: str = "DEPENDENCY_QUERY_FAILED"

    def __init__(self, dependency: str, detail: str):
        self.dependency = dependency
        self.detail = detail
        super().__init__(f"{dependency} query failed: {detail}")


class PersistenceError(PayrollKernelError):
    """Storage layer failure, including client timeouts."""

    code: str = "PERSISTENCE_ERROR"

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Persistence failure during {operation}: {detail}")


class EmptyOrganizationError(PayrollKernelError):
    """Bulk run found no active employees for the tenant."""

    code: str = "EMPTY_ORGANIZATION"

    def __init__(self, tenant_id: str):
        self.tenant_id = tenant_id
        super().__init__(f"No active employees found for tenant {tenant_id}")
