"""
BulkPayrollOrchestrator -- one payroll run across every active employee.

Contract:
    ``run_bulk_for_period(tenant_id, month, year, actor)`` builds a Draft
    record for each active employee of the tenant and reports what was
    created and what was skipped.

Architecture: payroll_batch.  Imports from payroll_services (the record
    builder) and kernel services (audit, notification, DB sessions).

Invariants enforced:
    - Per-employee isolation: each employee is built in its own
      transaction (``session_scope``); one failure never rolls back another.
    - Bounded concurrency: at most ``PayrollConfig.bulk_max_workers``
      employees run at once, each worker with its own session.
    - Idempotence: a second run for the same period creates nothing;
      previously processed employees report DUPLICATE_RECORD.
    - All timestamps come from the injected Clock.

Failure modes:
    - RoleViolationError: actor is not a maker (checked once, up front).
    - InvalidPeriodError: month/year out of range.
    - EmptyOrganizationError: no active employees.  The only hard failure
      once the run has started.
    - DependencyQueryError: the directory could not list employees.
    Everything else is a per-employee failure in the result.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from uuid import uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from payroll_config import default_config
from payroll_config.schema import PayrollConfig
from payroll_kernel.db.engine import session_scope
from payroll_kernel.domain.approval import Actor, PayrollAction, evaluate_transition
from payroll_kernel.domain.clock import Clock, SystemClock
from payroll_kernel.domain.collaborators import Employee, EmployeeDirectory
from payroll_kernel.domain.payroll import validate_period
from payroll_kernel.exceptions import (
    DependencyQueryError,
    DuplicateRecordError,
    EmptyOrganizationError,
    PayrollKernelError,
    PersistenceError,
    RoleViolationError,
)
from payroll_kernel.logging_config import LogContext, get_logger
from payroll_kernel.services.auditor_service import AuditAction, PayrollAuditor
from payroll_kernel.services.notification_service import (
    TEMPLATE_PAYSLIP_GENERATED,
    NotificationDispatcher,
)
from payroll_services.record_builder import PayrollRecordBuilder
from payroll_services.reporting import summarize_by_designation

from payroll_batch.types import (
    BulkRunResult,
    BulkRunStatus,
    EmployeeFailure,
    EmployeeOutcome,
)

logger = get_logger("batch.orchestrator")

BuilderFactory = Callable[[Session], PayrollRecordBuilder]


class BulkPayrollOrchestrator:
    """Runs payroll for a whole organization, one transaction per employee.

    Non-goals:
        - Does NOT retry failed employees; a second run does that, and
          already-created records come back as DUPLICATE_RECORD.
        - Does NOT submit records; every record is left in Draft.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        directory: EmployeeDirectory,
        builder_factory: BuilderFactory,
        config: PayrollConfig | None = None,
        clock: Clock | None = None,
        auditor: PayrollAuditor | None = None,
        notifier: NotificationDispatcher | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._directory = directory
        self._builder_factory = builder_factory
        self._config = config or default_config()
        self._clock = clock or SystemClock()
        self._auditor = auditor or PayrollAuditor(clock=self._clock)
        self._notifier = notifier

    def run_bulk_for_period(
        self,
        tenant_id: str,
        month: int,
        year: int,
        actor: Actor,
    ) -> BulkRunResult:
        evaluate_transition("", None, PayrollAction.CREATE, actor)
        if actor.tenant_id != tenant_id:
            raise RoleViolationError(
                PayrollAction.CREATE.value,
                actor.role.value,
                [],
                message=f"Actor {actor.actor_id} does not belong to tenant {tenant_id}",
            )
        validate_period(month, year)

        run_id = uuid4()
        with LogContext.bind(run_id=str(run_id), tenant_id=tenant_id, actor_id=actor.actor_id):
            start_time = time.monotonic()
            started_at = self._clock.now()
            self._warn_if_past_deadline(month, year)

            employees = self._active_employees(tenant_id)
            if not employees:
                logger.warning("bulk_run_empty_organization")
                raise EmptyOrganizationError(tenant_id)

            workers = min(self._config.bulk_max_workers, len(employees))
            logger.info(
                "bulk_run_started",
                extra={
                    "month": month,
                    "year": year,
                    "employee_count": len(employees),
                    "max_workers": workers,
                },
            )

            context = LogContext.get_all()
            if workers > 1:
                with ThreadPoolExecutor(
                    max_workers=workers, thread_name_prefix="payroll-bulk",
                ) as pool:
                    outcomes = list(pool.map(
                        lambda emp: self._process_employee(emp, month, year, actor, context),
                        employees,
                    ))
            else:
                outcomes = [
                    self._process_employee(emp, month, year, actor, context)
                    for emp in employees
                ]

            created = tuple(o for o in outcomes if isinstance(o, EmployeeOutcome))
            failures = tuple(o for o in outcomes if isinstance(o, EmployeeFailure))
            summary = summarize_by_designation(
                (o.designation, o.basic_salary, o.gross_salary, o.net_salary)
                for o in created
            )
            completed_at = self._clock.now()
            duration_ms = int((time.monotonic() - start_time) * 1000)

            result = BulkRunResult(
                run_id=run_id,
                tenant_id=tenant_id,
                month=month,
                year=year,
                status=BulkRunStatus.SUCCESS,
                total_employees=len(employees),
                created=created,
                failures=failures,
                summary=summary,
                started_at=started_at,
                completed_at=completed_at,
                duration_ms=duration_ms,
                config_checksum=self._config.checksum,
            )

            self._auditor.record(
                AuditAction.BULK_RUN_COMPLETED,
                tenant_id=tenant_id,
                actor_id=actor.actor_id,
                entity_type="PayrollRun",
                entity_id=str(run_id),
                payload={
                    "month": month,
                    "year": year,
                    "total_employees": len(employees),
                    "created": len(created),
                    "failed": len(failures),
                    "config_checksum": self._config.checksum,
                },
            )
            self._notify_payslips(employees, created)

            logger.info(
                "bulk_run_completed",
                extra={
                    "month": month,
                    "year": year,
                    "employee_count": len(employees),
                    "created_count": len(created),
                    "failed_count": len(failures),
                    "duration_ms": duration_ms,
                },
            )
            return result

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _active_employees(self, tenant_id: str) -> list[Employee]:
        try:
            employees = self._directory.find_active_employees(tenant_id)
        except DependencyQueryError:
            raise
        except Exception as exc:
            raise DependencyQueryError("employee_directory", str(exc)) from exc
        return [e for e in employees if e.is_active and e.tenant_id == tenant_id]

    def _process_employee(
        self,
        employee: Employee,
        month: int,
        year: int,
        actor: Actor,
        context: dict[str, str],
    ) -> EmployeeOutcome | EmployeeFailure:
        with LogContext.bind(**{**context, "employee_id": employee.employee_id}):
            try:
                with session_scope(self._session_factory) as session:
                    snapshot = self._builder_factory(session).build(
                        employee, month, year, actor,
                    )
            except DuplicateRecordError as exc:
                logger.info(
                    "bulk_employee_skipped_duplicate",
                    extra={"employee_code": employee.employee_code},
                )
                return EmployeeFailure.from_error(employee, exc)
            except PayrollKernelError as exc:
                logger.warning(
                    "bulk_employee_failed",
                    extra={"employee_code": employee.employee_code, "error_code": exc.code},
                )
                return EmployeeFailure.from_error(employee, exc)
            except (SQLAlchemyError, TimeoutError) as exc:
                error = PersistenceError("bulk_employee", str(exc))
                logger.warning(
                    "bulk_employee_failed",
                    extra={"employee_code": employee.employee_code, "error_code": error.code},
                )
                return EmployeeFailure.from_error(employee, error)
            except Exception as exc:
                logger.error(
                    "bulk_employee_unexpected_error",
                    extra={"employee_code": employee.employee_code},
                    exc_info=True,
                )
                return EmployeeFailure.from_error(employee, exc)
            return EmployeeOutcome.from_snapshot(snapshot)

    def _warn_if_past_deadline(self, month: int, year: int) -> None:
        today = self._clock.now().date()
        deadline = self._config.processing_deadline_day
        if (today.year, today.month) == (year, month) and today.day > deadline:
            logger.warning(
                "payroll_processing_deadline_passed",
                extra={"deadline_day": deadline, "run_day": today.day},
            )

    def _notify_payslips(
        self,
        employees: list[Employee],
        created: tuple[EmployeeOutcome, ...],
    ) -> None:
        if self._notifier is None:
            return
        by_id = {e.employee_id: e for e in employees}
        for outcome in created:
            self._notifier.notify(
                by_id.get(outcome.employee_id),
                TEMPLATE_PAYSLIP_GENERATED,
                {
                    "record_id": str(outcome.record_id),
                    "net_salary": str(outcome.net_salary),
                },
            )
