"""
PayrollRecordBuilder -- computes and persists one Draft payroll record.

Responsibility:
    Orchestrates a single employee-month: authorizes the maker, validates
    the period, rejects duplicates, splits CTC, runs the statutory, loss of
    pay and loan deduction calculators, persists the Draft record with its
    first history line, links loan installments, and audits the creation.

Architecture position:
    Services -- imperative shell.  All arithmetic lives in payroll_engines
    and the PayrollComponents value object; this class only sequences calls
    and owns the transactional edges.

Invariants enforced:
    - At most one record per (tenant, employee, month, year).  The pre-check
      gives a clean error; the UNIQUE constraint is the authority, and its
      IntegrityError is reported as the same DuplicateRecordError.
    - The insert runs inside a SAVEPOINT so a constraint failure leaves the
      caller's session usable.
    - net_salary == gross_salary - total employee deductions, including
      after a loan-deduction drift correction.

Failure modes:
    - RoleViolationError: actor is not a maker of this tenant.
    - InvalidPeriodError, MissingCompensationError, ValidationError.
    - DuplicateRecordError: record exists already (pre-check or constraint).
    - PersistenceError: any other storage failure during insert.
    - DependencyQueryError: directory lookup failed in ``create_record``.
      Attendance, leave and loan failures degrade instead of raising.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from payroll_config import default_config
from payroll_config.schema import PayrollConfig
from payroll_engines.statutory import calculate_statutory_breakdown
from payroll_kernel.domain.approval import Actor, PayrollAction, evaluate_transition
from payroll_kernel.domain.clock import Clock, SystemClock
from payroll_kernel.domain.collaborators import (
    AttendanceStore,
    Employee,
    EmployeeDirectory,
    LeaveStore,
    LoanScheduleStore,
)
from payroll_kernel.domain.payroll import (
    PayrollComponents,
    PayrollRecordSnapshot,
    period_date,
    validate_period,
)
from payroll_kernel.exceptions import (
    DependencyQueryError,
    DuplicateRecordError,
    MissingCompensationError,
    PersistenceError,
    RoleViolationError,
    ValidationError,
)
from payroll_kernel.logging_config import LogContext, get_logger
from payroll_kernel.models.payroll_record import (
    PayrollApprovalHistoryModel,
    PayrollLoanDeductionModel,
    PayrollRecordModel,
)
from payroll_kernel.services.auditor_service import AuditAction, PayrollAuditor
from payroll_services.loan_integrator import LoanDeduction, LoanDeductionIntegrator
from payroll_services.lop_reconciler import LossOfPayReconciler

logger = get_logger("services.record_builder")

CENT = Decimal("0.01")


class PayrollRecordBuilder:
    """Builds Draft payroll records for one session."""

    def __init__(
        self,
        session: Session,
        attendance: AttendanceStore,
        leaves: LeaveStore,
        loan_store: LoanScheduleStore,
        directory: EmployeeDirectory | None = None,
        config: PayrollConfig | None = None,
        clock: Clock | None = None,
        auditor: PayrollAuditor | None = None,
    ) -> None:
        self._session = session
        self._directory = directory
        self._config = config or default_config()
        self._clock = clock or SystemClock()
        self._auditor = auditor or PayrollAuditor(clock=self._clock)
        self._lop = LossOfPayReconciler(attendance, leaves, divisor=self._config.lop_divisor)
        self._loans = LoanDeductionIntegrator(loan_store)

    def create_record(
        self,
        tenant_id: str,
        employee_id: str,
        month: int,
        year: int,
        actor: Actor,
    ) -> PayrollRecordSnapshot:
        """Resolve the employee through the directory, then ``build``."""
        if self._directory is None:
            raise ValidationError("An employee directory is required to create by id")
        try:
            employee = self._directory.find_employee(tenant_id, employee_id)
        except Exception as exc:
            raise DependencyQueryError("employee_directory", str(exc)) from exc
        if employee is None or employee.tenant_id != tenant_id:
            raise ValidationError(f"Employee not found: {employee_id}")
        return self.build(employee, month, year, actor)

    def build(
        self,
        employee: Employee,
        month: int,
        year: int,
        actor: Actor,
    ) -> PayrollRecordSnapshot:
        evaluate_transition("", None, PayrollAction.CREATE, actor)
        if actor.tenant_id != employee.tenant_id:
            raise RoleViolationError(
                PayrollAction.CREATE.value,
                actor.role.value,
                [],
                message=f"Actor {actor.actor_id} does not belong to tenant {employee.tenant_id}",
            )
        validate_period(month, year)

        with LogContext.bind(
            tenant_id=employee.tenant_id,
            employee_id=employee.employee_id,
            actor_id=actor.actor_id,
        ):
            existing = self._find_existing(employee, month, year)
            if existing is not None:
                raise DuplicateRecordError(
                    employee.tenant_id, employee.employee_id, month, year,
                    existing_record_id=str(existing),
                )

            ctc = employee.base_pay
            if ctc is None or ctc <= 0:
                raise MissingCompensationError(employee.employee_id, employee.employee_code)

            components, loans = self._compute(employee, ctc, month, year)
            record_id = uuid4()
            model = self._insert(employee, month, year, actor, record_id, components, loans)
            self._link_loans(employee, month, year, model, loans)

            snapshot = model.to_dto()
            self._auditor.record_payroll_event(
                AuditAction.PAYROLL_CREATED,
                tenant_id=employee.tenant_id,
                actor_id=actor.actor_id,
                record_id=record_id,
                payload={
                    "employee_id": employee.employee_id,
                    "month": month,
                    "year": year,
                    "gross_salary": str(snapshot.gross_salary),
                    "net_salary": str(snapshot.net_salary),
                },
            )
            logger.info(
                "payroll_record_created",
                extra={
                    "payroll_record_id": str(record_id),
                    "employee_code": employee.employee_code,
                    "month": month,
                    "year": year,
                    "gross_salary": str(snapshot.gross_salary),
                    "net_salary": str(snapshot.net_salary),
                },
            )
            return snapshot

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _find_existing(self, employee: Employee, month: int, year: int) -> UUID | None:
        stmt = select(PayrollRecordModel.id).where(
            PayrollRecordModel.tenant_id == employee.tenant_id,
            PayrollRecordModel.employee_id == employee.employee_id,
            PayrollRecordModel.month == month,
            PayrollRecordModel.year == year,
        )
        try:
            return self._session.scalars(stmt).first()
        except SQLAlchemyError as exc:
            raise PersistenceError("duplicate_check", str(exc)) from exc

    def _compute(
        self,
        employee: Employee,
        ctc: Decimal,
        month: int,
        year: int,
    ) -> tuple[PayrollComponents, LoanDeduction]:
        basic = (ctc * self._config.basic_ratio).quantize(CENT, rounding=ROUND_HALF_UP)
        other = (ctc * self._config.allowance_ratio).quantize(CENT, rounding=ROUND_HALF_UP)
        breakdown = calculate_statutory_breakdown(
            basic, other, employee.location or "", rates=self._config.statutory,
        )
        lop = self._lop.reconcile(
            employee.tenant_id, employee.employee_id, month, year, breakdown.gross_salary,
        )
        loans = self._loans.compute(
            employee.tenant_id, employee.employee_id, period_date(month, year),
        )
        components = PayrollComponents(
            basic_salary=breakdown.basic_salary,
            dearness_allowance=breakdown.dearness_allowance,
            house_rent_allowance=breakdown.house_rent_allowance,
            other_allowances=breakdown.other_allowances,
            pf_employee=breakdown.provident_fund.employee,
            pf_employer=breakdown.provident_fund.employer,
            esi_employee=breakdown.state_insurance.employee,
            esi_employer=breakdown.state_insurance.employer,
            income_tax=breakdown.income_tax,
            professional_tax=breakdown.professional_tax,
            lop_days=lop.days,
            lop_deduction=lop.deduction,
            loan_deduction=loans.total,
        )
        return components, loans

    def _insert(
        self,
        employee: Employee,
        month: int,
        year: int,
        actor: Actor,
        record_id: UUID,
        components: PayrollComponents,
        loans: LoanDeduction,
    ) -> PayrollRecordModel:
        now = self._clock.now()
        model = PayrollRecordModel(
            id=record_id,
            tenant_id=employee.tenant_id,
            employee_id=employee.employee_id,
            employee_code=employee.employee_code,
            employee_name=employee.full_name,
            employee_designation=employee.designation or self._config.default_designation,
            month=month,
            year=year,
            maker_id=actor.actor_id,
            maker_name=actor.name,
            created_at=now,
            updated_at=now,
        )
        model.apply_components(components)
        model.loan_details = [PayrollLoanDeductionModel.from_dto(d) for d in loans.details]
        model.approval_history = [
            PayrollApprovalHistoryModel(
                sequence=1,
                action="Created",
                actor_id=actor.actor_id,
                actor_name=actor.name,
                actor_role=actor.role.value,
                comment="",
                occurred_at=now,
            )
        ]

        try:
            with self._session.begin_nested():
                self._session.add(model)
        except IntegrityError as exc:
            logger.info(
                "payroll_duplicate_insert_rejected",
                extra={"month": month, "year": year},
            )
            raise DuplicateRecordError(
                employee.tenant_id, employee.employee_id, month, year,
            ) from exc
        except SQLAlchemyError as exc:
            raise PersistenceError("insert_payroll_record", str(exc)) from exc
        return model

    def _link_loans(
        self,
        employee: Employee,
        month: int,
        year: int,
        model: PayrollRecordModel,
        first_pass: LoanDeduction,
    ) -> None:
        second_pass = self._loans.link(
            employee.tenant_id, employee.employee_id, period_date(month, year), model.id,
        )
        if second_pass.degraded or second_pass.total == first_pass.total:
            return

        corrected = model.components().with_changes(loan_deduction=second_pass.total)
        logger.warning(
            "loan_deduction_drift",
            extra={
                "payroll_record_id": str(model.id),
                "first_pass": str(first_pass.total),
                "second_pass": str(second_pass.total),
            },
        )
        model.apply_components(corrected)
        model.loan_details = [
            PayrollLoanDeductionModel.from_dto(d) for d in second_pass.details
        ]
        try:
            self._session.flush()
        except SQLAlchemyError as exc:
            raise PersistenceError("correct_loan_deduction", str(exc)) from exc
