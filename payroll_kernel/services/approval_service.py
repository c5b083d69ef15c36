"""
PayrollApprovalService -- maker-checker-finance lifecycle of payroll records.

Responsibility:
    Applies the transitions defined in ``payroll_kernel.domain.approval``
    to persisted payroll records: submit, approve (checker and finance
    steps), reject, finalize, reopen, Draft edits and Draft deletion.
    Also the read side: single-record lookup and filtered listing.

Architecture position:
    Kernel > Services -- imperative shell.  Decisions are made by the pure
    ``evaluate_transition``; this service only loads, persists, audits and
    notifies.

Invariants enforced:
    - Status change and approval-history append happen in one transaction.
    - Optimistic concurrency: the UPDATE is guarded by
      ``WHERE status = <status the decision was made on>``.  Zero rows
      updated means another actor won the race.
    - Net salary is rewritten from PayrollComponents on every Draft edit.
    - A Paid record is immutable to every path.

Failure modes:
    - PayrollRecordNotFoundError: unknown id, or record of another tenant.
    - StateTransitionError / RecordImmutableError: no edge from the status.
    - RoleViolationError / SelfApprovalForbiddenError: duties breach.
    - ConcurrentTransitionError: status changed between load and update.
    - ValidationError: reject without a reason.
    - NonEditableFieldError: Draft edit names a derived or unknown field.
    - PersistenceError: storage failure on update, delete or history insert.

Audit relevance:
    Every successful action emits a payroll audit event and one approval
    history row carrying actor, role, comment and timestamp.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from payroll_kernel.domain.approval import (
    Actor,
    PayrollAction,
    PayrollStatus,
    TransitionRule,
    evaluate_transition,
)
from payroll_kernel.domain.clock import Clock, SystemClock
from payroll_kernel.domain.collaborators import Employee, EmployeeDirectory
from payroll_kernel.domain.payroll import EDITABLE_COMPONENTS, PayrollRecordSnapshot
from payroll_kernel.exceptions import (
    ConcurrentTransitionError,
    NonEditableFieldError,
    PayrollRecordNotFoundError,
    PersistenceError,
    ValidationError,
)
from payroll_kernel.logging_config import LogContext, get_logger
from payroll_kernel.models.payroll_record import (
    PayrollApprovalHistoryModel,
    PayrollLoanDeductionModel,
    PayrollRecordModel,
)
from payroll_kernel.services.auditor_service import AuditAction, PayrollAuditor
from payroll_kernel.services.notification_service import (
    TEMPLATE_PAYROLL_PAID,
    TEMPLATE_PAYROLL_PROCESSED,
    NotificationDispatcher,
)

logger = get_logger("services.approval")

_AUDIT_ACTIONS: dict[PayrollStatus | None, AuditAction] = {
    PayrollStatus.SUBMITTED: AuditAction.PAYROLL_SUBMITTED,
    PayrollStatus.APPROVED: AuditAction.PAYROLL_APPROVED,
    PayrollStatus.REJECTED: AuditAction.PAYROLL_REJECTED,
    PayrollStatus.PROCESSED: AuditAction.PAYROLL_PROCESSED,
    PayrollStatus.PAID: AuditAction.PAYROLL_PAID,
    PayrollStatus.DRAFT: AuditAction.PAYROLL_REOPENED,
}

_NOTIFY_TEMPLATES: dict[PayrollStatus, str] = {
    PayrollStatus.PROCESSED: TEMPLATE_PAYROLL_PROCESSED,
    PayrollStatus.PAID: TEMPLATE_PAYROLL_PAID,
}


class PayrollApprovalService:
    """Drives payroll records through the approval lifecycle."""

    def __init__(
        self,
        session: Session,
        auditor: PayrollAuditor | None = None,
        clock: Clock | None = None,
        notifier: NotificationDispatcher | None = None,
        directory: EmployeeDirectory | None = None,
    ) -> None:
        self._session = session
        self._clock = clock or SystemClock()
        self._auditor = auditor or PayrollAuditor(clock=self._clock)
        self._notifier = notifier
        self._directory = directory

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    def get_record(self, record_id: UUID, tenant_id: str) -> PayrollRecordSnapshot:
        return self._load(record_id, tenant_id).to_dto()

    def list_records(
        self,
        tenant_id: str,
        *,
        month: int | None = None,
        year: int | None = None,
        status: PayrollStatus | None = None,
        employee_id: str | None = None,
    ) -> list[PayrollRecordSnapshot]:
        stmt = select(PayrollRecordModel).where(PayrollRecordModel.tenant_id == tenant_id)
        if month is not None:
            stmt = stmt.where(PayrollRecordModel.month == month)
        if year is not None:
            stmt = stmt.where(PayrollRecordModel.year == year)
        if status is not None:
            stmt = stmt.where(PayrollRecordModel.status == status.value)
        if employee_id is not None:
            stmt = stmt.where(PayrollRecordModel.employee_id == employee_id)
        stmt = stmt.order_by(
            PayrollRecordModel.year.desc(),
            PayrollRecordModel.month.desc(),
            PayrollRecordModel.employee_code,
        )
        return [model.to_dto() for model in self._session.scalars(stmt)]

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def submit(self, record_id: UUID, actor: Actor, comment: str = "") -> PayrollRecordSnapshot:
        return self._transition(record_id, actor, PayrollAction.SUBMIT, comment)

    def approve(self, record_id: UUID, actor: Actor, comment: str = "") -> PayrollRecordSnapshot:
        """Checker approval, or the finance step when the record is Approved."""
        return self._transition(record_id, actor, PayrollAction.APPROVE, comment)

    def reject(self, record_id: UUID, actor: Actor, reason: str) -> PayrollRecordSnapshot:
        return self._transition(record_id, actor, PayrollAction.REJECT, reason)

    def finalize(self, record_id: UUID, actor: Actor, comment: str = "") -> PayrollRecordSnapshot:
        return self._transition(record_id, actor, PayrollAction.FINALIZE, comment)

    def reopen(self, record_id: UUID, actor: Actor, comment: str = "") -> PayrollRecordSnapshot:
        return self._transition(record_id, actor, PayrollAction.REOPEN, comment)

    def update_draft(
        self,
        record_id: UUID,
        actor: Actor,
        changes: dict[str, Any],
        comment: str = "",
    ) -> PayrollRecordSnapshot:
        """Edit monetary components of a Draft; gross and net are recomputed."""
        model = self._load(record_id, actor.tenant_id)
        current = PayrollStatus(model.status)
        with LogContext.bind(payroll_record_id=str(model.id), actor_id=actor.actor_id):
            rule = evaluate_transition(
                str(model.id), current, PayrollAction.UPDATE, actor,
                maker_id=model.maker_id, checker_id=model.checker_id,
            )

            rejected = [name for name in changes if name not in EDITABLE_COMPONENTS]
            if rejected:
                raise NonEditableFieldError(rejected)

            before = model.components()
            after = before.with_changes(**changes)
            now = self._clock.now()
            values: dict[str, Any] = {
                name: getattr(after, name) for name in changes
            }
            values["gross_salary"] = after.gross_salary
            values["net_salary"] = after.net_salary
            values["updated_at"] = now

            self._guarded_update(model, current, PayrollAction.UPDATE, values)
            snapshot = self._append_history(
                model, rule, current, PayrollAction.UPDATE, actor, comment, now,
            )

            self._auditor.record_payroll_event(
                AuditAction.PAYROLL_UPDATED,
                tenant_id=actor.tenant_id,
                actor_id=actor.actor_id,
                record_id=model.id,
                payload={
                    "changes": {name: str(getattr(after, name)) for name in changes},
                    "previous_net_salary": str(before.net_salary),
                    "net_salary": str(after.net_salary),
                },
            )
            logger.info(
                "payroll_draft_updated",
                extra={
                    "fields": sorted(changes),
                    "net_salary": str(after.net_salary),
                },
            )
            return snapshot

    def delete_draft(self, record_id: UUID, actor: Actor) -> None:
        """Hard-delete a Draft record and its child rows."""
        model = self._load(record_id, actor.tenant_id)
        current = PayrollStatus(model.status)
        with LogContext.bind(payroll_record_id=str(model.id), actor_id=actor.actor_id):
            evaluate_transition(
                str(model.id), current, PayrollAction.DELETE, actor,
                maker_id=model.maker_id, checker_id=model.checker_id,
            )

            try:
                result = self._session.execute(
                    delete(PayrollRecordModel)
                    .where(
                        PayrollRecordModel.id == model.id,
                        PayrollRecordModel.status == current.value,
                    )
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount == 1:
                    self._session.execute(
                        delete(PayrollLoanDeductionModel)
                        .where(PayrollLoanDeductionModel.payroll_record_id == model.id)
                        .execution_options(synchronize_session=False)
                    )
                    self._session.execute(
                        delete(PayrollApprovalHistoryModel)
                        .where(PayrollApprovalHistoryModel.payroll_record_id == model.id)
                        .execution_options(synchronize_session=False)
                    )
                    self._session.expunge(model)
                    self._session.flush()
            except SQLAlchemyError as exc:
                raise PersistenceError("delete_payroll_record", str(exc)) from exc
            if result.rowcount != 1:
                raise ConcurrentTransitionError(
                    str(model.id), current.value, PayrollAction.DELETE.value,
                )

            self._auditor.record_payroll_event(
                AuditAction.PAYROLL_DELETED,
                tenant_id=actor.tenant_id,
                actor_id=actor.actor_id,
                record_id=record_id,
                payload={
                    "employee_id": model.employee_id,
                    "month": model.month,
                    "year": model.year,
                },
            )
            logger.info("payroll_draft_deleted")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _load(self, record_id: UUID, tenant_id: str) -> PayrollRecordModel:
        try:
            model = self._session.get(PayrollRecordModel, record_id)
        except SQLAlchemyError as exc:
            raise PersistenceError("load_payroll_record", str(exc)) from exc
        if model is None or model.tenant_id != tenant_id:
            raise PayrollRecordNotFoundError(str(record_id))
        return model

    def _transition(
        self,
        record_id: UUID,
        actor: Actor,
        action: PayrollAction,
        comment: str,
    ) -> PayrollRecordSnapshot:
        model = self._load(record_id, actor.tenant_id)
        current = PayrollStatus(model.status)
        with LogContext.bind(
            payroll_record_id=str(model.id),
            actor_id=actor.actor_id,
            tenant_id=actor.tenant_id,
        ):
            rule = evaluate_transition(
                str(model.id), current, action, actor,
                maker_id=model.maker_id, checker_id=model.checker_id,
            )
            comment = (comment or "").strip()
            if rule.requires_comment and not comment:
                raise ValidationError(f"A reason is required to {action.value} payroll")

            now = self._clock.now()
            values = self._transition_values(rule, actor, comment, now)
            self._guarded_update(model, current, action, values)
            snapshot = self._append_history(model, rule, current, action, actor, comment, now)

            self._auditor.record_payroll_event(
                _AUDIT_ACTIONS[rule.next_status],
                tenant_id=actor.tenant_id,
                actor_id=actor.actor_id,
                record_id=model.id,
                payload={
                    "from_status": current.value,
                    "to_status": snapshot.status.value,
                    "actor_role": actor.role.value,
                    "comment": comment,
                },
            )
            logger.info(
                "payroll_status_transition",
                extra={
                    "action": action.value,
                    "from_status": current.value,
                    "to_status": snapshot.status.value,
                    "actor_role": actor.role.value,
                },
            )

            template = _NOTIFY_TEMPLATES.get(snapshot.status)
            if template is not None and self._notifier is not None:
                self._notifier.notify(
                    self._employee_for(snapshot),
                    template,
                    {
                        "month": snapshot.month,
                        "year": snapshot.year,
                        "net_salary": str(snapshot.net_salary),
                    },
                )
            return snapshot

    @staticmethod
    def _transition_values(
        rule: TransitionRule,
        actor: Actor,
        comment: str,
        now: datetime,
    ) -> dict[str, Any]:
        target = rule.next_status
        values: dict[str, Any] = {"status": target.value, "updated_at": now}
        if target is PayrollStatus.SUBMITTED:
            values["submitted_at"] = now
        elif target is PayrollStatus.APPROVED:
            values.update(checker_id=actor.actor_id, checker_name=actor.name, approved_at=now)
        elif target is PayrollStatus.PROCESSED:
            values.update(
                finance_approver_id=actor.actor_id,
                finance_approver_name=actor.name,
                processed_at=now,
            )
        elif target is PayrollStatus.REJECTED:
            values.update(rejection_reason=comment, rejected_at=now)
        elif target is PayrollStatus.PAID:
            values["paid_at"] = now
        elif target is PayrollStatus.DRAFT:
            # Reopened records go through the full approval chain again.
            values.update(
                checker_id=None,
                checker_name=None,
                finance_approver_id=None,
                finance_approver_name=None,
                submitted_at=None,
                approved_at=None,
                rejection_reason=None,
                rejected_at=None,
            )
        return values

    def _guarded_update(
        self,
        model: PayrollRecordModel,
        expected: PayrollStatus,
        action: PayrollAction,
        values: dict[str, Any],
    ) -> None:
        try:
            result = self._session.execute(
                update(PayrollRecordModel)
                .where(
                    PayrollRecordModel.id == model.id,
                    PayrollRecordModel.tenant_id == model.tenant_id,
                    PayrollRecordModel.status == expected.value,
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )
        except SQLAlchemyError as exc:
            raise PersistenceError(f"{action.value}_payroll_record", str(exc)) from exc
        if result.rowcount != 1:
            logger.warning(
                "payroll_transition_lost_race",
                extra={"expected_status": expected.value, "action": action.value},
            )
            raise ConcurrentTransitionError(str(model.id), expected.value, action.value)

    def _append_history(
        self,
        model: PayrollRecordModel,
        rule: TransitionRule,
        expected: PayrollStatus,
        action: PayrollAction,
        actor: Actor,
        comment: str,
        now: datetime,
    ) -> PayrollRecordSnapshot:
        entry = PayrollApprovalHistoryModel(
            payroll_record_id=model.id,
            sequence=model.next_history_sequence(),
            action=rule.history_label,
            actor_id=actor.actor_id,
            actor_name=actor.name,
            actor_role=actor.role.value,
            comment=comment,
            occurred_at=now,
        )
        try:
            with self._session.begin_nested():
                self._session.add(entry)
        except IntegrityError as exc:
            # Same sequence already taken: a concurrent action on this record.
            logger.warning(
                "payroll_history_sequence_conflict",
                extra={"sequence": entry.sequence, "action": action.value},
            )
            raise ConcurrentTransitionError(
                str(model.id), expected.value, action.value,
            ) from exc
        except SQLAlchemyError as exc:
            raise PersistenceError("append_approval_history", str(exc)) from exc
        self._session.expire(model)
        return model.to_dto()

    def _employee_for(self, snapshot: PayrollRecordSnapshot) -> Employee | None:
        if self._directory is None:
            return None
        try:
            return self._directory.find_employee(snapshot.tenant_id, snapshot.employee_id)
        except Exception:
            logger.warning(
                "notification_employee_lookup_failed",
                extra={"employee_id": snapshot.employee_id},
                exc_info=True,
            )
            return None
