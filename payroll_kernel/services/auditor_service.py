"""
PayrollAuditor -- best-effort audit trail for payroll state changes.

Responsibility:
    Builds ``AuditEvent`` value objects for every significant payroll state
    change and hands them to the external audit sink.

Architecture position:
    Kernel > Services -- imperative shell, called by the record builder,
    the approval service and the bulk orchestrator.

Invariants enforced:
    - Fire-and-forget: a failing or missing sink NEVER fails a payroll
      operation.  Failures are logged at WARNING with the action and entity.

Audit relevance:
    This IS the audit emitter.  Every created, edited, transitioned or
    deleted payroll record and every bulk run produces one event.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from payroll_kernel.domain.clock import Clock, SystemClock
from payroll_kernel.domain.collaborators import AuditEvent, AuditSink
from payroll_kernel.logging_config import get_logger

logger = get_logger("services.auditor")


class AuditAction(str, Enum):
    PAYROLL_CREATED = "payroll_created"
    PAYROLL_UPDATED = "payroll_updated"
    PAYROLL_DELETED = "payroll_deleted"
    PAYROLL_SUBMITTED = "payroll_submitted"
    PAYROLL_APPROVED = "payroll_approved"
    PAYROLL_REJECTED = "payroll_rejected"
    PAYROLL_PROCESSED = "payroll_processed"
    PAYROLL_PAID = "payroll_paid"
    PAYROLL_REOPENED = "payroll_reopened"
    BULK_RUN_COMPLETED = "payroll_bulk_run_completed"
    LOAN_SCHEDULE_CREATED = "loan_schedule_created"


class PayrollAuditor:
    """Wraps an ``AuditSink`` so that audit failures are swallowed and logged."""

    def __init__(self, sink: AuditSink | None = None, clock: Clock | None = None) -> None:
        self._sink = sink
        self._clock = clock or SystemClock()

    def record(
        self,
        action: AuditAction,
        *,
        tenant_id: str,
        actor_id: str,
        entity_type: str,
        entity_id: str,
        payload: dict[str, Any] | None = None,
    ) -> AuditEvent:
        """Build and emit one audit event.  Never raises."""
        event = AuditEvent(
            action=action.value,
            tenant_id=tenant_id,
            actor_id=actor_id,
            entity_type=entity_type,
            entity_id=str(entity_id),
            occurred_at=self._clock.now(),
            payload=dict(payload or {}),
        )
        if self._sink is None:
            logger.debug("audit_sink_not_configured", extra={"action": action.value})
            return event
        try:
            self._sink.record(event)
        except Exception:
            logger.warning(
                "audit_sink_failed",
                extra={
                    "action": action.value,
                    "entity_type": entity_type,
                    "entity_id": str(entity_id),
                },
                exc_info=True,
            )
        return event

    def record_payroll_event(
        self,
        action: AuditAction,
        *,
        tenant_id: str,
        actor_id: str,
        record_id: Any,
        payload: dict[str, Any] | None = None,
    ) -> AuditEvent:
        return self.record(
            action,
            tenant_id=tenant_id,
            actor_id=actor_id,
            entity_type="PayrollRecord",
            entity_id=str(record_id),
            payload=payload,
        )
