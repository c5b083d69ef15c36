"""
NotificationDispatcher -- asynchronous, best-effort employee notifications.

Responsibility:
    Hands payslip and payment notifications to the external notification
    sink on a small background thread pool so payroll operations never wait
    on delivery.

Invariants enforced:
    - Delivery failures are logged, never raised to the caller.
    - Employees without an e-mail address are skipped.

Failure modes:
    - None surfaced.  ``drain()`` waits for outstanding deliveries and is
      intended for shutdown and tests.
"""

from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Any

from payroll_kernel.domain.collaborators import Employee, NotificationSink
from payroll_kernel.logging_config import LogContext, get_logger

logger = get_logger("services.notification")

TEMPLATE_PAYSLIP_GENERATED = "payslip_generated"
TEMPLATE_PAYROLL_PROCESSED = "payroll_processed"
TEMPLATE_PAYROLL_PAID = "payroll_paid"


class NotificationDispatcher:
    """Fire-and-forget wrapper around a ``NotificationSink``."""

    def __init__(self, sink: NotificationSink | None = None, max_workers: int = 2) -> None:
        self._sink = sink
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="payroll-notify",
        )
        self._pending: set[Future] = set()
        self._lock = threading.Lock()

    def notify(self, employee: Employee | None, template_id: str, payload: dict[str, Any]) -> None:
        """Queue one notification.  Returns immediately."""
        if self._sink is None or employee is None:
            return
        if not employee.email:
            logger.debug(
                "notification_skipped_no_email",
                extra={"employee_code": employee.employee_code, "template_id": template_id},
            )
            return

        context = LogContext.get_all()
        future = self._executor.submit(self._deliver, employee, template_id, dict(payload), context)
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._forget)

    def _deliver(
        self,
        employee: Employee,
        template_id: str,
        payload: dict[str, Any],
        context: dict[str, str],
    ) -> None:
        with LogContext.bind(**context):
            try:
                self._sink.notify(employee, template_id, payload)
            except Exception:
                logger.warning(
                    "notification_failed",
                    extra={
                        "employee_code": employee.employee_code,
                        "template_id": template_id,
                    },
                    exc_info=True,
                )
                return
            logger.debug(
                "notification_sent",
                extra={"employee_code": employee.employee_code, "template_id": template_id},
            )

    def _forget(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)

    def drain(self, timeout: float | None = None) -> None:
        """Block until every queued notification has been attempted."""
        with self._lock:
            pending = list(self._pending)
        if pending:
            wait(pending, timeout=timeout)

    def shutdown(self, wait_for_pending: bool = True) -> None:
        self._executor.shutdown(wait=wait_for_pending)
