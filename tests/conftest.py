"""
Pytest fixtures for the payroll engine test suite.

Provides:
- SQLite database sessions (in-memory for unit tests, file-backed for
  multi-session and concurrency tests)
- In-memory fakes for every external collaborator
- Maker / checker / finance actors
- Structured log capture
"""

import json
import logging
import threading
from collections.abc import Callable
from datetime import date, datetime, timezone
from decimal import Decimal
from io import StringIO
from typing import Any, Generator
from uuid import UUID

import pytest
from sqlalchemy.orm import Session, sessionmaker

from payroll_config import default_config
from payroll_kernel.db.engine import (
    create_tables,
    get_session,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from payroll_kernel.domain.approval import Actor, ActorRole
from payroll_kernel.domain.clock import DeterministicClock
from payroll_kernel.domain.collaborators import (
    AuditEvent,
    Employee,
    LeaveSpan,
    ScheduleEntry,
)
from payroll_kernel.domain.payroll import DateRange
from payroll_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from payroll_kernel.services.auditor_service import PayrollAuditor
from payroll_kernel.services.notification_service import NotificationDispatcher
from payroll_services.loan_schedule_store import SqlLoanScheduleStore
from payroll_services.record_builder import PayrollRecordBuilder

TENANT_ID = "tenant-acme"
OTHER_TENANT_ID = "tenant-globex"


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture payroll_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, builder):
            builder.build(...)
            logs = captured_logs()
            assert any(r["message"] == "payroll_record_created" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("payroll_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def db_engine():
    """Fresh in-memory SQLite database with every payroll table."""
    engine = init_engine_from_url("sqlite://")
    create_tables()
    yield engine
    reset_engine()


@pytest.fixture
def session(db_engine) -> Generator[Session, None, None]:
    sess = get_session()
    yield sess
    sess.close()


@pytest.fixture
def file_session_factory(tmp_path) -> Generator[sessionmaker[Session], None, None]:
    """File-backed SQLite so every session owns its own connection."""
    init_engine_from_url(f"sqlite:///{tmp_path / 'payroll.db'}")
    create_tables()
    yield get_session_factory()
    reset_engine()


# =============================================================================
# Clock / config
# =============================================================================


@pytest.fixture
def deterministic_clock() -> DeterministicClock:
    return DeterministicClock(datetime(2024, 1, 10, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def payroll_config():
    return default_config()


# =============================================================================
# Collaborator fakes
# =============================================================================


class InMemoryEmployeeDirectory:
    def __init__(self, employees: list[Employee] | None = None):
        self.employees: list[Employee] = list(employees or [])
        self.fail_with: Exception | None = None

    def add(self, employee: Employee) -> Employee:
        self.employees.append(employee)
        return employee

    def find_active_employees(self, tenant_id: str) -> list[Employee]:
        if self.fail_with is not None:
            raise self.fail_with
        return [e for e in self.employees if e.tenant_id == tenant_id and e.is_active]

    def find_employee(self, tenant_id: str, employee_id: str) -> Employee | None:
        if self.fail_with is not None:
            raise self.fail_with
        for employee in self.employees:
            if employee.tenant_id == tenant_id and employee.employee_id == employee_id:
                return employee
        return None


class InMemoryAttendanceStore:
    def __init__(self):
        self.absent: dict[tuple[str, str], list[date]] = {}
        self.fail_with: Exception | None = None

    def mark_absent(self, tenant_id: str, employee_id: str, *days: date) -> None:
        self.absent.setdefault((tenant_id, employee_id), []).extend(days)

    def count_absent_days(self, tenant_id: str, employee_id: str, date_range: DateRange) -> int:
        if self.fail_with is not None:
            raise self.fail_with
        days = self.absent.get((tenant_id, employee_id), [])
        return sum(1 for day in days if date_range.contains(day))


class InMemoryLeaveStore:
    def __init__(self):
        self.spans: dict[tuple[str, str], list[LeaveSpan]] = {}
        self.fail_with: Exception | None = None

    def add(self, tenant_id: str, employee_id: str, span: LeaveSpan) -> None:
        self.spans.setdefault((tenant_id, employee_id), []).append(span)

    def find_approved_unpaid_leave_overlapping(
        self, tenant_id: str, employee_id: str, date_range: DateRange,
    ) -> list[LeaveSpan]:
        if self.fail_with is not None:
            raise self.fail_with
        return [
            span for span in self.spans.get((tenant_id, employee_id), [])
            if span.start_date <= date_range.end and span.end_date >= date_range.start
        ]


class InMemoryLoanScheduleStore:
    """Loan store whose answers can differ between the two passes."""

    def __init__(self):
        self.entries: dict[tuple[str, str], list[ScheduleEntry]] = {}
        self.linked: dict[UUID, UUID] = {}
        self.queries = 0
        self.fail_with: Exception | None = None
        self.fail_link_with: Exception | None = None
        self.after_first_query: Callable[[], None] | None = None

    def add(self, tenant_id: str, employee_id: str, entry: ScheduleEntry) -> None:
        self.entries.setdefault((tenant_id, employee_id), []).append(entry)

    def find_due_installments(
        self, tenant_id: str, employee_id: str, period_date: date,
    ) -> list[ScheduleEntry]:
        if self.fail_with is not None:
            raise self.fail_with
        self.queries += 1
        result = [
            entry for entry in self.entries.get((tenant_id, employee_id), [])
            if (entry.due_date.year, entry.due_date.month)
            == (period_date.year, period_date.month)
        ]
        if self.queries == 1 and self.after_first_query is not None:
            self.after_first_query()
        return result

    def link_installments_to_payroll(self, entry_ids: list[UUID], payroll_record_id: UUID) -> int:
        if self.fail_link_with is not None:
            raise self.fail_link_with
        for entry_id in entry_ids:
            self.linked[entry_id] = payroll_record_id
        return len(entry_ids)


class RecordingAuditSink:
    def __init__(self, fail: bool = False):
        self.events: list[AuditEvent] = []
        self.fail = fail
        self._lock = threading.Lock()

    def record(self, event: AuditEvent) -> None:
        if self.fail:
            raise RuntimeError("audit store unavailable")
        with self._lock:
            self.events.append(event)

    def actions(self) -> list[str]:
        return [e.action for e in self.events]


class RecordingNotificationSink:
    def __init__(self, fail: bool = False):
        self.sent: list[tuple[str, str, dict[str, Any]]] = []
        self.fail = fail
        self._lock = threading.Lock()

    def notify(self, employee: Employee, template_id: str, payload: dict[str, Any]) -> None:
        if self.fail:
            raise RuntimeError("smtp down")
        with self._lock:
            self.sent.append((employee.employee_code, template_id, dict(payload)))


@pytest.fixture
def directory() -> InMemoryEmployeeDirectory:
    return InMemoryEmployeeDirectory()


@pytest.fixture
def attendance() -> InMemoryAttendanceStore:
    return InMemoryAttendanceStore()


@pytest.fixture
def leaves() -> InMemoryLeaveStore:
    return InMemoryLeaveStore()


@pytest.fixture
def loan_store() -> InMemoryLoanScheduleStore:
    return InMemoryLoanScheduleStore()


@pytest.fixture
def audit_sink() -> RecordingAuditSink:
    return RecordingAuditSink()


@pytest.fixture
def auditor(audit_sink, deterministic_clock) -> PayrollAuditor:
    return PayrollAuditor(sink=audit_sink, clock=deterministic_clock)


@pytest.fixture
def notification_sink() -> RecordingNotificationSink:
    return RecordingNotificationSink()


@pytest.fixture
def notifier(notification_sink) -> Generator[NotificationDispatcher, None, None]:
    dispatcher = NotificationDispatcher(sink=notification_sink)
    yield dispatcher
    dispatcher.shutdown()


# =============================================================================
# Actors and employees
# =============================================================================


@pytest.fixture
def maker() -> Actor:
    return Actor("user-maker", TENANT_ID, ActorRole.MAKER, name="Meera Maker")


@pytest.fixture
def other_maker() -> Actor:
    return Actor("user-maker-2", TENANT_ID, ActorRole.MAKER, name="Mohan Maker")


@pytest.fixture
def checker() -> Actor:
    return Actor("user-checker", TENANT_ID, ActorRole.CHECKER, name="Chitra Checker")


@pytest.fixture
def finance() -> Actor:
    return Actor("user-finance", TENANT_ID, ActorRole.FINANCE, name="Farhan Finance")


@pytest.fixture
def make_employee(directory):
    """Factory registering an employee with the in-memory directory."""
    counter = {"n": 0}

    def _make(
        base_pay: Decimal | str | None = "50000",
        location: str = "Mumbai",
        designation: str = "Engineer",
        tenant_id: str = TENANT_ID,
        email: str | None = "employee@example.com",
        status: str = "Active",
    ) -> Employee:
        counter["n"] += 1
        n = counter["n"]
        employee = Employee(
            employee_id=f"emp-{n:03d}",
            tenant_id=tenant_id,
            employee_code=f"E{n:03d}",
            first_name="Employee",
            last_name=str(n),
            designation=designation,
            location=location,
            base_pay=Decimal(base_pay) if base_pay is not None else None,
            status=status,
            email=email,
        )
        return directory.add(employee)

    return _make


@pytest.fixture
def builder(
    session, attendance, leaves, directory, deterministic_clock, auditor,
) -> PayrollRecordBuilder:
    """Builder wired to the SQL loan schedule store on the test session."""
    return PayrollRecordBuilder(
        session,
        attendance,
        leaves,
        SqlLoanScheduleStore(session),
        directory=directory,
        clock=deterministic_clock,
        auditor=auditor,
    )
