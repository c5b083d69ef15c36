"""
Tests for BulkPayrollOrchestrator.

Uses a file-backed SQLite database so each employee runs in its own
session and transaction, as it does in production.

Covers:
- One Draft record per active employee
- Idempotent re-run (every employee reported as DUPLICATE_RECORD)
- Per-employee failure isolation and error classification
- Up-front authorization, period and organization checks
- Designation summary, audit checksum, payslip notifications
- Processing deadline warning
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from payroll_batch import BulkPayrollOrchestrator, BulkRunStatus
from payroll_batch.types import UNEXPECTED_ERROR
from payroll_config import default_config
from payroll_kernel.domain.approval import Actor, ActorRole, PayrollStatus
from payroll_kernel.domain.clock import DeterministicClock
from payroll_kernel.exceptions import (
    DependencyQueryError,
    EmptyOrganizationError,
    InvalidPeriodError,
    RoleViolationError,
)
from payroll_kernel.models.payroll_record import PayrollRecordModel
from payroll_kernel.services.notification_service import TEMPLATE_PAYSLIP_GENERATED
from payroll_services import PayrollRecordBuilder, SqlLoanScheduleStore


@pytest.fixture
def builder_factory(attendance, leaves, directory, deterministic_clock, auditor):
    def _factory(session):
        return PayrollRecordBuilder(
            session,
            attendance,
            leaves,
            SqlLoanScheduleStore(session),
            directory=directory,
            clock=deterministic_clock,
            auditor=auditor,
        )

    return _factory


@pytest.fixture
def orchestrator(file_session_factory, directory, builder_factory, deterministic_clock, auditor, notifier):
    return BulkPayrollOrchestrator(
        file_session_factory,
        directory,
        builder_factory,
        clock=deterministic_clock,
        auditor=auditor,
        notifier=notifier,
    )


def _stored_records(session_factory, tenant_id="tenant-acme"):
    with session_factory() as session:
        return session.scalars(
            select(PayrollRecordModel)
            .where(PayrollRecordModel.tenant_id == tenant_id)
            .order_by(PayrollRecordModel.employee_code)
        ).all()


class TestBulkRun:

    def test_creates_one_draft_per_active_employee(
        self, orchestrator, make_employee, maker, file_session_factory,
    ):
        make_employee(designation="Engineer")
        make_employee(designation="Engineer", location="Pune")
        make_employee(designation="Manager", base_pay="80000")

        result = orchestrator.run_bulk_for_period(maker.tenant_id, 3, 2024, maker)

        assert result.status is BulkRunStatus.SUCCESS
        assert result.total_employees == 3
        assert result.created_count == 3
        assert result.failed_count == 0
        records = _stored_records(file_session_factory)
        assert [r.employee_code for r in records] == ["E001", "E002", "E003"]
        assert all(r.status == PayrollStatus.DRAFT.value for r in records)
        assert {o.record_id for o in result.created} == {r.id for r in records}

    def test_second_run_is_idempotent(
        self, orchestrator, make_employee, maker, file_session_factory,
    ):
        make_employee()
        make_employee()
        orchestrator.run_bulk_for_period(maker.tenant_id, 3, 2024, maker)

        second = orchestrator.run_bulk_for_period(maker.tenant_id, 3, 2024, maker)

        assert second.created_count == 0
        assert second.failed_count == 2
        assert all(f.is_duplicate for f in second.failures)
        assert len(second.failures_with_code("DUPLICATE_RECORD")) == 2
        assert len(_stored_records(file_session_factory)) == 2

    def test_inactive_and_foreign_employees_are_skipped(
        self, orchestrator, make_employee, maker,
    ):
        make_employee()
        make_employee(status="Inactive")
        make_employee(tenant_id="tenant-globex")

        result = orchestrator.run_bulk_for_period(maker.tenant_id, 3, 2024, maker)

        assert result.total_employees == 1
        assert result.created_count == 1

    def test_missing_compensation_is_isolated(
        self, orchestrator, make_employee, maker, file_session_factory,
    ):
        make_employee()
        unpaid = make_employee(base_pay=None)
        make_employee()

        result = orchestrator.run_bulk_for_period(maker.tenant_id, 3, 2024, maker)

        assert result.created_count == 2
        assert len(result.failures) == 1
        failure = result.failures[0]
        assert failure.employee_code == unpaid.employee_code
        assert failure.error_code == "MISSING_COMPENSATION"
        assert unpaid.employee_code in failure.error_message
        assert len(_stored_records(file_session_factory)) == 2

    def test_summary_groups_by_designation(self, orchestrator, make_employee, maker):
        make_employee(designation="Engineer")
        make_employee(designation="Engineer")
        make_employee(designation="Manager")

        result = orchestrator.run_bulk_for_period(maker.tenant_id, 3, 2024, maker)

        assert [(s.designation, s.employee_count) for s in result.summary] == [
            ("Engineer", 2), ("Manager", 1),
        ]
        engineer = result.summary[0]
        assert engineer.total_basic == Decimal("40000")
        assert engineer.total_gross == Decimal("85000")
        assert engineer.total_net == Decimal("76850")

    def test_result_carries_timing_and_checksum(self, orchestrator, make_employee, maker):
        make_employee()

        result = orchestrator.run_bulk_for_period(maker.tenant_id, 3, 2024, maker)

        assert result.started_at == datetime(2024, 1, 10, 12, 0, tzinfo=timezone.utc)
        assert result.completed_at == result.started_at
        assert result.duration_ms >= 0
        assert result.config_checksum == default_config().checksum


class TestUpFrontChecks:

    def test_checker_cannot_run(self, orchestrator, make_employee, checker):
        make_employee()

        with pytest.raises(RoleViolationError):
            orchestrator.run_bulk_for_period(checker.tenant_id, 3, 2024, checker)

    def test_maker_of_other_tenant_cannot_run(self, orchestrator, make_employee, maker):
        make_employee(tenant_id="tenant-globex")

        with pytest.raises(RoleViolationError):
            orchestrator.run_bulk_for_period("tenant-globex", 3, 2024, maker)

    def test_invalid_period(self, orchestrator, make_employee, maker):
        make_employee()

        with pytest.raises(InvalidPeriodError):
            orchestrator.run_bulk_for_period(maker.tenant_id, 0, 2024, maker)

    def test_empty_organization(self, orchestrator, make_employee, maker, audit_sink):
        make_employee(status="Inactive")

        with pytest.raises(EmptyOrganizationError):
            orchestrator.run_bulk_for_period(maker.tenant_id, 3, 2024, maker)
        assert audit_sink.events == []

    def test_directory_failure(self, orchestrator, directory, maker):
        directory.fail_with = ConnectionError("hr system down")

        with pytest.raises(DependencyQueryError):
            orchestrator.run_bulk_for_period(maker.tenant_id, 3, 2024, maker)


class TestFailureClassification:

    def test_unexpected_error_is_reported_not_raised(
        self, file_session_factory, directory, make_employee, maker, captured_logs,
    ):
        make_employee()

        def _broken(session):
            raise RuntimeError("builder wiring broken")

        orchestrator = BulkPayrollOrchestrator(file_session_factory, directory, _broken)
        result = orchestrator.run_bulk_for_period(maker.tenant_id, 3, 2024, maker)

        assert result.status is BulkRunStatus.SUCCESS
        assert result.failures[0].error_code == UNEXPECTED_ERROR
        assert "builder wiring broken" in result.failures[0].error_message
        assert any(r["message"] == "bulk_employee_unexpected_error" for r in captured_logs())

    def test_storage_error_is_persistence_error(
        self, file_session_factory, directory, make_employee, maker,
    ):
        make_employee()

        def _unavailable(session):
            raise OperationalError("INSERT", {}, Exception("database is locked"))

        orchestrator = BulkPayrollOrchestrator(file_session_factory, directory, _unavailable)
        result = orchestrator.run_bulk_for_period(maker.tenant_id, 3, 2024, maker)

        assert result.failures[0].error_code == "PERSISTENCE_ERROR"
        assert result.failures[0].is_persistence_error


class TestSideEffects:

    def test_run_is_audited_with_config_checksum(self, orchestrator, make_employee, maker, audit_sink):
        make_employee()
        make_employee()

        result = orchestrator.run_bulk_for_period(maker.tenant_id, 3, 2024, maker)

        assert audit_sink.actions().count("payroll_created") == 2
        run_events = [e for e in audit_sink.events if e.action == "payroll_bulk_run_completed"]
        assert len(run_events) == 1
        event = run_events[0]
        assert event.entity_type == "PayrollRun"
        assert event.entity_id == str(result.run_id)
        assert event.payload["config_checksum"] == default_config().checksum
        assert event.payload["created"] == 2

    def test_payslip_notifications(
        self, orchestrator, make_employee, maker, notifier, notification_sink,
    ):
        make_employee()
        make_employee(email=None)

        orchestrator.run_bulk_for_period(maker.tenant_id, 3, 2024, maker)
        notifier.drain(timeout=5)

        assert [(code, template) for (code, template, _) in notification_sink.sent] == [
            ("E001", TEMPLATE_PAYSLIP_GENERATED),
        ]
        assert Decimal(notification_sink.sent[0][2]["net_salary"]) == Decimal("38425")

    def test_notification_failure_does_not_fail_run(
        self, orchestrator, make_employee, maker, notifier, notification_sink,
    ):
        notification_sink.fail = True
        make_employee()

        result = orchestrator.run_bulk_for_period(maker.tenant_id, 3, 2024, maker)
        notifier.drain(timeout=5)

        assert result.created_count == 1

    def test_log_lines_carry_run_id(self, orchestrator, make_employee, maker, captured_logs):
        make_employee()

        result = orchestrator.run_bulk_for_period(maker.tenant_id, 3, 2024, maker)

        logs = captured_logs()
        completed = [r for r in logs if r["message"] == "bulk_run_completed"]
        assert completed[0]["run_id"] == str(result.run_id)
        created = [r for r in logs if r["message"] == "payroll_record_created"]
        assert created[0]["run_id"] == str(result.run_id)


class TestProcessingDeadline:

    def _orchestrator(self, file_session_factory, directory, builder_factory, when):
        return BulkPayrollOrchestrator(
            file_session_factory,
            directory,
            builder_factory,
            clock=DeterministicClock(when),
        )

    def test_warns_after_deadline_in_same_month(
        self, file_session_factory, directory, builder_factory, make_employee, maker, captured_logs,
    ):
        make_employee()
        orchestrator = self._orchestrator(
            file_session_factory, directory, builder_factory,
            datetime(2024, 1, 28, 9, 0, tzinfo=timezone.utc),
        )

        result = orchestrator.run_bulk_for_period(maker.tenant_id, 1, 2024, maker)

        assert result.created_count == 1
        warnings = [r for r in captured_logs() if r["message"] == "payroll_processing_deadline_passed"]
        assert len(warnings) == 1
        assert warnings[0]["deadline_day"] == 25
        assert warnings[0]["run_day"] == 28

    def test_no_warning_for_other_month(
        self, file_session_factory, directory, builder_factory, make_employee, maker, captured_logs,
    ):
        make_employee()
        orchestrator = self._orchestrator(
            file_session_factory, directory, builder_factory,
            datetime(2024, 1, 28, 9, 0, tzinfo=timezone.utc),
        )

        orchestrator.run_bulk_for_period(maker.tenant_id, 12, 2023, maker)

        assert not any(
            r["message"] == "payroll_processing_deadline_passed" for r in captured_logs()
        )


class TestRecordCount:

    def test_exactly_one_row_per_employee_period(
        self, orchestrator, make_employee, maker, file_session_factory,
    ):
        make_employee()
        orchestrator.run_bulk_for_period(maker.tenant_id, 3, 2024, maker)
        orchestrator.run_bulk_for_period(maker.tenant_id, 3, 2024, maker)
        orchestrator.run_bulk_for_period(maker.tenant_id, 4, 2024, maker)

        with file_session_factory() as session:
            count = session.scalar(select(func.count(PayrollRecordModel.id)))
        assert count == 2
