"""
Tests for payroll period statistics.
"""

from decimal import Decimal

import pytest

from payroll_kernel.exceptions import InvalidPeriodError
from payroll_kernel.services.approval_service import PayrollApprovalService
from payroll_services.reporting import PayrollStatsReport, summarize_by_designation


class TestSummarizeByDesignation:

    def test_groups_and_sorts(self):
        rows = [
            ("Manager", Decimal("30000"), Decimal("60000"), Decimal("50000")),
            ("Engineer", Decimal("20000"), Decimal("42500"), Decimal("38425")),
            ("Engineer", Decimal("10000"), Decimal("21250"), Decimal("19000")),
        ]

        summary = summarize_by_designation(rows)

        assert [s.designation for s in summary] == ["Engineer", "Manager"]
        engineer = summary[0]
        assert engineer.employee_count == 2
        assert engineer.total_basic == Decimal("30000")
        assert engineer.total_gross == Decimal("63750")
        assert engineer.total_net == Decimal("57425")

    def test_empty(self):
        assert summarize_by_designation([]) == ()


class TestPayrollStatsReport:

    def test_period_totals(self, session, builder, make_employee, maker, checker, finance, auditor):
        first = builder.build(make_employee(designation="Engineer"), 3, 2024, maker)
        builder.build(make_employee(designation="Engineer"), 3, 2024, maker)
        builder.build(make_employee(designation="Manager"), 3, 2024, maker)
        builder.build(make_employee(designation="Manager"), 4, 2024, maker)
        service = PayrollApprovalService(session, auditor=auditor)
        service.approve(first.record_id, checker)
        service.approve(first.record_id, finance)
        service.finalize(first.record_id, finance)

        stats = PayrollStatsReport(session).stats_for_period(maker.tenant_id, 3, 2024)

        assert stats.record_count == 3
        assert stats.paid_count == 1
        assert stats.pending_count == 2
        assert stats.by_status == {"Draft": 2, "Paid": 1}
        assert stats.total_gross == Decimal("127500")
        assert stats.total_net == Decimal("115275")
        assert stats.total_deductions == Decimal("12225")
        assert [(d.designation, d.employee_count) for d in stats.by_designation] == [
            ("Engineer", 2), ("Manager", 1),
        ]
        assert stats.by_designation[0].total_basic == Decimal("40000")

    def test_empty_period(self, session, maker):
        stats = PayrollStatsReport(session).stats_for_period(maker.tenant_id, 5, 2024)

        assert stats.record_count == 0
        assert stats.total_net == Decimal("0")
        assert stats.by_designation == ()

    def test_other_tenant_excluded(self, session, builder, make_employee, maker):
        builder.build(make_employee(), 3, 2024, maker)

        stats = PayrollStatsReport(session).stats_for_period("tenant-globex", 3, 2024)

        assert stats.record_count == 0

    def test_invalid_period(self, session, maker):
        with pytest.raises(InvalidPeriodError):
            PayrollStatsReport(session).stats_for_period(maker.tenant_id, 13, 2024)
