"""
Tests for payroll value objects: components, periods, leave spans.
"""

from datetime import date
from decimal import Decimal

import pytest

from payroll_kernel.domain.collaborators import Employee, LeaveSpan, ScheduleEntry
from payroll_kernel.domain.payroll import (
    EDITABLE_COMPONENTS,
    DateRange,
    PayrollComponents,
    month_date_range,
    period_date,
    validate_period,
)
from payroll_kernel.exceptions import InvalidPeriodError, ValidationError


def _components(**overrides) -> PayrollComponents:
    base = dict(
        basic_salary=Decimal("20000"),
        dearness_allowance=Decimal("5000"),
        house_rent_allowance=Decimal("10000"),
        other_allowances=Decimal("7500"),
        pf_employee=Decimal("3000"),
        pf_employer=Decimal("3000"),
        esi_employee=Decimal("0"),
        esi_employer=Decimal("0"),
        income_tax=Decimal("875"),
        professional_tax=Decimal("200"),
        lop_days=Decimal("2"),
        lop_deduction=Decimal("2833"),
        loan_deduction=Decimal("1500"),
    )
    base.update(overrides)
    return PayrollComponents(**base)


class TestPayrollComponents:

    def test_gross_is_sum_of_earnings(self):
        assert _components().gross_salary == Decimal("42500")

    def test_net_equals_gross_minus_employee_deductions(self):
        c = _components()

        assert c.total_deductions == Decimal("8408")
        assert c.net_salary == c.gross_salary - c.total_deductions
        assert c.net_salary == Decimal("34092")

    def test_employer_contributions_are_not_deducted(self):
        low = _components(pf_employer=Decimal("0"), esi_employer=Decimal("0"))
        high = _components(pf_employer=Decimal("9999"), esi_employer=Decimal("999"))

        assert low.net_salary == high.net_salary

    def test_with_changes_recomputes_totals(self):
        c = _components().with_changes(other_allowances="8500", loan_deduction=0)

        assert c.other_allowances == Decimal("8500")
        assert c.gross_salary == Decimal("43500")
        assert c.net_salary == Decimal("43500") - (c.total_deductions)
        assert c.loan_deduction == Decimal("0")

    def test_with_changes_rejects_non_numeric(self):
        with pytest.raises(ValidationError):
            _components().with_changes(income_tax="lots")

    @pytest.mark.parametrize("value", ["NaN", "Infinity", "-1", Decimal("-0.01")])
    def test_with_changes_rejects_non_finite_and_negative(self, value):
        with pytest.raises(ValidationError):
            _components().with_changes(other_allowances=value)

    def test_as_dict_includes_derived_totals(self):
        data = _components().as_dict()

        assert data["net_salary"] == Decimal("34092")
        assert set(EDITABLE_COMPONENTS) <= set(data)

    def test_derived_totals_are_not_editable(self):
        assert "gross_salary" not in EDITABLE_COMPONENTS
        assert "net_salary" not in EDITABLE_COMPONENTS


class TestPeriods:

    @pytest.mark.parametrize("month,year", [(0, 2024), (13, 2024), (1, 1999), (1, 2101), (True, 2024)])
    def test_invalid_periods(self, month, year):
        with pytest.raises(InvalidPeriodError):
            validate_period(month, year)

    def test_month_range_february_leap_year(self):
        period = month_date_range(2, 2024)

        assert period.start == date(2024, 2, 1)
        assert period.end == date(2024, 2, 29)
        assert period.days == 29

    def test_period_date_is_first_of_month(self):
        assert period_date(7, 2024) == date(2024, 7, 1)

    def test_date_range_rejects_inverted_bounds(self):
        with pytest.raises(ValueError):
            DateRange(date(2024, 1, 10), date(2024, 1, 1))


class TestLeaveSpan:

    def test_overlap_clipped_to_period(self):
        span = LeaveSpan("LOP", date(2024, 1, 29), date(2024, 2, 3))

        assert span.overlap_days(month_date_range(2, 2024)) == Decimal("3")
        assert span.overlap_days(month_date_range(1, 2024)) == Decimal("3")

    def test_half_day_counts_half(self):
        span = LeaveSpan("Unpaid", date(2024, 3, 4), date(2024, 3, 4), half_day=True)

        assert span.overlap_days(month_date_range(3, 2024)) == Decimal("0.5")

    def test_disjoint_span_contributes_nothing(self):
        span = LeaveSpan("LOP", date(2024, 5, 1), date(2024, 5, 2))

        assert span.overlap_days(month_date_range(3, 2024)) == Decimal("0")

    @pytest.mark.parametrize("leave_type", ["LOP", "lop", "Loss of Pay", "Unpaid", " unpaid leave "])
    def test_unpaid_types(self, leave_type):
        assert LeaveSpan(leave_type, date(2024, 1, 1), date(2024, 1, 1)).is_unpaid

    def test_paid_leave_is_not_unpaid(self):
        assert not LeaveSpan("Sick", date(2024, 1, 1), date(2024, 1, 1)).is_unpaid


class TestCollaboratorValues:

    def test_employee_full_name_and_status(self):
        employee = Employee("e1", "t1", "E001", first_name="Asha", last_name="Rao")

        assert employee.full_name == "Asha Rao"
        assert employee.is_active
        assert not Employee("e2", "t1", "E002", status="Inactive").is_active

    def test_schedule_entry_amount_due(self):
        from uuid import uuid4

        entry = ScheduleEntry(
            entry_id=uuid4(),
            loan_id="loan-1",
            installment_number=1,
            due_date=date(2024, 1, 5),
            principal_amount=Decimal("7884.88"),
            interest_amount=Decimal("1000.00"),
            installment_amount=Decimal("8884.88"),
            outstanding_balance=Decimal("92115.12"),
        )

        assert entry.amount_due == Decimal("8884.88")
