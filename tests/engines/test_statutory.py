"""
Tests for the statutory component calculator.

Covers:
- House rent and dearness allowances
- Provident fund and state insurance contributions
- Professional tax state resolution and slabs
- Income tax withholding
- Full breakdown assembly with default and overridden rates
"""

from decimal import Decimal

import pytest

from payroll_engines.statutory import (
    DEFAULT_RATES,
    StatutoryRates,
    calculate_dearness_allowance,
    calculate_house_rent_allowance,
    calculate_income_tax_withholding,
    calculate_professional_tax,
    calculate_provident_fund,
    calculate_state_insurance,
    calculate_statutory_breakdown,
    is_metro,
    resolve_professional_tax_state,
    round_to_unit,
)


class TestAllowances:

    def test_hra_metro_city(self):
        assert calculate_house_rent_allowance(Decimal("50000"), "Pune") == Decimal("25000")

    def test_hra_non_metro_city(self):
        assert calculate_house_rent_allowance(Decimal("50000"), "Nashik") == Decimal("20000")

    def test_metro_match_is_case_insensitive_substring(self):
        assert is_metro("Andheri East, MUMBAI")
        assert not is_metro("")

    def test_dearness_allowance(self):
        assert calculate_dearness_allowance(Decimal("20000")) == Decimal("5000")

    def test_allowances_round_half_up(self):
        assert calculate_dearness_allowance(Decimal("10.02")) == Decimal("3")
        assert round_to_unit(Decimal("2.5")) == Decimal("3")


class TestContributions:

    def test_provident_fund_on_basic_plus_da(self):
        pf = calculate_provident_fund(Decimal("20000"), Decimal("5000"))

        assert pf.employee == Decimal("3000")
        assert pf.employer == Decimal("3000")
        assert pf.total == Decimal("6000")

    def test_state_insurance_below_threshold(self):
        esi = calculate_state_insurance(Decimal("20000"))

        assert esi.employee == Decimal("150")
        assert esi.employer == Decimal("650")

    def test_state_insurance_at_threshold_applies(self):
        esi = calculate_state_insurance(Decimal("21000"))

        assert esi.employee == Decimal("158")
        assert esi.employer == Decimal("683")

    def test_state_insurance_above_threshold_is_zero(self):
        esi = calculate_state_insurance(Decimal("21000.01"))

        assert esi.employee == Decimal("0")
        assert esi.employer == Decimal("0")


class TestProfessionalTax:

    @pytest.mark.parametrize(
        "location,state",
        [
            ("Mumbai", "Maharashtra"),
            ("Bangalore", "Karnataka"),
            ("Salt Lake, Kolkata", "West Bengal"),
            ("Chennai", "Tamil Nadu"),
            ("Noida", "Delhi"),
            ("Somewhere Else", "Maharashtra"),
        ],
    )
    def test_state_resolution(self, location, state):
        assert resolve_professional_tax_state(location) == state

    @pytest.mark.parametrize(
        "gross,expected",
        [
            ("4000", "0"),
            ("5000", "0"),
            ("7000", "150"),
            ("12000", "175"),
            ("42500", "200"),
        ],
    )
    def test_maharashtra_slabs(self, gross, expected):
        assert calculate_professional_tax(Decimal(gross), "Pune") == Decimal(expected)

    def test_karnataka_slab(self):
        assert calculate_professional_tax(Decimal("12000"), "Bangalore") == Decimal("150")

    @pytest.mark.parametrize("gross", ["5000.40", "10000.50", "15000.99"])
    def test_fractional_gross_between_slabs_owes_nothing(self, gross):
        assert calculate_professional_tax(Decimal(gross), "Mumbai") == Decimal("0")

    def test_slab_lower_bound_is_inclusive(self):
        assert calculate_professional_tax(Decimal("5001"), "Mumbai") == Decimal("150")
        assert calculate_professional_tax(Decimal("15001"), "Mumbai") == Decimal("200")

    def test_tamil_nadu_threshold(self):
        assert calculate_professional_tax(Decimal("21000"), "Chennai") == Decimal("0")
        assert calculate_professional_tax(Decimal("21001"), "Chennai") == Decimal("250")


class TestIncomeTax:

    @pytest.mark.parametrize(
        "annual,monthly",
        [
            ("250000", "0"),
            ("300000", "0"),
            ("510000", "875"),
            ("1600000", "18125"),
        ],
    )
    def test_withholding(self, annual, monthly):
        assert calculate_income_tax_withholding(Decimal(annual)) == Decimal(monthly)


class TestBreakdown:

    def test_metro_breakdown(self):
        result = calculate_statutory_breakdown(Decimal("20000"), Decimal("7500"), "Mumbai")

        assert result.dearness_allowance == Decimal("5000")
        assert result.house_rent_allowance == Decimal("10000")
        assert result.gross_salary == Decimal("42500")
        assert result.provident_fund.employee == Decimal("3000")
        assert result.state_insurance.employee == Decimal("0")
        assert result.professional_tax == Decimal("200")
        assert result.professional_tax_state == "Maharashtra"
        assert result.income_tax == Decimal("875")

    def test_low_pay_breakdown_has_state_insurance(self):
        result = calculate_statutory_breakdown(Decimal("8000"), Decimal("3000"), "Jaipur")

        # DA 2000, HRA 3200, gross 16200
        assert result.gross_salary == Decimal("16200")
        assert result.state_insurance.employee == Decimal("122")
        assert result.state_insurance.employer == Decimal("527")
        assert result.professional_tax_state == "Rajasthan"
        assert result.professional_tax == Decimal("200")
        assert result.income_tax == Decimal("0")

    def test_overridden_rates(self):
        rates = StatutoryRates(da_rate=Decimal("0.10"), metro_cities=("Jaipur",))
        result = calculate_statutory_breakdown(
            Decimal("20000"), Decimal("0"), "Jaipur", rates=rates,
        )

        assert result.dearness_allowance == Decimal("2000")
        assert result.house_rent_allowance == Decimal("10000")

    def test_default_rates_match_module_defaults(self):
        assert DEFAULT_RATES.esi_threshold == Decimal("21000")
        assert "Maharashtra" in DEFAULT_RATES.state_slabs
