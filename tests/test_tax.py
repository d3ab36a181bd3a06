"""
Unit tests for progressive bracket tax math.
"""
import pytest

from models import NO_LIMIT, TaxBracket
from tax import (
    TaxBreakdown, calculate_jurisdiction_tax, calculate_payroll_taxes, calculate_tax,
    effective_tax_rate, inflate_brackets, marginal_tax_rate
)


BRACKETS = [TaxBracket(0, 50_000, 0.10), TaxBracket(50_000, 100_000, 0.22),
            TaxBracket(100_000, NO_LIMIT, 0.24)]


class TestCalculateTax:
    """Test progressive tax calculation"""

    def test_no_tax_on_zero_income(self):
        """Test that zero taxable income yields zero tax"""
        assert calculate_tax(0, BRACKETS) == 0

    def test_negative_income_yields_zero_tax(self):
        """Test that negative taxable income yields zero tax"""
        assert calculate_tax(-1000, BRACKETS) == 0

    def test_empty_ladder_yields_zero_tax(self):
        """Test that a missing ladder taxes nothing"""
        assert calculate_tax(100_000, []) == 0

    def test_single_bracket_tax(self):
        """Test tax calculation within first bracket"""
        tax = calculate_tax(30_000, BRACKETS)
        assert abs(tax - 3_000) < 1e-6

    def test_two_bracket_tax(self):
        """Test tax calculation spanning two brackets"""
        # 50,000 * 0.10 + 25,000 * 0.22
        tax = calculate_tax(75_000, BRACKETS)
        assert abs(tax - 10_500) < 1e-6

    def test_three_bracket_tax(self):
        """Test tax calculation spanning three brackets"""
        expected = 50_000 * 0.10 + 50_000 * 0.22 + 50_000 * 0.24
        tax = calculate_tax(150_000, BRACKETS)
        assert abs(tax - expected) < 1e-6

    def test_unsorted_brackets(self):
        """Test that bracket order in the input does not matter"""
        tax = calculate_tax(150_000, list(reversed(BRACKETS)))
        assert abs(tax - 28_000) < 1e-6

    def test_exactly_at_bracket_boundary(self):
        """Test income exactly at a bracket boundary"""
        tax = calculate_tax(50_000, BRACKETS)
        assert abs(tax - 5_000) < 1e-6

    def test_tax_is_monotonic(self):
        """Test that more income never means less tax"""
        previous = 0.0
        for income in range(0, 300_000, 5_000):
            tax = calculate_tax(income, BRACKETS)
            assert tax >= previous
            previous = tax

    def test_capped_top_bracket(self):
        """Test that income above a capped ladder is untaxed"""
        capped = [TaxBracket(0, 100_000, 0.062)]
        assert abs(calculate_tax(250_000, capped) - 6_200) < 1e-6


class TestJurisdictionTax:
    """Test deductions and credits around the bracket math"""

    def test_standard_deduction_reduces_income(self):
        """Test that the deduction comes off before the brackets"""
        tax = calculate_jurisdiction_tax(65_000, BRACKETS, standard_deduction=15_000)
        assert abs(tax - 5_000) < 1e-6

    def test_deduction_larger_than_income(self):
        """Test that a large deduction yields zero tax, never negative"""
        assert calculate_jurisdiction_tax(10_000, BRACKETS, standard_deduction=15_000) == 0

    def test_credit_reduces_tax(self):
        """Test that the credit comes off the computed tax"""
        tax = calculate_jurisdiction_tax(30_000, BRACKETS, tax_credit=500)
        assert abs(tax - 2_500) < 1e-6

    def test_credit_cannot_go_negative(self):
        """Test that a credit larger than the tax yields zero"""
        assert calculate_jurisdiction_tax(1_000, BRACKETS, tax_credit=500) == 0


class TestPayrollTaxes:
    """Test flat-rate payroll taxes with wage caps"""

    def test_social_security_wage_cap(self):
        """Test that the zero-rate top bracket caps Social Security"""
        ladders = {
            'social_security': [TaxBracket(0, 176_100, 0.062), TaxBracket(176_100, NO_LIMIT, 0.0)],
            'medicare': [TaxBracket(0, NO_LIMIT, 0.0145)],
        }
        taxes = calculate_payroll_taxes(250_000, ladders)

        assert abs(taxes['social_security'] - 176_100 * 0.062) < 1e-6
        assert abs(taxes['medicare'] - 250_000 * 0.0145) < 1e-6

    def test_no_ladders(self):
        """Test that no payroll ladders yield no payroll taxes"""
        assert calculate_payroll_taxes(100_000, {}) == {}


class TestTaxBreakdown:
    """Test the yearly tax breakdown totals"""

    def test_totals(self):
        """Test payroll and overall totals"""
        breakdown = TaxBreakdown(federal=10_000, state=3_000,
                                 payroll={'social_security': 6_200, 'medicare': 1_450})
        assert abs(breakdown.payroll_total - 7_650) < 1e-6
        assert abs(breakdown.total - 20_650) < 1e-6

    def test_empty_breakdown(self):
        """Test that a default breakdown is all zeros"""
        assert TaxBreakdown().total == 0


class TestInflateBrackets:
    """Test inflation indexing of bracket bounds"""

    def test_bounds_scale(self):
        """Test that min and max scale while rates stay the same"""
        inflated = inflate_brackets(BRACKETS, 1.1)

        assert abs(inflated[1].min - 55_000) < 1e-6
        assert abs(inflated[1].max - 110_000) < 1e-6
        assert inflated[1].rate == 0.22

    def test_no_limit_sentinel_kept(self):
        """Test that the open-ended top bracket stays open"""
        inflated = inflate_brackets(BRACKETS, 1.5)
        assert inflated[-1].max == NO_LIMIT

    def test_multiplier_of_one_is_identity(self):
        """Test that year-1 indexing leaves brackets untouched"""
        assert inflate_brackets(BRACKETS, 1) == BRACKETS

    def test_indexing_keeps_real_tax_constant(self):
        """Test that indexed brackets tax inflated income the same in real terms"""
        multiplier = 1.03 ** 10
        base_tax = calculate_tax(120_000, BRACKETS)
        indexed_tax = calculate_tax(120_000 * multiplier, inflate_brackets(BRACKETS, multiplier))
        assert abs(indexed_tax / multiplier - base_tax) < 1e-6


class TestTaxRates:
    """Test effective and marginal rate helpers"""

    def test_effective_rate(self):
        """Test effective rate is taxes over gross income"""
        rate = effective_tax_rate(65_000, 15_000, BRACKETS)
        assert abs(rate - 5_000 / 65_000) < 1e-9

    def test_effective_rate_zero_income(self):
        """Test effective rate with no income"""
        assert effective_tax_rate(0, 15_000, BRACKETS) == 0

    def test_marginal_rate(self):
        """Test marginal rate picks the bracket of the next dollar"""
        assert marginal_tax_rate(90_000, 15_000, BRACKETS) == 0.22
        assert marginal_tax_rate(40_000, 15_000, BRACKETS) == 0.10
        assert marginal_tax_rate(10_000, 15_000, BRACKETS) == 0.0

    @pytest.mark.parametrize("income", [25_000, 80_000, 400_000])
    def test_effective_below_marginal(self, income):
        """Test that the effective rate never exceeds the marginal rate"""
        assert (effective_tax_rate(income, 0, BRACKETS)
                <= marginal_tax_rate(income, 0, BRACKETS) + 1e-12)
