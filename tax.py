"""
Progressive bracket tax math.
Bracket evaluation, deductions and credits, payroll taxes and bracket indexing.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Sequence

from models import NO_LIMIT, TaxBracket


# Ladder tax types evaluated on gross wages, keyed to breakdown names
PAYROLL_TAX_TYPES = {
    'FICA Social Security': 'social_security',
    'FICA Medicare': 'medicare',
    'FICA Medicare Additional': 'additional_medicare',
    'CPP': 'cpp',
    'EI': 'ei',
}


@dataclass
class TaxBreakdown:
    """Taxes owed for one year"""
    federal: float = 0.0
    state: float = 0.0
    payroll: Dict[str, float] = field(default_factory=dict)

    @property
    def payroll_total(self) -> float:
        return sum(self.payroll.values())

    @property
    def total(self) -> float:
        return self.federal + self.state + self.payroll_total


def _upper_limit(bracket: TaxBracket) -> float:
    if bracket.max is None or bracket.max >= NO_LIMIT:
        return float('inf')
    return bracket.max


def calculate_tax(taxable_income: float, tax_brackets: Sequence[TaxBracket]) -> float:
    """
    Calculate tax using progressive brackets.

    Args:
        taxable_income: Income subject to tax (after deductions)
        tax_brackets: Brackets with min, max and rate (fraction)

    Returns:
        Total tax owed
    """
    if taxable_income <= 0:
        return 0.0

    if not tax_brackets:
        return 0.0

    tax = 0.0

    # Sort brackets by min to ensure proper order
    for bracket in sorted(tax_brackets, key=lambda b: b.min):
        if taxable_income <= bracket.min:
            break

        income_in_bracket = min(taxable_income, _upper_limit(bracket)) - bracket.min
        if income_in_bracket > 0:
            tax += income_in_bracket * bracket.rate

    return max(0.0, tax)


def calculate_jurisdiction_tax(income: float,
                               tax_brackets: Sequence[TaxBracket],
                               standard_deduction: float = 0.0,
                               tax_credit: float = 0.0) -> float:
    """
    Income tax for one jurisdiction.

    The standard deduction comes off income before the brackets are applied and
    the credit comes off the resulting tax; neither can push the result below zero.

    Args:
        income: Taxable income before the standard deduction
        tax_brackets: Resolved ladder for the jurisdiction
        standard_deduction: Deduction amount
        tax_credit: Non-refundable credit amount

    Returns:
        Tax owed
    """
    taxable_income = max(0.0, income - standard_deduction)
    tax = calculate_tax(taxable_income, tax_brackets)
    return max(0.0, tax - tax_credit)


def calculate_payroll_taxes(wages: float,
                            payroll_ladders: Dict[str, Sequence[TaxBracket]]) -> Dict[str, float]:
    """
    Evaluate flat-rate payroll taxes (FICA, CPP, EI) on gross wages.

    Wage-base caps are expressed in the ladders themselves as a zero-rate top bracket.

    Args:
        wages: Gross wages
        payroll_ladders: Brackets keyed by payroll tax name

    Returns:
        Tax owed per payroll tax name
    """
    return {name: calculate_tax(wages, brackets) for name, brackets in payroll_ladders.items()}


def inflate_brackets(tax_brackets: Sequence[TaxBracket],
                     inflation_multiplier: float) -> List[TaxBracket]:
    """
    Index bracket bounds by a cumulative inflation multiplier.

    The no-limit sentinel is kept as is.
    """
    if inflation_multiplier == 1:
        return list(tax_brackets)

    return [
        TaxBracket(
            min=bracket.min * inflation_multiplier,
            max=NO_LIMIT if _upper_limit(bracket) == float('inf')
            else bracket.max * inflation_multiplier,
            rate=bracket.rate,
        )
        for bracket in tax_brackets
    ]


def effective_tax_rate(gross_income: float,
                       standard_deduction: float,
                       tax_brackets: Sequence[TaxBracket]) -> float:
    """
    Calculate effective tax rate on gross income.

    Args:
        gross_income: Total gross income
        standard_deduction: Standard deduction amount
        tax_brackets: Progressive tax brackets

    Returns:
        Effective tax rate (taxes / gross_income)
    """
    if gross_income <= 0:
        return 0.0

    taxes = calculate_jurisdiction_tax(gross_income, tax_brackets, standard_deduction)
    return taxes / gross_income


def marginal_tax_rate(gross_income: float,
                      standard_deduction: float,
                      tax_brackets: Sequence[TaxBracket]) -> float:
    """
    Calculate marginal tax rate at given income level.

    Args:
        gross_income: Total gross income
        standard_deduction: Standard deduction amount
        tax_brackets: Progressive tax brackets

    Returns:
        Marginal tax rate for next dollar of income
    """
    taxable_income = max(0.0, gross_income - standard_deduction)

    if taxable_income <= 0 or not tax_brackets:
        return 0.0

    current_rate = 0.0
    for bracket in sorted(tax_brackets, key=lambda b: b.min):
        if taxable_income >= bracket.min:
            current_rate = bracket.rate
        else:
            break

    return current_rate
