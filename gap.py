"""
Year-by-year gap and net-worth projection.
Combines income, expenses, taxes and the investment configuration into savings
allocation, account balances and net worth, nominal and present value.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import numpy as np
import pandas as pd

from expenses import ExpenseProjection
from income import IncomeProjection, round5
from investments import allocate_gap
from models import (
    InvestmentsDebt, Profile, PropertySettings, ValidationWarnings
)
from tax import TaxBreakdown
from tax_ladders import TaxProfile


logger = logging.getLogger(__name__)

MONEY_COLUMNS = [
    'salary', 'equity', 'gross_income', 'company_match', 'individual_401k',
    'contribution_limit', 'taxable_income', 'federal_tax', 'state_tax', 'payroll_tax',
    'total_tax', 'after_tax_income', 'expenses', 'gap',
    'cash_beginning', 'cash_contribution', 'cash_ending',
    'investments_beginning', 'investments_contribution', 'investments_returns',
    'investments_ending', 'k401_beginning', 'k401_contribution', 'k401_returns',
    'k401_ending', 'home_equity', 'net_worth',
]


@dataclass
class GapProjection:
    """Results from the gap projection"""
    yearly: pd.DataFrame
    accounts: Dict[str, Dict[str, np.ndarray]]
    tax_breakdowns: List[TaxBreakdown]
    summary: Dict
    warnings: ValidationWarnings = field(default_factory=dict)


class GapProjector:
    """Yearly cash-flow and balance projection through retirement"""

    def __init__(self,
                 income: IncomeProjection,
                 expenses: ExpenseProjection,
                 investments_debt: InvestmentsDebt,
                 profile: Profile,
                 tax_profile: Optional[TaxProfile] = None,
                 property_settings: Optional[PropertySettings] = None):
        self.income = income
        self.expenses = expenses
        self.investments_debt = investments_debt
        self.profile = profile
        self.tax_profile = tax_profile
        self.property_settings = property_settings or PropertySettings()

    def _individual_401k(self, year: int) -> float:
        """Sum of active streams' deferrals, grown with each stream, before the limit"""
        months = slice((year - 1) * 12, year * 12)
        total = 0.0
        for key, series in self.income.streams.items():
            active_months = series.active[months].sum()
            if active_months == 0:
                continue
            base = self.income.individual_401k.get(key, 0.0)
            total += base * series.growth_multiplier[months][0] * active_months / 12
        return total

    def _taxes(self, wages: float, taxable_income: float, inflation_multiplier: float) -> TaxBreakdown:
        if self.tax_profile is None:
            return TaxBreakdown()
        return self.tax_profile.calculate_taxes(wages, taxable_income, inflation_multiplier)

    def run_projection(self) -> GapProjection:
        """Run the projection for every year up to retirement"""
        years = self.profile.years_to_retirement
        retirement = self.investments_debt.retirement_401k
        investments = self.investments_debt.investments

        salary_by_year = self.income.annual('salary_nominal')
        equity_by_year = self.income.annual('equity_nominal')
        match_by_year = self.income.annual('company_401k_nominal')
        expenses_by_year = self.expenses.annual('total_nominal')

        details = {column: [] for column in ['year', 'inflation_multiplier'] + MONEY_COLUMNS}
        details['cash_negative'] = []
        accounts = {
            inv.id: {key: np.zeros(years) for key in
                     ('beginning', 'contribution', 'returns', 'ending', 'cost_basis')}
            for inv in investments
        }
        tax_breakdowns = []
        warnings: ValidationWarnings = {}

        # Initial conditions
        cash = self.investments_debt.current_cash
        values = [inv.current_value for inv in investments]
        cost_bases = [inv.effective_cost_basis for inv in investments]
        k401 = retirement.current_value

        for year in range(1, years + 1):
            idx = year - 1
            inflation_multiplier = self.profile.discount_factor(year)

            salary = salary_by_year[idx]
            equity = equity_by_year[idx]
            company_match = match_by_year[idx]
            # Stream match is paid out as compensation and taxed with wages
            gross_income = salary + equity + company_match

            contribution_limit = retirement.limit_for_year(year)
            individual_401k = min(self._individual_401k(year), contribution_limit, gross_income)
            taxable_income = max(0.0, gross_income - individual_401k)

            taxes = self._taxes(gross_income, taxable_income, inflation_multiplier)
            after_tax_income = gross_income - taxes.total - individual_401k
            expenses = expenses_by_year[idx]
            gap = after_tax_income - expenses

            allocation = allocate_gap(gap, cash, self.investments_debt.target_cash, values,
                                      [inv.portfolio_percent for inv in investments])

            cash_beginning = cash
            cash = cash + allocation.to_cash

            investments_beginning = sum(values)
            investments_returns = 0.0
            for i, inv in enumerate(investments):
                beginning = values[i]
                contribution = allocation.to_investments[i]
                if contribution < 0 and beginning > 0:
                    cost_bases[i] *= 1 + contribution / beginning
                elif contribution > 0:
                    cost_bases[i] += contribution
                invested = beginning + contribution
                ending = invested * (1 + inv.growth_rate / 100)
                values[i] = ending
                investments_returns += ending - invested

                accounts[inv.id]['beginning'][idx] = beginning
                accounts[inv.id]['contribution'][idx] = contribution
                accounts[inv.id]['returns'][idx] = ending - invested
                accounts[inv.id]['ending'][idx] = ending
                accounts[inv.id]['cost_basis'][idx] = cost_bases[i]

            k401_beginning = k401
            k401_contribution = individual_401k + retirement.company_contribution
            k401 = (k401_beginning + k401_contribution) * (1 + retirement.growth_rate / 100)
            k401_returns = k401 - k401_beginning - k401_contribution

            home_equity = self.property_settings.equity_for_year(year)
            net_worth = cash + sum(values) + k401 + home_equity

            if cash < 0:
                warnings[f'cash-year-{year}'] = (
                    f'Cash balance is negative in year {year} ({cash:,.0f})')

            row = {
                'year': year,
                'inflation_multiplier': inflation_multiplier,
                'salary': salary,
                'equity': equity,
                'gross_income': gross_income,
                'company_match': company_match,
                'individual_401k': individual_401k,
                'contribution_limit': contribution_limit,
                'taxable_income': taxable_income,
                'federal_tax': taxes.federal,
                'state_tax': taxes.state,
                'payroll_tax': taxes.payroll_total,
                'total_tax': taxes.total,
                'after_tax_income': after_tax_income,
                'expenses': expenses,
                'gap': gap,
                'cash_beginning': cash_beginning,
                'cash_contribution': allocation.to_cash,
                'cash_ending': cash,
                'investments_beginning': investments_beginning,
                'investments_contribution': allocation.invested,
                'investments_returns': investments_returns,
                'investments_ending': sum(values),
                'k401_beginning': k401_beginning,
                'k401_contribution': k401_contribution,
                'k401_returns': k401_returns,
                'k401_ending': k401,
                'home_equity': home_equity,
                'net_worth': net_worth,
                'cash_negative': cash < 0,
            }
            for key, value in row.items():
                details[key].append(value)
            tax_breakdowns.append(taxes)

        yearly = pd.DataFrame(details)
        for column in MONEY_COLUMNS:
            yearly[f'{column}_pv'] = yearly[column] / yearly['inflation_multiplier']

        if warnings:
            logger.warning(f"[Gap] Cash goes negative in {len(warnings)} year(s), "
                           f"first in year {min(int(k.rsplit('-', 1)[1]) for k in warnings)}")

        starting_net_worth = (self.investments_debt.current_cash
                              + sum(inv.current_value for inv in investments)
                              + retirement.current_value)
        summary = self._build_summary(yearly, starting_net_worth)
        logger.debug(f"[Gap] Projected {years} years, retirement net worth "
                     f"{summary['retirement_net_worth_nominal']:.2f}")

        return GapProjection(yearly=yearly, accounts=accounts, tax_breakdowns=tax_breakdowns,
                             summary=summary, warnings=warnings)

    @staticmethod
    def _build_summary(yearly: pd.DataFrame, starting_net_worth: float) -> Dict:
        def net_worth_at(year: int, column: str) -> float:
            rows = yearly.loc[yearly['year'] == year, column]
            return round5(rows.iloc[0]) if len(rows) else 0.0

        last_year = int(yearly['year'].iloc[-1])
        retirement_net_worth = yearly['net_worth'].iloc[-1]
        growth_pct = ((retirement_net_worth - starting_net_worth) / starting_net_worth * 100
                      if starting_net_worth > 0 else 0.0)
        negative_years = yearly.loc[yearly['cash_negative'], 'year']

        return {
            'starting_net_worth': round5(starting_net_worth),
            'current_net_worth_nominal': net_worth_at(1, 'net_worth'),
            'current_net_worth_pv': net_worth_at(1, 'net_worth_pv'),
            'year10_net_worth_nominal': net_worth_at(10, 'net_worth'),
            'year10_net_worth_pv': net_worth_at(10, 'net_worth_pv'),
            'retirement_year': last_year,
            'retirement_net_worth_nominal': round5(retirement_net_worth),
            'retirement_net_worth_pv': round5(yearly['net_worth_pv'].iloc[-1]),
            'lifetime_gap_nominal': round5(yearly['gap'].sum()),
            'lifetime_gap_pv': round5(yearly['gap_pv'].sum()),
            'lifetime_invested_nominal': round5(
                yearly['investments_contribution'].clip(lower=0).sum()
                + yearly['k401_contribution'].sum()),
            'lifetime_taxes_nominal': round5(yearly['total_tax'].sum()),
            'net_worth_growth_pct': round5(growth_pct),
            'first_negative_cash_year': int(negative_years.iloc[0]) if len(negative_years) else None,
        }


def project_gap(income: Optional[IncomeProjection],
                expenses: Optional[ExpenseProjection],
                investments_debt: Optional[InvestmentsDebt],
                profile: Profile,
                tax_profile: Optional[TaxProfile] = None,
                property_settings: Optional[PropertySettings] = None) -> Optional[GapProjection]:
    """
    Project gap, allocation and net worth for each year to retirement.

    Args:
        income: Income projection (required)
        expenses: Expense projection (required)
        investments_debt: Cash, 401k and investment configuration
        profile: Profile supplying inflation and years to retirement
        tax_profile: Resolved ladders; None taxes nothing
        property_settings: Property input supplying home equity

    Returns:
        GapProjection, or None when income or expenses are missing
    """
    if income is None or expenses is None:
        logger.debug("[Gap] Income or expense projection missing; skipping")
        return None

    projector = GapProjector(income, expenses, investments_debt or InvestmentsDebt(),
                             profile, tax_profile, property_settings)
    return projector.run_projection()
