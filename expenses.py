"""
Expense projection over the 1200-month horizon.
Recurring categories (fixed or percent of income) with growth and jumps, plus
one-time expenses entered in today's dollars.
"""
import logging
from dataclasses import dataclass
from typing import Dict, List, NamedTuple, Optional, Sequence

import numpy as np
import pandas as pd

from income import (
    MONTH_INDEX, MONTH_OF_YEAR, YEAR_OF_MONTH, IncomeProjection, annualize,
    discount_factors, fold_years, group_by_year, round5
)
from models import (
    HORIZON_YEARS, MONTHS, ExpenseCategory, ExpenseJump, ExpensesConfig, Profile,
    ValidationWarnings
)


logger = logging.getLogger(__name__)


class ExpenseAccumulator(NamedTuple):
    """Running jump state for one category, carried forward year to year"""
    factor: float = 1.0
    offset: float = 0.0
    amount_override: Optional[float] = None  # nominal annual base as of override_year
    override_year: int = 1
    percent_override: Optional[float] = None

    def apply(self, jumps: Sequence[ExpenseJump], year: int,
              inflation_rate: float) -> 'ExpenseAccumulator':
        acc = self
        for jump in jumps:
            if jump.change_type == 'dollar':
                acc = acc._replace(offset=acc.offset + jump.value)
            elif jump.change_type == 'percentOfIncome':
                acc = acc._replace(percent_override=jump.value, amount_override=None)
            elif jump.change_type == 'setAmountPV':
                # Today's dollars, inflated to the jump year; earlier jumps are discarded
                acc = ExpenseAccumulator(
                    amount_override=jump.value * (1 + inflation_rate / 100) ** (year - 1),
                    override_year=year)
            else:
                acc = acc._replace(factor=acc.factor * (1 + jump.value / 100))
        return acc


@dataclass
class CategorySeries:
    """Monthly nominal series for one expense category"""
    category_id: str
    name: str
    amount_type: str
    growth_rate: float
    nominal: np.ndarray
    growth_multiplier: np.ndarray
    jump_factor: np.ndarray
    jump_offset: np.ndarray


@dataclass
class ExpenseProjection:
    """Expense projection results"""
    monthly: pd.DataFrame
    categories: Dict[str, CategorySeries]
    one_time_nominal: np.ndarray
    one_time_pv: np.ndarray
    one_time_items: List[Dict]
    summary: Dict
    chart_data: pd.DataFrame
    years_to_retirement: int
    inflation_rate: float

    def annual(self, column: str) -> np.ndarray:
        return annualize(self.monthly[column].to_numpy())


def simple_mode_categories(expenses: ExpensesConfig) -> List[ExpenseCategory]:
    """Single fixed category standing in for all spending in simple mode"""
    return [ExpenseCategory(
        id='total', name='Total Expenses', amount_type='fixed',
        annual_amount=expenses.total_monthly_expense * 12,
        growth_rate=expenses.simple_growth_rate,
    )]


def project_category(category: ExpenseCategory, profile: Profile,
                     gross_monthly_income: np.ndarray) -> CategorySeries:
    """
    Expand one category into monthly nominal amounts.

    Fixed categories grow from their annual amount; percent categories take a share
    of the month's gross income and carry no growth of their own.

    Args:
        category: Expense category definition
        profile: Profile supplying the inflation rate
        gross_monthly_income: Nominal gross income per month (zeros without income)

    Returns:
        CategorySeries
    """
    inflation = profile.inflation_rate
    growth_rate = inflation if category.growth_rate is None else category.growth_rate
    jumps_by_year = group_by_year(category.jumps)
    states = fold_years(ExpenseAccumulator(),
                        lambda acc, year: acc.apply(jumps_by_year.get(year, []), year, inflation))

    nominal = np.zeros(MONTHS)
    growth_multiplier = np.ones(MONTHS)

    for index, state in enumerate(states):
        year = index + 1
        months = slice(index * 12, index * 12 + 12)

        if state.amount_override is not None:
            growth = (1 + growth_rate / 100) ** (year - state.override_year)
            base = np.full(12, state.amount_override * growth / 12)
        elif state.percent_override is not None or category.is_percent:
            percent = (category.percent_of_income if state.percent_override is None
                       else state.percent_override)
            growth = 1.0
            base = gross_monthly_income[months] * percent / 100
        else:
            growth = (1 + growth_rate / 100) ** (year - 1)
            base = np.full(12, category.annual_amount * growth / 12)

        nominal[months] = base * state.factor + state.offset / 12
        growth_multiplier[months] = growth

    return CategorySeries(
        category_id=category.id,
        name=category.name,
        amount_type=category.amount_type,
        growth_rate=growth_rate,
        nominal=nominal,
        growth_multiplier=growth_multiplier,
        jump_factor=np.array([s.factor for s in states])[YEAR_OF_MONTH - 1],
        jump_offset=np.array([s.offset for s in states])[YEAR_OF_MONTH - 1],
    )


def _one_time_series(expenses: ExpensesConfig, profile: Profile):
    nominal = np.zeros(MONTHS)
    pv = np.zeros(MONTHS)
    items = []
    for expense in expenses.one_time_expenses:
        if not 1 <= expense.year <= HORIZON_YEARS:
            continue
        january = (expense.year - 1) * 12
        inflated = expense.amount * profile.discount_factor(expense.year)
        nominal[january] += inflated
        pv[january] += expense.amount
        items.append({
            'id': expense.id,
            'year': expense.year,
            'description': expense.description,
            'amount_pv': expense.amount,
            'amount_nominal': inflated,
        })
    return nominal, pv, items


def _build_summary(monthly: pd.DataFrame, categories: Dict[str, CategorySeries],
                   category_defs: List[ExpenseCategory], factors: np.ndarray,
                   one_time_items: List[Dict], years_to_retirement: int) -> Dict:
    retirement_months = years_to_retirement * 12
    lifetime = monthly.iloc[:retirement_months]
    year1 = monthly[monthly['year'] == 1]
    year10 = monthly[monthly['year'] == 10]

    per_category = []
    category_totals = {}
    for key, series in categories.items():
        lifetime_nominal = series.nominal[:retirement_months].sum()
        category_totals[series.name] = round5(lifetime_nominal)
        per_category.append({
            'id': key,
            'name': series.name,
            'amount_type': series.amount_type,
            'current_year_nominal': round5(series.nominal[:12].sum()),
            'lifetime_nominal': round5(lifetime_nominal),
            'lifetime_pv': round5((series.nominal / factors)[:retirement_months].sum()),
        })

    milestones = []
    for category in category_defs:
        for jump in sorted(category.jumps, key=lambda j: j.year):
            if jump.change_type == 'dollar':
                change = f"{'+' if jump.value >= 0 else '-'}${abs(jump.value):,.0f}"
            elif jump.change_type == 'percentOfIncome':
                change = f"{jump.value:g}% of income"
            elif jump.change_type == 'setAmountPV':
                change = f"set to ${jump.value:,.0f}"
            else:
                change = f"{jump.value:+g}%"
            label = f"Year {jump.year}: {category.name}"
            if jump.description:
                label += f" - {jump.description}"
            milestones.append({'year': jump.year, 'type': 'jump', 'category': category.name,
                               'description': jump.description, 'label': f"{label} ({change})"})
    for item in one_time_items:
        label = f"Year {item['year']}: One-time"
        if item['description']:
            label += f" - {item['description']}"
        milestones.append({'year': item['year'], 'type': 'onetime', 'category': 'One-Time',
                           'description': item['description'],
                           'label': f"{label} (${item['amount_pv']:,.0f})"})
    milestones.sort(key=lambda m: m['year'])

    lifetime_total = lifetime['total_nominal'].sum()
    return {
        'years_to_retirement': years_to_retirement,
        'current_year_total_nominal': round5(year1['total_nominal'].sum()),
        'current_year_total_pv': round5(year1['total_pv'].sum()),
        'year10_total_nominal': round5(year10['total_nominal'].sum()),
        'year10_total_pv': round5(year10['total_pv'].sum()),
        'lifetime_total_nominal': round5(lifetime_total),
        'lifetime_total_pv': round5(lifetime['total_pv'].sum()),
        'average_annual_nominal': round5(lifetime_total / years_to_retirement),
        'category_totals': category_totals,
        'per_category': per_category,
        'one_time_total_nominal': round5(sum(i['amount_nominal'] for i in one_time_items)),
        'one_time_total_pv': round5(sum(i['amount_pv'] for i in one_time_items)),
        'milestones': milestones,
    }


def _build_chart_data(categories: Dict[str, CategorySeries], one_time_pv: np.ndarray,
                      factors: np.ndarray, years_to_retirement: int) -> pd.DataFrame:
    chart = {'year': np.arange(1, years_to_retirement + 1)}
    total = np.zeros(years_to_retirement)
    for series in categories.values():
        values = annualize(series.nominal / factors)[:years_to_retirement]
        if not values.any():
            continue
        column = series.name if series.name not in chart else f"{series.name} ({series.category_id})"
        chart[column] = values
        total = total + values
    one_time = annualize(one_time_pv)[:years_to_retirement]
    chart['One-Time'] = one_time
    chart['Total'] = total + one_time
    return pd.DataFrame(chart)


def project_expenses(expenses: Optional[ExpensesConfig], profile: Profile,
                     income: Optional[IncomeProjection] = None) -> ExpenseProjection:
    """
    Project recurring and one-time expenses over the 1200-month horizon.

    Income is resolved first and passed in; percent-of-income categories read the
    month's gross income from it (no income means a zero base).

    Args:
        expenses: Expense configuration (None is treated as no expenses)
        profile: Profile supplying inflation and years to retirement
        income: Income projection for percent-of-income categories

    Returns:
        ExpenseProjection with monthly rows, per-category series, summary and chart data
    """
    expenses = expenses or ExpensesConfig()
    years_to_retirement = profile.years_to_retirement
    factors = discount_factors(profile.inflation_rate)

    if income is not None:
        gross_monthly = income.monthly['total_comp_nominal'].to_numpy()
    else:
        gross_monthly = np.zeros(MONTHS)

    category_defs = (simple_mode_categories(expenses) if expenses.simple_mode
                     else list(expenses.categories))

    categories: Dict[str, CategorySeries] = {}
    for index, category in enumerate(category_defs):
        key = category.id or f"category-{index + 1}"
        if key in categories:
            key = f"{key}-{index + 1}"
        categories[key] = project_category(category, profile, gross_monthly)

    recurring = np.zeros(MONTHS)
    for series in categories.values():
        recurring = recurring + series.nominal

    one_time_nominal, one_time_pv, one_time_items = _one_time_series(expenses, profile)
    recurring_pv = recurring / factors

    monthly = pd.DataFrame({
        'month_index': MONTH_INDEX,
        'year': YEAR_OF_MONTH,
        'month': MONTH_OF_YEAR,
        'recurring_nominal': recurring,
        'one_time_nominal': one_time_nominal,
        'total_nominal': recurring + one_time_nominal,
        'recurring_pv': recurring_pv,
        'one_time_pv': one_time_pv,
        'total_pv': recurring_pv + one_time_pv,
    })

    summary = _build_summary(monthly, categories, category_defs, factors,
                             one_time_items, years_to_retirement)
    chart_data = _build_chart_data(categories, one_time_pv, factors, years_to_retirement)

    logger.debug(f"[Expenses] Projected {len(categories)} categories and "
                 f"{len(one_time_items)} one-time expenses")

    return ExpenseProjection(
        monthly=monthly,
        categories=categories,
        one_time_nominal=one_time_nominal,
        one_time_pv=one_time_pv,
        one_time_items=one_time_items,
        summary=summary,
        chart_data=chart_data,
        years_to_retirement=years_to_retirement,
        inflation_rate=profile.inflation_rate,
    )


def validate_expenses(expenses: Optional[ExpensesConfig], profile: Profile) -> ValidationWarnings:
    """
    Validate expense categories and one-time expenses.

    Args:
        expenses: Expense configuration
        profile: Profile supplying years to retirement

    Returns:
        Warnings keyed '{category id}-{field}' or 'onetime-{id}-{field}'
    """
    warnings: ValidationWarnings = {}
    expenses = expenses or ExpensesConfig()
    years_to_retirement = profile.years_to_retirement

    if expenses.simple_mode:
        if expenses.total_monthly_expense < 0:
            warnings['total_monthly_expense'] = 'Monthly expenses cannot be negative'
        if expenses.simple_growth_rate > 50:
            warnings['simple_growth_rate'] = 'Growth rate seems unrealistic (> 50%)'

    total_percent = 0.0
    for category in expenses.categories:
        prefix = category.id
        if not str(category.name or '').strip():
            warnings[f'{prefix}-name'] = 'Category name is required'
        if category.is_percent:
            total_percent += category.percent_of_income
            if category.percent_of_income < 0:
                warnings[f'{prefix}-percent_of_income'] = 'Percent of income must be 0 or greater'
            elif category.percent_of_income > 100:
                warnings[f'{prefix}-percent_of_income'] = 'Percent of income cannot exceed 100%'
        elif category.annual_amount < 0:
            warnings[f'{prefix}-annual_amount'] = 'Annual amount must be 0 or greater'
        if category.growth_rate is not None and category.growth_rate > 50:
            warnings[f'{prefix}-growth_rate'] = 'Growth rate seems unrealistic (> 50%)'
        for jump in category.jumps:
            if jump.year < 1 or jump.year > years_to_retirement:
                warnings[f'{prefix}-jump-{jump.id}-year'] = (
                    f'Change year must be between 1 and {years_to_retirement}')
            if jump.change_type == 'percent' and jump.value <= -100:
                warnings[f'{prefix}-jump-{jump.id}-value'] = (
                    'Change cannot reduce the expense by 100% or more')

    if not expenses.simple_mode and total_percent > 100:
        warnings['total_percent'] = 'Percent-of-income categories add up to more than 100%'

    for expense in expenses.one_time_expenses:
        prefix = f'onetime-{expense.id}'
        if expense.year < 1 or expense.year > HORIZON_YEARS:
            warnings[f'{prefix}-year'] = f'Year must be between 1 and {HORIZON_YEARS}'
        if expense.amount <= 0:
            warnings[f'{prefix}-amount'] = 'Amount must be greater than 0'

    return warnings
