"""
CSV export of projection results.
Flattens income, expense, tax, investment and net-worth projections into one
ledger-style table with a row per item per month.
"""
import csv
import logging
from datetime import date
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

from expenses import ExpenseProjection
from gap import GapProjection
from income import MONTH_OF_YEAR, YEAR_OF_MONTH, IncomeProjection
from models import IncomeStream, InvestmentsDebt, Profile


logger = logging.getLogger(__name__)

EXPORT_COLUMNS = [
    'Year', 'Month', 'Module', 'Primary_Category', 'Subcategory', 'Sub_Sub_Category',
    'Value_Type', 'Value_Nominal', 'Value_PV', 'Inflation_Multiplier',
    'Growth_Multiplier', 'Growth_Type', 'Notes',
]

PAYROLL_LABELS = {
    'social_security': ('FICA', 'Social_Security'),
    'medicare': ('FICA', 'Medicare'),
    'additional_medicare': ('FICA', 'Additional_Medicare'),
    'cpp': ('Payroll', 'CPP'),
    'ei': ('Payroll', 'EI'),
}

Row = Dict[str, Any]


def _row(year: int, month: int, module: str, primary: str, subcategory: str,
         value_type: str, nominal: float, pv: float, inflation_multiplier: float,
         growth_multiplier: Optional[float] = None, growth_type: str = 'N/A',
         notes: str = '', sub_sub_category: Optional[str] = None) -> Row:
    return {
        'Year': int(year),
        'Month': int(month),
        'Module': module,
        'Primary_Category': primary,
        'Subcategory': subcategory,
        'Sub_Sub_Category': sub_sub_category,
        'Value_Type': value_type,
        'Value_Nominal': f"{nominal:.2f}",
        'Value_PV': f"{pv:.2f}",
        'Inflation_Multiplier': f"{inflation_multiplier:.5f}",
        'Growth_Multiplier': 'N/A' if growth_multiplier is None else f"{growth_multiplier:.5f}",
        'Growth_Type': growth_type,
        'Notes': notes,
    }


def _inflation(inflation_rate: float, year: int) -> float:
    return (1 + inflation_rate / 100) ** (year - 1)


def transform_income(income: IncomeProjection,
                     streams: Optional[Sequence[IncomeStream]] = None) -> List[Row]:
    """
    Salary, Equity_RSU and Company_401k rows for every active stream month.

    Args:
        income: Income projection
        streams: Stream definitions, used for jump notes

    Returns:
        List of export rows
    """
    rows: List[Row] = []
    horizon = income.years_to_retirement * 12
    jumps = {s.id: {j.year: j for j in s.jumps} for s in (streams or [])}

    for key, series in income.streams.items():
        name = series.name or f"Stream_{key}"
        for m in np.nonzero(series.active[:horizon])[0]:
            year, month = int(YEAR_OF_MONTH[m]), int(MONTH_OF_YEAR[m])
            inflation = _inflation(income.inflation_rate, year)
            growth = series.growth_multiplier[m] * series.jump_multiplier[m]
            jump = jumps.get(series.stream_id, {}).get(year)
            note = f"Jump: {jump.description or 'Income Change'}" if month == 1 and jump else ''

            for subcategory, values in (('Salary', series.salary),
                                        ('Equity_RSU', series.equity),
                                        ('Company_401k', series.company_401k)):
                rows.append(_row(year, month, 'Income', name, subcategory, 'Flow',
                                 values[m], values[m] / inflation, inflation, growth,
                                 'Income_Growth', note, note or None))

    logger.debug(f"[Export] Income rows: {len(rows)}")
    return rows


def transform_expenses(expenses: ExpenseProjection) -> List[Row]:
    """Recurring rows per category per month plus one-time rows in January"""
    rows: List[Row] = []
    horizon = expenses.years_to_retirement * 12

    for key, series in expenses.categories.items():
        name = series.name or f"Category_{key}"
        for m in range(horizon):
            year, month = int(YEAR_OF_MONTH[m]), int(MONTH_OF_YEAR[m])
            inflation = _inflation(expenses.inflation_rate, year)
            growth = series.growth_multiplier[m] * series.jump_factor[m]
            rows.append(_row(year, month, 'Expenses', name, 'Recurring', 'Flow',
                             series.nominal[m], series.nominal[m] / inflation, inflation,
                             growth, 'Expense_Growth'))

    for item in expenses.one_time_items:
        if item['year'] > expenses.years_to_retirement:
            continue
        inflation = _inflation(expenses.inflation_rate, item['year'])
        description = item['description'] or 'Large Purchase'
        rows.append(_row(item['year'], 1, 'Expenses', 'One_Time', 'One_Time', 'Flow',
                         item['amount_nominal'], item['amount_pv'], inflation,
                         notes=item['description'], sub_sub_category=description))

    logger.debug(f"[Export] Expense rows: {len(rows)}")
    return rows


def transform_taxes(gap: GapProjection, profile: Profile) -> List[Row]:
    """Annual federal, state and payroll taxes spread evenly over twelve months"""
    rows: List[Row] = []
    state_label = f"State_{(profile.location or 'Unknown').replace(' ', '_')}"

    for year, inflation, taxes in zip(gap.yearly['year'], gap.yearly['inflation_multiplier'],
                                      gap.tax_breakdowns):
        items = [('Federal', 'Income_Tax', taxes.federal), (state_label, 'Income_Tax', taxes.state)]
        items += [PAYROLL_LABELS.get(name, ('Payroll', name)) + (amount,)
                  for name, amount in taxes.payroll.items()]
        for month in range(1, 13):
            for primary, subcategory, annual in items:
                monthly = annual / 12
                rows.append(_row(year, month, 'Taxes', primary, subcategory, 'Flow',
                                 monthly, monthly / inflation, inflation,
                                 notes='Annual tax / 12'))

    logger.debug(f"[Export] Tax rows: {len(rows)}")
    return rows


def _account_rows(year: int, inflation: float, name: str, beginning: float,
                  contribution: float, returns: Optional[float], ending: float,
                  growth_type: str = 'N/A') -> List[Row]:
    rows = [
        _row(year, 1, 'Investments', name, 'Beginning_Balance', 'Balance',
             beginning, beginning / inflation, inflation, growth_type=growth_type),
        _row(year, 12, 'Investments', name, 'Contribution', 'Flow',
             contribution, contribution / inflation, inflation,
             notes='Negative values are withdrawals'),
    ]
    if returns is not None:
        rows.append(_row(year, 12, 'Investments', name, 'Investment_Returns', 'Flow',
                         returns, returns / inflation, inflation,
                         growth_type=growth_type, notes='Applied at year-end'))
    rows.append(_row(year, 12, 'Investments', name, 'Ending_Balance', 'Balance',
                     ending, ending / inflation, inflation, growth_type=growth_type))
    return rows


def transform_investments(gap: GapProjection, investments_debt: InvestmentsDebt) -> List[Row]:
    """Beginning, contribution, returns and ending rows for cash, each investment and the 401k"""
    rows: List[Row] = []
    yearly = gap.yearly

    for idx, record in enumerate(yearly.to_dict('records')):
        year, inflation = int(record['year']), record['inflation_multiplier']
        rows += _account_rows(year, inflation, 'Cash', record['cash_beginning'],
                              record['cash_contribution'], None, record['cash_ending'])

        for number, inv in enumerate(investments_debt.investments, start=1):
            account = gap.accounts[inv.id]
            name = inv.name or f"Investment_{number}"
            rows += _account_rows(year, inflation, name, account['beginning'][idx],
                                  account['contribution'][idx], account['returns'][idx],
                                  account['ending'][idx], 'Investment_Return')
            basis = account['cost_basis'][idx]
            rows.append(_row(year, 12, 'Investments', name, 'Cost_Basis', 'Balance',
                             basis, basis / inflation, inflation,
                             notes='Original cost of holdings'))

        rows += _account_rows(year, inflation, '401k', record['k401_beginning'],
                              record['k401_contribution'], record['k401_returns'],
                              record['k401_ending'], 'Investment_Return')

    logger.debug(f"[Export] Investment rows: {len(rows)}")
    return rows


NET_WORTH_METRICS = [
    # column, primary, subcategory, value type, sign, notes
    ('gross_income', 'Income', 'Total', 'Flow', 1, 'Total annual income'),
    ('individual_401k', 'Individual_401k_Contributions', 'Total', 'Flow', -1,
     'Employee pretax deferrals'),
    ('total_tax', 'Taxes', 'Total', 'Flow', -1, 'Federal + State + Payroll'),
    ('expenses', 'Expenses', 'Total', 'Flow', -1, 'Recurring + One-time'),
    ('gap', 'Gap', 'Calculated', 'Flow', 1, 'Income - 401k - Taxes - Expenses'),
    ('cash_ending', 'Cash', 'Balance', 'Balance', 1, 'Liquid cash balance'),
    ('investments_ending', 'Investments', 'Market_Value', 'Balance', 1,
     'Total investment accounts'),
    ('k401_ending', '401k', 'Balance', 'Balance', 1, 'Retirement account balance'),
    ('home_equity', 'Home_Equity', 'Balance', 'Balance', 1, 'Property value less mortgage'),
    ('net_worth', 'Net_Worth', 'Total', 'Balance', 1, 'Cash + Investments + 401k + Home equity'),
]


def transform_net_worth(gap: GapProjection) -> List[Row]:
    """Year-end (December) summary metrics"""
    rows: List[Row] = []
    for record in gap.yearly.to_dict('records'):
        for column, primary, subcategory, value_type, sign, notes in NET_WORTH_METRICS:
            rows.append(_row(record['year'], 12, 'Net_Worth', primary, subcategory, value_type,
                             sign * record[column], sign * record[f'{column}_pv'],
                             record['inflation_multiplier'], notes=notes))
    return rows


def build_export_frame(income: Optional[IncomeProjection],
                       expenses: Optional[ExpenseProjection],
                       gap: Optional[GapProjection],
                       investments_debt: Optional[InvestmentsDebt],
                       profile: Optional[Profile],
                       streams: Optional[Sequence[IncomeStream]] = None) -> pd.DataFrame:
    """
    Combine every module's rows into one sorted DataFrame.

    Args:
        income: Income projection
        expenses: Expense projection
        gap: Gap projection
        investments_debt: Investment configuration (account names)
        profile: Profile (jurisdiction label)
        streams: Optional stream definitions for jump notes

    Returns:
        DataFrame with EXPORT_COLUMNS sorted by Year, Month, Module

    Raises:
        ValueError: If any required projection is missing
    """
    missing = [name for name, value in (('income', income), ('expenses', expenses),
                                         ('gap', gap), ('investments', investments_debt),
                                         ('profile', profile)) if value is None]
    if missing:
        raise ValueError(f"Missing required data for export: {', '.join(missing)}")

    rows = (transform_income(income, streams)
            + transform_expenses(expenses)
            + transform_taxes(gap, profile)
            + transform_investments(gap, investments_debt)
            + transform_net_worth(gap))

    df = pd.DataFrame(rows, columns=EXPORT_COLUMNS)
    df = df.sort_values(['Year', 'Month', 'Module'], kind='mergesort').reset_index(drop=True)
    logger.info(f"[Export] Built {len(df)} rows")
    return df


def generate_csv_export(income: Optional[IncomeProjection],
                        expenses: Optional[ExpenseProjection],
                        gap: Optional[GapProjection],
                        investments_debt: Optional[InvestmentsDebt],
                        profile: Optional[Profile],
                        streams: Optional[Sequence[IncomeStream]] = None) -> str:
    """Export all projections as a fully quoted CSV string"""
    df = build_export_frame(income, expenses, gap, investments_debt, profile, streams)
    return df.to_csv(index=False, quoting=csv.QUOTE_ALL)


def export_filename(profile: Profile, today: Optional[date] = None) -> str:
    today = today or date.today()
    end_year = today.year + profile.years_to_retirement
    return f"Financial_Projections_{today.year}_to_{end_year}_{today.isoformat()}.csv"
