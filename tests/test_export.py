"""
Unit tests for the CSV ledger export.
"""
import csv
from datetime import date
from io import StringIO

import pytest

from export import (
    EXPORT_COLUMNS, build_export_frame, export_filename, generate_csv_export,
    transform_expenses, transform_income, transform_investments, transform_net_worth,
    transform_taxes
)
from models import IncomeJump, OneTimeExpense
from scenarios import calculate_plan_projections


@pytest.fixture
def projections(plan_state):
    return calculate_plan_projections(plan_state)


def export_frame(projections):
    state = projections.state
    return build_export_frame(projections.income, projections.expenses, projections.gap,
                              state.investments_debt, state.profile, state.income_streams)


class TestTransforms:
    """Test per-module row builders"""

    def test_income_rows(self, projections):
        """Test three component rows per active month"""
        rows = transform_income(projections.income, projections.state.income_streams)

        assert len(rows) == 5 * 12 * 3
        first = rows[0]
        assert first['Module'] == 'Income'
        assert first['Primary_Category'] == 'Job'
        assert first['Subcategory'] == 'Salary'
        assert first['Value_Nominal'] == '8333.33'
        assert first['Growth_Type'] == 'Income_Growth'
        assert first['Growth_Multiplier'] == '1.00000'

    def test_income_jump_note(self, plan_state):
        """Test jump notes appear in January of the jump year"""
        plan_state.income_streams[0].jumps = [IncomeJump(year=2, jump_percent=10,
                                                         description='Promotion')]
        projections = calculate_plan_projections(plan_state)
        rows = transform_income(projections.income, plan_state.income_streams)
        notes = {(r['Year'], r['Month']): r['Notes'] for r in rows if r['Notes']}

        assert notes == {(2, 1): 'Jump: Promotion'}

    def test_expense_rows(self, plan_state):
        """Test recurring rows per category plus one-time rows"""
        plan_state.expenses.one_time_expenses = [OneTimeExpense(year=3, amount=1_000,
                                                                description='Trip')]
        projections = calculate_plan_projections(plan_state)
        rows = transform_expenses(projections.expenses)
        one_time = [r for r in rows if r['Primary_Category'] == 'One_Time']

        assert len(rows) == 2 * 60 + 1
        assert one_time[0]['Year'] == 3
        assert one_time[0]['Month'] == 1
        assert one_time[0]['Value_PV'] == '1000.00'
        assert one_time[0]['Sub_Sub_Category'] == 'Trip'

    def test_tax_rows_without_table(self, projections):
        """Test federal and state rows for every month"""
        rows = transform_taxes(projections.gap, projections.state.profile)

        assert len(rows) == 2 * 12 * 5
        assert {r['Primary_Category'] for r in rows} == {'Federal', 'State_California'}

    def test_tax_rows_with_payroll(self, plan_state, ladder_table):
        """Test payroll taxes get their own labelled rows"""
        projections = calculate_plan_projections(plan_state, ladder_table)
        rows = transform_taxes(projections.gap, plan_state.profile)
        social_security = [r for r in rows if r['Subcategory'] == 'Social_Security']

        assert len(rows) == 4 * 12 * 5
        assert social_security[0]['Primary_Category'] == 'FICA'
        assert social_security[0]['Value_Nominal'] == '516.67'

    def test_investment_rows(self, projections):
        """Test balance and flow rows per account per year"""
        rows = transform_investments(projections.gap, projections.state.investments_debt)
        year1 = [r for r in rows if r['Year'] == 1]

        # Cash 3, investment 4 plus cost basis, 401k 4
        assert len(year1) == 12
        beginning = [r for r in year1 if r['Subcategory'] == 'Beginning_Balance']
        assert all(r['Month'] == 1 for r in beginning)
        basis = [r for r in year1 if r['Subcategory'] == 'Cost_Basis']
        assert basis[0]['Value_Nominal'] == '130000.00'

    def test_net_worth_rows(self, projections):
        """Test December summary rows with outflows negated"""
        rows = transform_net_worth(projections.gap)
        taxes = [r for r in rows if r['Primary_Category'] == 'Individual_401k_Contributions']

        assert len(rows) == 10 * 5
        assert all(r['Month'] == 12 for r in rows)
        assert taxes[0]['Value_Nominal'] == '-10000.00'


class TestExportFrame:
    """Test the combined, sorted export table"""

    def test_columns_and_size(self, projections):
        """Test the column order and total row count"""
        df = export_frame(projections)

        assert list(df.columns) == EXPORT_COLUMNS
        assert len(df) == 180 + 120 + 120 + 60 + 50

    def test_sorted_by_year_month_module(self, projections):
        """Test rows are ordered by year, month, then module"""
        df = export_frame(projections)
        keys = list(zip(df['Year'], df['Month'], df['Module']))

        assert keys == sorted(keys)
        assert df.iloc[0]['Module'] == 'Expenses'

    def test_missing_data_raises(self, projections):
        """Test a missing projection is an error"""
        with pytest.raises(ValueError, match="gap"):
            build_export_frame(projections.income, projections.expenses, None,
                               projections.state.investments_debt, projections.state.profile)


class TestCsvExport:
    """Test the CSV text"""

    def test_every_field_quoted(self, projections):
        """Test QUOTE_ALL output with a header row"""
        state = projections.state
        text = generate_csv_export(projections.income, projections.expenses, projections.gap,
                                   state.investments_debt, state.profile)

        header = text.splitlines()[0]
        assert header == ','.join(f'"{c}"' for c in EXPORT_COLUMNS)
        rows = list(csv.DictReader(StringIO(text)))
        assert len(rows) == 530
        assert rows[0]['Year'] == '1'

    def test_filename(self, profile):
        """Test the download filename spans today to retirement"""
        name = export_filename(profile, date(2025, 1, 15))
        assert name == "Financial_Projections_2025_to_2030_2025-01-15.csv"
