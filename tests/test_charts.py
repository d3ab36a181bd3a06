"""
Tests for chart visualization functions.
Verifies chart generation and structure without testing visual output.
"""
import unittest

from charts import (
    create_expense_chart, create_gap_chart, create_income_chart, create_net_worth_chart,
    create_tax_breakdown_chart
)
from models import (
    ExpenseCategory, ExpensesConfig, IncomeStream, Investment, InvestmentsDebt, OneTimeExpense,
    PlanState, Profile
)
from scenarios import calculate_plan_projections


class TestCharts(unittest.TestCase):

    def setUp(self):
        """Set up a ten-year plan with two streams"""
        self.state = PlanState(
            profile=Profile(age=40, retirement_age=50, inflation_rate=2.5),
            income_streams=[
                IncomeStream(id='stream-1', name='Job', annual_income=120_000,
                             end_year_linked=True),
                IncomeStream(id='stream-2', name='Rental', annual_income=12_000,
                             end_year_linked=True),
            ],
            expenses=ExpensesConfig(categories=[
                ExpenseCategory(id='housing', name='Housing', amount_type='fixed',
                                annual_amount=36_000),
                ExpenseCategory(id='food', name='Food', amount_type='fixed',
                                annual_amount=12_000),
            ]),
            investments_debt=InvestmentsDebt(
                current_cash=20_000, target_cash=20_000,
                investments=[Investment(id='inv-1', current_value=50_000,
                                        portfolio_percent=100)]),
        )
        self.projections = calculate_plan_projections(self.state)

    def test_income_chart(self):
        """Test one bar trace per stream plus the total line"""
        fig = create_income_chart(self.projections.income)

        names = [trace.name for trace in fig.data]
        self.assertEqual(names, ['Job', 'Rental', 'Total'])
        self.assertEqual(fig.layout.barmode, 'stack')
        self.assertEqual(len(fig.data[0].x), 10)

    def test_expense_chart_drops_empty_one_time(self):
        """Test the one-time series is hidden when there are none"""
        fig = create_expense_chart(self.projections.expenses)

        names = [trace.name for trace in fig.data]
        self.assertNotIn('One-Time', names)
        self.assertIn('Housing', names)

    def test_expense_chart_with_one_time(self):
        """Test the one-time series appears when there is one"""
        self.state.expenses.one_time_expenses = [OneTimeExpense(year=3, amount=8_000)]
        projections = calculate_plan_projections(self.state)
        fig = create_expense_chart(projections.expenses)

        self.assertIn('One-Time', [trace.name for trace in fig.data])

    def test_net_worth_chart_currency_formats(self):
        """Test real and nominal titles"""
        fig_real = create_net_worth_chart(self.projections.gap)
        self.assertIn("Real Dollars", fig_real.layout.title.text)

        fig_nominal = create_net_worth_chart(self.projections.gap, currency_format="nominal")
        self.assertIn("Nominal Dollars", fig_nominal.layout.title.text)

    def test_net_worth_chart_components(self):
        """Test component lines only for accounts with balances"""
        fig = create_net_worth_chart(self.projections.gap)
        names = [trace.name for trace in fig.data]

        self.assertEqual(names[0], 'Net Worth')
        self.assertIn('Cash', names)
        self.assertIn('Investments', names)
        self.assertNotIn('Home Equity', names)

        fig_total = create_net_worth_chart(self.projections.gap, show_components=False)
        self.assertEqual(len(fig_total.data), 1)

    def test_net_worth_chart_marks_negative_cash(self):
        """Test a vertical marker when cash first goes negative"""
        self.state.expenses.categories[0].annual_amount = 250_000
        projections = calculate_plan_projections(self.state)
        fig = create_net_worth_chart(projections.gap)

        self.assertEqual(len(fig.layout.shapes), 1)

    def test_tax_breakdown_chart(self):
        """Test federal, state and payroll bars with the effective rate line"""
        fig = create_tax_breakdown_chart(self.projections.gap)
        names = [trace.name for trace in fig.data]

        self.assertEqual(names, ['Federal', 'State', 'Payroll', 'Effective Rate'])
        self.assertEqual(fig.data[3].yaxis, 'y2')
        self.assertIn("Nominal Dollars", fig.layout.title.text)

    def test_gap_chart_colors(self):
        """Test surplus years are green"""
        fig = create_gap_chart(self.projections.gap)

        self.assertEqual(len(fig.data[0].x), 10)
        self.assertTrue(all(color == 'green' for color in fig.data[0].marker.color))


if __name__ == '__main__':
    unittest.main()
