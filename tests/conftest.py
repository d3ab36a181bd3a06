"""
Shared fixtures: a small in-memory tax table and simple plan states.
"""
from io import StringIO

import pytest

from models import (
    ExpenseCategory, ExpensesConfig, IncomeStream, Investment, InvestmentsDebt, PlanState,
    Profile, Retirement401k
)
from tax_ladders import load_tax_ladders


LADDERS_CSV = """ID,Region,State,Parent Region,TaxType,TaxedIncome,Filing Status,Range,RangeValue,Ladder Step,Rate
1,Federal,USA,USA,Income,Ordinary,Single,Bot_Range,0,1,0.10
2,Federal,USA,USA,Income,Ordinary,Single,Bot_Range,10000,2,0.20
3,Federal,USA,USA,Income,Ordinary,Married,Bot_Range,0,1,0.05
4,Federal,USA,USA,CapitalGains,LongTerm,Single,Bot_Range,0,1,0.00
5,Federal,USA,USA,CapitalGains,LongTerm,Single,Bot_Range,40000,2,0.15
6,Federal,USA,USA,FICA Social Security,Wages,All,Bot_Range,0,1,0.062
7,Federal,USA,USA,FICA Social Security,Wages,All,Top_Range,100000,1,0.062
8,Federal,USA,USA,FICA Social Security,Wages,All,Bot_Range,100000,2,0.00
9,Federal,USA,USA,FICA Medicare,Wages,All,Bot_Range,0,1,0.0145
10,State_Province,California,USA,Income,Ordinary,Single,Bot_Range,0,1,0.02
11,State_Province,California,USA,Income,Ordinary,Single,Bot_Range,50000,2,0.04
12,State_Province,Texas,USA,Income,None,All,Bot_Range,0,1,0.00
13,Federal,Canada,Canada,Income_and_CapitalGains,Ordinary,Single,Bot_Range,0,1,0.15
14,Federal,Canada,Canada,CPP,Wages,All,Bot_Range,0,1,0.05
15,Federal,Canada,Canada,CPP,Wages,All,Top_Range,70000,1,0.05
16,Federal,Canada,Canada,CPP,Wages,All,Bot_Range,70000,2,0.00
17,State_Province,Ontario,Canada,Income,Ordinary,Single,Bot_Range,0,1,0.05
"""

DEDUCTIONS_CSV = """Region,Jurisdiction,Country,Filing_Status,Deduction_Amount
Federal,USA,USA,Single,5000
Federal,USA,USA,Married,10000
State_Province,California,USA,Single,1000
"""

CREDITS_CSV = """Region,Jurisdiction,Country,Filing_Status,Tax_Credit_Amount,Credit_Type
State_Province,California,USA,Single,100,Personal_Exemption
State_Province,California,USA,Single,50,Renter
"""


@pytest.fixture
def ladder_table():
    """Tax table loaded from the in-memory CSVs"""
    return load_tax_ladders(StringIO(LADDERS_CSV), StringIO(DEDUCTIONS_CSV),
                            StringIO(CREDITS_CSV))


@pytest.fixture
def profile():
    """Five years to retirement at 3% inflation"""
    return Profile(location='California', country='USA', filing_status='Single',
                   age=30, retirement_age=35, inflation_rate=3.0)


@pytest.fixture
def plan_state(profile):
    """One salaried stream, two fixed categories, one investment"""
    return PlanState(
        profile=profile,
        income_streams=[IncomeStream(id='stream-1', name='Job', annual_income=100_000,
                                     growth_rate=3.0, end_year_linked=True,
                                     individual_401k=10_000)],
        expenses=ExpensesConfig(categories=[
            ExpenseCategory(id='housing', name='Housing', amount_type='fixed',
                            annual_amount=24_000),
            ExpenseCategory(id='food', name='Food', amount_type='fixed', annual_amount=6_000),
        ]),
        investments_debt=InvestmentsDebt(
            current_cash=10_000,
            target_cash=20_000,
            retirement_401k=Retirement401k(current_value=50_000, growth_rate=5.0),
            investments=[Investment(id='inv-1', name='Index Fund', current_value=100_000,
                                    cost_basis=80_000, growth_rate=6.0,
                                    portfolio_percent=100)],
        ),
    )
