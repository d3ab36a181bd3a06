"""
Unit tests for gap allocation and investment validation.
"""
from investments import allocate_gap, total_portfolio_percent, validate_investments
from models import Investment, InvestmentsDebt, Retirement401k


class TestAllocateSurplus:
    """Test where a positive gap goes"""

    def test_tops_up_cash_first(self):
        """Test surplus fills cash to target before investing"""
        allocation = allocate_gap(10_000, cash=5_000, target_cash=8_000,
                                  values=[100, 100], portfolio_percents=[60, 20])

        assert abs(allocation.to_investments[0] - 4_200) < 1e-6
        assert abs(allocation.to_investments[1] - 1_400) < 1e-6
        # 3,000 to reach target plus the unallocated 20%
        assert abs(allocation.to_cash - 4_400) < 1e-6
        assert abs(allocation.to_cash + allocation.invested - 10_000) < 1e-6

    def test_cash_above_target(self):
        """Test surplus skips cash when it is already above target"""
        allocation = allocate_gap(1_000, cash=50_000, target_cash=10_000,
                                  values=[0], portfolio_percents=[100])

        assert allocation.to_cash == 0
        assert abs(allocation.to_investments[0] - 1_000) < 1e-6

    def test_no_investments(self):
        """Test surplus stays in cash without investment accounts"""
        allocation = allocate_gap(5_000, cash=0, target_cash=1_000, values=[],
                                  portfolio_percents=[])

        assert allocation.to_cash == 5_000
        assert allocation.invested == 0


class TestAllocateDeficit:
    """Test where a negative gap is drawn from"""

    def test_draws_cash_to_target_then_investments(self):
        """Test deficit uses excess cash, then investments pro rata"""
        allocation = allocate_gap(-10_000, cash=12_000, target_cash=8_000,
                                  values=[30_000, 10_000], portfolio_percents=[50, 50])

        assert abs(allocation.to_cash + 4_000) < 1e-6
        assert abs(allocation.to_investments[0] + 4_500) < 1e-6
        assert abs(allocation.to_investments[1] + 1_500) < 1e-6

    def test_remainder_takes_cash_negative(self):
        """Test a deficit larger than every account leaves cash negative"""
        allocation = allocate_gap(-50_000, cash=10_000, target_cash=0,
                                  values=[20_000], portfolio_percents=[100])

        assert abs(allocation.to_investments[0] + 20_000) < 1e-6
        assert abs(allocation.to_cash + 30_000) < 1e-6
        assert 10_000 + allocation.to_cash < 0

    def test_cash_below_target_skips_cash(self):
        """Test a deficit goes to investments when cash is already below target"""
        allocation = allocate_gap(-1_000, cash=500, target_cash=1_000,
                                  values=[5_000], portfolio_percents=[100])

        assert allocation.to_cash == 0
        assert abs(allocation.to_investments[0] + 1_000) < 1e-6


class TestValidateInvestments:
    """Test investment validation warnings"""

    def test_valid(self):
        """Test a fully allocated portfolio has no warnings"""
        config = InvestmentsDebt(investments=[
            Investment(id='inv-1', current_value=1_000, portfolio_percent=70),
            Investment(id='inv-2', current_value=1_000, portfolio_percent=30)])

        assert total_portfolio_percent(config) == 100
        assert validate_investments(config) == {}

    def test_over_allocated(self):
        """Test allocations above 100% are flagged"""
        config = InvestmentsDebt(investments=[
            Investment(id='inv-1', portfolio_percent=70),
            Investment(id='inv-2', portfolio_percent=40)])
        assert 'portfolio_percent' in validate_investments(config)

    def test_under_allocated_notes_cash(self):
        """Test partial allocation notes the remainder stays in cash"""
        config = InvestmentsDebt(investments=[Investment(id='inv-1', portfolio_percent=50)])
        assert 'stays in cash' in validate_investments(config)['portfolio_percent']

    def test_field_warnings(self):
        """Test field-keyed warnings"""
        config = InvestmentsDebt(
            current_cash=-1,
            retirement_401k=Retirement401k(current_value=-5),
            investments=[Investment(id='inv-1', current_value=-10, cost_basis=-1,
                                    portfolio_percent=100)])
        warnings = validate_investments(config)

        assert 'current_cash' in warnings
        assert '401k-current_value' in warnings
        assert 'inv-1-current_value' in warnings
        assert 'inv-1-cost_basis' in warnings

    def test_none(self):
        """Test missing configuration validates cleanly"""
        assert validate_investments(None) == {}
