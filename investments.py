"""
Investment account rules: validation and allocation of a yearly surplus or deficit
across cash and investment accounts.
"""
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from config_utils import INVESTMENT_CONFIG
from models import InvestmentsDebt, ValidationWarnings


@dataclass
class Allocation:
    """Where one year's gap goes; negative amounts are withdrawals"""
    to_cash: float = 0.0
    to_investments: List[float] = field(default_factory=list)

    @property
    def invested(self) -> float:
        return sum(self.to_investments)


def allocate_gap(gap: float,
                 cash: float,
                 target_cash: float,
                 values: Sequence[float],
                 portfolio_percents: Sequence[float]) -> Allocation:
    """
    Split a year's gap between cash and investments.

    A surplus first tops cash up to the target, the rest is split by portfolio
    percent and whatever is left unallocated stays in cash. A deficit draws cash
    down to the target, then draws investments in proportion to their value; any
    remainder comes out of cash even if that takes it below zero.

    Args:
        gap: After-tax income minus expenses for the year
        cash: Cash balance at the start of the year
        target_cash: Desired cash balance
        values: Investment market values at the start of the year
        portfolio_percents: Share of surplus for each investment (percent)

    Returns:
        Allocation
    """
    if gap >= 0:
        to_cash = min(gap, max(0.0, target_cash - cash))
        remaining = gap - to_cash
        contributions = [remaining * pct / 100 for pct in portfolio_percents]
        to_cash += remaining - sum(contributions)
        return Allocation(to_cash=to_cash, to_investments=contributions)

    deficit = -gap
    from_cash = min(deficit, max(0.0, cash - target_cash))
    deficit -= from_cash

    available = [max(0.0, v) for v in values]
    total_available = sum(available)
    drawn = min(deficit, total_available)
    withdrawals = [-(drawn * v / total_available) if total_available > 0 else 0.0
                   for v in available]
    deficit -= drawn

    return Allocation(to_cash=-(from_cash + deficit), to_investments=withdrawals)


def total_portfolio_percent(investments_debt: Optional[InvestmentsDebt]) -> float:
    if investments_debt is None:
        return 0.0
    return sum(inv.portfolio_percent for inv in investments_debt.investments)


def validate_investments(investments_debt: Optional[InvestmentsDebt]) -> ValidationWarnings:
    """
    Validate cash, 401k and investment inputs.

    Args:
        investments_debt: Investment configuration

    Returns:
        Field-keyed warnings
    """
    warnings: ValidationWarnings = {}
    if investments_debt is None:
        return warnings

    if investments_debt.current_cash < 0:
        warnings['current_cash'] = 'Current cash cannot be negative'
    if investments_debt.target_cash < 0:
        warnings['target_cash'] = 'Target cash cannot be negative'

    retirement = investments_debt.retirement_401k
    if retirement.current_value < 0:
        warnings['401k-current_value'] = '401k balance cannot be negative'
    if retirement.individual_limit < 0:
        warnings['401k-individual_limit'] = 'Contribution limit cannot be negative'
    if retirement.growth_rate > 50:
        warnings['401k-growth_rate'] = 'Growth rate seems unrealistic (> 50%)'

    if len(investments_debt.investments) > INVESTMENT_CONFIG['max_investments']:
        warnings['investments'] = (
            f"At most {INVESTMENT_CONFIG['max_investments']} investments are supported")

    for investment in investments_debt.investments:
        prefix = investment.id
        if investment.current_value < 0:
            warnings[f'{prefix}-current_value'] = 'Current value cannot be negative'
        if investment.cost_basis is not None and investment.cost_basis < 0:
            warnings[f'{prefix}-cost_basis'] = 'Cost basis cannot be negative'
        if investment.growth_rate > 50:
            warnings[f'{prefix}-growth_rate'] = 'Growth rate seems unrealistic (> 50%)'
        if investment.portfolio_percent < 0 or investment.portfolio_percent > 100:
            warnings[f'{prefix}-portfolio_percent'] = 'Allocation must be between 0% and 100%'

    total = total_portfolio_percent(investments_debt)
    if total > 100:
        warnings['portfolio_percent'] = 'Total portfolio allocation cannot exceed 100%'
    elif investments_debt.investments and total < 100:
        warnings['portfolio_percent'] = (
            f'Portfolio allocation totals {total:g}%; the unallocated surplus stays in cash')

    return warnings
