"""
What-if scenarios: overrides merged onto a base plan, full projection runs,
summary metrics and side-by-side comparison against a baseline.
"""
import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, NamedTuple, Optional

from expenses import ExpenseProjection, project_expenses, validate_expenses
from gap import GapProjection, project_gap
from income import IncomeProjection, project_income, validate_income
from investments import validate_investments
from io_utils import state_from_dict, state_to_dict
from models import PlanState, ValidationWarnings, validate_profile
from tax_ladders import TaxLadderTable, TaxProfile, resolve_tax_profile


logger = logging.getLogger(__name__)

COMPARISON_METRICS = [
    'avg_annual_income', 'avg_annual_taxes', 'avg_annual_expenses', 'avg_annual_gap',
    'net_worth_at_retirement', 'total_income_cumulative', 'total_taxes_cumulative',
    'total_expenses_cumulative', 'total_savings_cumulative',
]

# Metrics where a decrease is an improvement
LOWER_IS_BETTER = {'avg_annual_taxes', 'avg_annual_expenses', 'total_taxes_cumulative',
                   'total_expenses_cumulative'}


def deep_merge(base: Any, override: Any) -> Any:
    """
    Recursively merge override onto base.

    Dicts merge key by key; any other override value (lists included) replaces
    the base value. Neither input is modified.
    """
    if override is None:
        return copy.deepcopy(base)
    if base is None or not isinstance(base, dict) or not isinstance(override, dict):
        return copy.deepcopy(override)

    result = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict):
            result[key] = deep_merge(base.get(key), value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def apply_scenario_overrides(base: PlanState, overrides: Optional[Dict[str, Any]]) -> PlanState:
    """
    Apply camelCase storage-format overrides to a plan state.

    Args:
        base: Base plan state
        overrides: Partial storage dictionary, e.g. {'profile': {'retirementAge': 60}}

    Returns:
        New PlanState; base is unchanged
    """
    if not overrides:
        return copy.deepcopy(base)
    merged = deep_merge(state_to_dict(base), overrides)
    return state_from_dict(merged)


@dataclass
class PlanProjections:
    """Every projection for one plan state"""
    state: PlanState
    income: IncomeProjection
    expenses: ExpenseProjection
    tax_profile: TaxProfile
    gap: Optional[GapProjection]
    warnings: ValidationWarnings = field(default_factory=dict)


def calculate_plan_projections(state: PlanState,
                               table: Optional[TaxLadderTable] = None) -> PlanProjections:
    """
    Run income, expenses, tax resolution and the gap engine in order.

    Income is projected first so percent-of-income expense categories can read it.

    Args:
        state: Plan state
        table: Tax ladder table; None taxes nothing

    Returns:
        PlanProjections with merged validation warnings
    """
    profile = state.profile
    income = project_income(state.income_streams, profile)
    expenses = project_expenses(state.expenses, profile, income)
    tax_profile = resolve_tax_profile(table, profile, state.tax_overrides)
    gap = project_gap(income, expenses, state.investments_debt, profile, tax_profile,
                      state.property)

    warnings: ValidationWarnings = {}
    warnings.update(validate_profile(profile))
    warnings.update(validate_income(state.income_streams, profile))
    warnings.update(validate_expenses(state.expenses, profile))
    warnings.update(validate_investments(state.investments_debt))
    warnings.update({f'tax-{key}': message for key, message in tax_profile.warnings.items()})
    if gap is not None:
        warnings.update(gap.warnings)

    logger.debug(f"[Scenarios] Projections complete with {len(warnings)} warning(s)")
    return PlanProjections(state=state, income=income, expenses=expenses,
                           tax_profile=tax_profile, gap=gap, warnings=warnings)


def scenario_summary(projections: Optional[PlanProjections]) -> Optional[Dict[str, Any]]:
    """
    Key metrics for comparing scenarios.

    Args:
        projections: Result of calculate_plan_projections

    Returns:
        Dictionary of averages, first-year, retirement and cumulative figures,
        or None when there is no gap projection
    """
    if projections is None or projections.gap is None or projections.gap.yearly.empty:
        return None

    yearly = projections.gap.yearly
    first, last = yearly.iloc[0], yearly.iloc[-1]
    years = len(yearly)

    total_income = yearly['gross_income'].sum()
    total_taxes = yearly['total_tax'].sum()
    total_expenses = yearly['expenses'].sum()
    total_gap = yearly['gap'].sum()
    avg_income = total_income / years
    avg_gap = total_gap / years

    return {
        'avg_annual_income': round(avg_income),
        'avg_annual_taxes': round(total_taxes / years),
        'avg_annual_expenses': round(total_expenses / years),
        'avg_annual_gap': round(avg_gap),
        'avg_savings_rate': round(avg_gap / avg_income * 100, 2) if avg_income > 0 else 0.0,
        'first_year_income': round(first['gross_income']),
        'first_year_taxes': round(first['total_tax']),
        'first_year_expenses': round(first['expenses']),
        'first_year_gap': round(first['gap']),
        'first_year_savings_rate': (round(first['gap'] / first['gross_income'] * 100, 2)
                                    if first['gross_income'] > 0 else 0.0),
        'net_worth_at_retirement': round(last['net_worth']),
        'cash_at_retirement': round(last['cash_ending']),
        'investments_at_retirement': round(last['investments_ending']),
        'retirement_401k_at_retirement': round(last['k401_ending']),
        'total_income_cumulative': round(total_income),
        'total_taxes_cumulative': round(total_taxes),
        'total_expenses_cumulative': round(total_expenses),
        'total_savings_cumulative': round(total_gap),
    }


class Scenario(NamedTuple):
    id: str
    name: str
    projections: Optional[PlanProjections]


def _difference(metric: str, base_value: float, value: float) -> Dict[str, Any]:
    absolute = value - base_value
    percentage = absolute / base_value * 100 if base_value != 0 else 0.0
    improved = absolute < 0 if metric in LOWER_IS_BETTER else absolute > 0
    worsened = absolute > 0 if metric in LOWER_IS_BETTER else absolute < 0
    return {
        'absolute': round(absolute),
        'percentage': round(percentage, 2),
        'better': improved,
        'worse': worsened,
    }


def compare_scenarios(scenarios: List[Scenario]) -> Optional[Dict[str, Any]]:
    """
    Compare scenarios against the first one.

    Args:
        scenarios: At least two scenarios; the first is the baseline

    Returns:
        {'baseline': id, 'scenarios': [...]} with per-metric differences, or None
        when fewer than two scenarios have a summary
    """
    summaries = [(s, scenario_summary(s.projections)) for s in scenarios or []]
    summaries = [(s, summary) for s, summary in summaries if summary is not None]
    if len(summaries) < 2:
        logger.warning("[Scenarios] Need at least 2 scenarios with projections to compare")
        return None

    baseline_scenario, baseline = summaries[0]
    results = []
    for index, (scenario, summary) in enumerate(summaries):
        differences = None
        if index > 0:
            differences = {metric: _difference(metric, baseline[metric], summary[metric])
                           for metric in COMPARISON_METRICS}
            rate_change = summary['avg_savings_rate'] - baseline['avg_savings_rate']
            differences['avg_savings_rate'] = {
                'absolute': round(rate_change, 2),
                'percentage': None,
                'better': rate_change > 0,
                'worse': rate_change < 0,
            }
        results.append({'id': scenario.id, 'name': scenario.name, 'summary': summary,
                        'differences': differences})

    return {'baseline': baseline_scenario.id, 'scenarios': results}
