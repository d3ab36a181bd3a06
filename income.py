"""
Income projection over the 1200-month horizon.
Expands income streams (growth, jumps, career breaks) into monthly nominal and
present-value series per stream and in aggregate.
"""
import logging
from dataclasses import dataclass, field
from itertools import accumulate
from typing import Dict, List, NamedTuple, Optional, Sequence

import numpy as np
import pandas as pd

from config_utils import INCOME_CONFIG
from models import (
    HORIZON_YEARS, MONTHS, CareerBreak, IncomeJump, IncomeStream, Profile,
    ValidationWarnings
)


logger = logging.getLogger(__name__)

MONTH_INDEX = np.arange(MONTHS)
YEAR_OF_MONTH = MONTH_INDEX // 12 + 1
MONTH_OF_YEAR = MONTH_INDEX % 12 + 1

INCOME_COMPONENTS = ('salary', 'equity', 'company_401k')


def annualize(monthly_values) -> np.ndarray:
    """Sum a 1200-month series into 100 yearly totals"""
    return np.asarray(monthly_values, dtype=float).reshape(HORIZON_YEARS, 12).sum(axis=1)


def discount_factors(inflation_rate: float) -> np.ndarray:
    """Per-month discount factor (1 + inflation) ** (year - 1), constant within a year"""
    return (1 + inflation_rate / 100) ** (YEAR_OF_MONTH - 1)


def round5(value):
    """Round a summary figure to 5 decimal places"""
    return round(float(value), 5)


class JumpAccumulator(NamedTuple):
    """Running jump multiplier for one stream"""
    multiplier: float = 1.0

    def apply(self, jumps: Sequence[IncomeJump]) -> 'JumpAccumulator':
        multiplier = self.multiplier
        for jump in jumps:
            multiplier *= 1 + jump.jump_percent / 100
        return JumpAccumulator(multiplier)


def group_by_year(events) -> Dict[int, list]:
    """Group jump-like events by year, ascending"""
    grouped: Dict[int, list] = {}
    for event in sorted(events or [], key=lambda e: e.year):
        grouped.setdefault(event.year, []).append(event)
    return grouped


def fold_years(initial, step) -> list:
    """
    Thread an accumulator through years 1..100.

    Args:
        initial: Accumulator state before year 1
        step: Function (state, year) -> state for that year

    Returns:
        The state in force during each year (index 0 is year 1)
    """
    return list(accumulate(range(1, HORIZON_YEARS + 1), step, initial=initial))[1:]


def career_break_factor(career_breaks: Sequence[CareerBreak]) -> np.ndarray:
    """Per-month pay factor; overlapping breaks use the largest reduction"""
    reduction = np.zeros(MONTHS)
    for career_break in career_breaks or []:
        start = (max(1, career_break.start_year) - 1) * 12
        end = min(MONTHS, start + max(0, career_break.duration_months))
        if start >= end:
            continue
        pct = min(max(career_break.reduction_percent, 0.0), 100.0) / 100
        reduction[start:end] = np.maximum(reduction[start:end], pct)
    return 1 - reduction


@dataclass
class StreamSeries:
    """Monthly nominal series for one income stream"""
    stream_id: str
    name: str
    growth_rate: float
    annual_income: float
    end_year: int
    salary: np.ndarray
    equity: np.ndarray
    company_401k: np.ndarray
    active: np.ndarray
    growth_multiplier: np.ndarray
    jump_multiplier: np.ndarray
    break_factor: np.ndarray

    @property
    def total(self) -> np.ndarray:
        return self.salary + self.equity + self.company_401k


@dataclass
class IncomeProjection:
    """Income projection results"""
    monthly: pd.DataFrame
    streams: Dict[str, StreamSeries]
    summary: Dict
    chart_data: pd.DataFrame
    years_to_retirement: int
    inflation_rate: float
    individual_401k: Dict[str, float] = field(default_factory=dict)

    def annual(self, column: str) -> np.ndarray:
        return annualize(self.monthly[column].to_numpy())


def project_stream(stream: IncomeStream, years_to_retirement: int) -> StreamSeries:
    """
    Expand one stream into monthly component amounts.

    Args:
        stream: Income stream definition
        years_to_retirement: Profile horizon used when the end year is unset or linked

    Returns:
        StreamSeries with nominal salary, equity and company 401k per month
    """
    end_year = stream.effective_end_year(years_to_retirement)
    start_year = max(1, stream.start_year)
    in_window = (YEAR_OF_MONTH >= start_year) & (YEAR_OF_MONTH <= end_year)

    growth = (1 + stream.growth_rate / 100) ** (YEAR_OF_MONTH - 1)

    jumps_by_year = group_by_year(stream.jumps)
    states = fold_years(JumpAccumulator(),
                        lambda acc, year: acc.apply(jumps_by_year.get(year, [])))
    jump = np.array([state.multiplier for state in states])[YEAR_OF_MONTH - 1]

    breaks = career_break_factor(stream.career_breaks)
    scale = np.where(in_window, growth * jump * breaks / 12, 0.0)

    return StreamSeries(
        stream_id=stream.id,
        name=stream.name,
        growth_rate=stream.growth_rate,
        annual_income=stream.annual_income,
        end_year=end_year,
        salary=stream.annual_income * scale,
        equity=stream.equity * scale,
        company_401k=stream.company_401k * scale,
        active=in_window & (breaks > 0),
        growth_multiplier=growth,
        jump_multiplier=jump,
        break_factor=breaks,
    )


def _applied_growth_rate(series: List[StreamSeries]) -> np.ndarray:
    if not series:
        return np.zeros(MONTHS)
    weights = np.array([s.annual_income * s.active for s in series], dtype=float)
    rates = np.array([s.growth_rate for s in series], dtype=float)[:, None]
    total_weight = weights.sum(axis=0)
    weighted = (weights * rates).sum(axis=0)
    return np.divide(weighted, total_weight, out=np.zeros(MONTHS), where=total_weight > 0)


def _build_summary(monthly: pd.DataFrame, streams: List[IncomeStream], factors: np.ndarray,
                   series: Dict[str, StreamSeries], years_to_retirement: int) -> Dict:
    retirement_months = years_to_retirement * 12
    lifetime = monthly.iloc[:retirement_months]
    year1 = monthly[monthly['year'] == 1]
    year10 = monthly[monthly['year'] == 10]

    growing = lifetime.loc[lifetime['applied_growth_rate'] > 0, 'applied_growth_rate']
    average_growth = growing.mean() if len(growing) else 0.0

    milestones = []
    for stream in streams:
        for jump in sorted(stream.jumps, key=lambda j: j.year):
            label = f"Year {jump.year}: {stream.name}"
            if jump.description:
                label += f" - {jump.description}"
            label += f" ({jump.jump_percent:+g}%)"
            milestones.append({
                'year': jump.year,
                'stream': stream.name,
                'description': jump.description,
                'jump_percent': jump.jump_percent,
                'label': label,
            })
    milestones.sort(key=lambda m: m['year'])

    per_stream = []
    for stream_id, s in series.items():
        total = s.total
        per_stream.append({
            'id': stream_id,
            'name': s.name,
            'end_year': s.end_year,
            'current_year_nominal': round5(total[:12].sum()),
            'lifetime_nominal': round5(total[:retirement_months].sum()),
            'lifetime_pv': round5((total / factors)[:retirement_months].sum()),
        })

    return {
        'years_to_retirement': years_to_retirement,
        'current_year_total_nominal': round5(year1['total_comp_nominal'].sum()),
        'current_year_total_pv': round5(year1['total_comp_pv'].sum()),
        'year10_total_nominal': round5(year10['total_comp_nominal'].sum()),
        'year10_total_pv': round5(year10['total_comp_pv'].sum()),
        'lifetime_total_nominal': round5(lifetime['total_comp_nominal'].sum()),
        'lifetime_total_pv': round5(lifetime['total_comp_pv'].sum()),
        'lifetime_salary_nominal': round5(lifetime['salary_nominal'].sum()),
        'lifetime_equity_nominal': round5(lifetime['equity_nominal'].sum()),
        'lifetime_company_401k_nominal': round5(lifetime['company_401k_nominal'].sum()),
        'average_annual_growth': round5(average_growth),
        'milestones': milestones,
        'per_stream': per_stream,
    }


def _build_chart_data(series: Dict[str, StreamSeries], factors: np.ndarray,
                      years_to_retirement: int) -> pd.DataFrame:
    chart = {'year': np.arange(1, years_to_retirement + 1)}
    total = np.zeros(years_to_retirement)
    for s in series.values():
        column = s.name or s.stream_id
        if column in chart:
            column = f"{column} ({s.stream_id})"
        values = annualize(s.total / factors)[:years_to_retirement]
        chart[column] = values
        total = total + values
    chart['Total'] = total
    return pd.DataFrame(chart)


def project_income(streams: Optional[Sequence[IncomeStream]],
                   profile: Profile) -> IncomeProjection:
    """
    Project every income stream over the 1200-month horizon.

    Args:
        streams: Income stream definitions (None is treated as no streams)
        profile: Profile supplying inflation and years to retirement

    Returns:
        IncomeProjection with monthly rows, per-stream series, summary and chart data
    """
    streams = list(streams or [])
    years_to_retirement = profile.years_to_retirement
    factors = discount_factors(profile.inflation_rate)

    series: Dict[str, StreamSeries] = {}
    for index, stream in enumerate(streams):
        key = stream.id or f"stream-{index + 1}"
        if key in series:
            key = f"{key}-{index + 1}"
        series[key] = project_stream(stream, years_to_retirement)

    columns = {}
    for component in INCOME_COMPONENTS:
        nominal = np.zeros(MONTHS)
        for s in series.values():
            nominal = nominal + getattr(s, component)
        columns[component] = nominal

    total = columns['salary'] + columns['equity'] + columns['company_401k']
    monthly = pd.DataFrame({
        'month_index': MONTH_INDEX,
        'year': YEAR_OF_MONTH,
        'month': MONTH_OF_YEAR,
        'salary_nominal': columns['salary'],
        'equity_nominal': columns['equity'],
        'company_401k_nominal': columns['company_401k'],
        'total_comp_nominal': total,
        'salary_pv': columns['salary'] / factors,
        'equity_pv': columns['equity'] / factors,
        'company_401k_pv': columns['company_401k'] / factors,
        'total_comp_pv': total / factors,
        'applied_growth_rate': _applied_growth_rate(list(series.values())),
        'active_streams': np.sum([s.active for s in series.values()], axis=0).astype(int)
        if series else np.zeros(MONTHS, dtype=int),
    })

    summary = _build_summary(monthly, streams, factors, series, years_to_retirement)
    chart_data = _build_chart_data(series, factors, years_to_retirement)

    logger.debug(f"[Income] Projected {len(series)} streams, lifetime nominal "
                 f"{summary['lifetime_total_nominal']:.2f}")

    return IncomeProjection(
        monthly=monthly,
        streams=series,
        summary=summary,
        chart_data=chart_data,
        years_to_retirement=years_to_retirement,
        inflation_rate=profile.inflation_rate,
        individual_401k={key: stream.individual_401k
                         for key, stream in zip(series.keys(), streams)},
    )


def validate_income(streams: Optional[Sequence[IncomeStream]],
                    profile: Profile) -> ValidationWarnings:
    """
    Validate income streams.

    Args:
        streams: Income stream definitions
        profile: Profile supplying years to retirement

    Returns:
        Warnings keyed '{stream id}-{field}'
    """
    warnings: ValidationWarnings = {}
    streams = list(streams or [])
    years_to_retirement = profile.years_to_retirement

    if len(streams) < INCOME_CONFIG['min_streams']:
        warnings['streams'] = 'At least one income stream is required'
    elif len(streams) > INCOME_CONFIG['max_streams']:
        warnings['streams'] = f"At most {INCOME_CONFIG['max_streams']} income streams are supported"

    for stream in streams:
        prefix = stream.id
        if not str(stream.name or '').strip():
            warnings[f'{prefix}-name'] = 'Income stream name is required'
        if stream.annual_income < 0:
            warnings[f'{prefix}-annual_income'] = 'Annual income cannot be negative'
        if stream.growth_rate > INCOME_CONFIG['max_reasonable_growth']:
            warnings[f'{prefix}-growth_rate'] = 'Growth rate seems unrealistic (> 50%)'
        elif stream.growth_rate < -INCOME_CONFIG['max_reasonable_growth']:
            warnings[f'{prefix}-growth_rate'] = 'Growth rate seems unrealistic (< -50%)'
        for field_name in ('individual_401k', 'company_401k', 'equity'):
            if getattr(stream, field_name) < 0:
                warnings[f'{prefix}-{field_name}'] = 'Amount cannot be negative'

        end_year = stream.effective_end_year(years_to_retirement)
        if stream.end_work_year is not None and not stream.end_year_linked:
            if stream.end_work_year <= 0 or stream.end_work_year > years_to_retirement:
                warnings[f'{prefix}-end_work_year'] = (
                    f'End year must be between 1 and {years_to_retirement}')
        if stream.start_year < 1:
            warnings[f'{prefix}-start_year'] = 'Start year must be 1 or greater'
        elif stream.start_year > end_year:
            warnings[f'{prefix}-start_year'] = 'Start year must not be after the end year'

        for jump in stream.jumps:
            if jump.year < 1 or jump.year > years_to_retirement:
                warnings[f'{prefix}-jump-{jump.id}-year'] = (
                    f'Jump year must be between 1 and {years_to_retirement}')
            if jump.jump_percent <= -100:
                warnings[f'{prefix}-jump-{jump.id}-jump_percent'] = (
                    'Jump cannot reduce income by 100% or more')

        for career_break in stream.career_breaks:
            key = f'{prefix}-break-{career_break.id}'
            if career_break.start_year < 1:
                warnings[f'{key}-start_year'] = 'Break start year must be 1 or greater'
            if career_break.duration_months < 1:
                warnings[f'{key}-duration_months'] = 'Break duration must be at least 1 month'
            if not 0 <= career_break.reduction_percent <= 100:
                warnings[f'{key}-reduction_percent'] = 'Reduction must be between 0% and 100%'
            break_end_months = (career_break.start_year - 1) * 12 + career_break.duration_months
            if break_end_months > years_to_retirement * 12:
                warnings[f'{key}-duration_months'] = 'Career break extends past retirement'

    return warnings
