"""
Plotly chart builders for plan projections.
Creates interactive charts for income, expenses, net worth and taxes by year.
"""
from typing import Optional

import plotly.graph_objects as go
import numpy as np
import pandas as pd

from expenses import ExpenseProjection
from gap import GapProjection
from income import IncomeProjection


def _currency_label(currency_format: str) -> str:
    return "Real" if currency_format == "real" else "Nominal"


def _stacked_bar_from_chart_data(chart_data: pd.DataFrame, title: str,
                                 skip_columns=('year', 'Total')) -> go.Figure:
    fig = go.Figure()
    for column in chart_data.columns:
        if column in skip_columns:
            continue
        fig.add_trace(go.Bar(
            x=chart_data['year'],
            y=chart_data[column],
            name=column,
            hovertemplate="<b>Year:</b> %{x}<br>" +
                         f"<b>{column}:</b> " + "$%{y:,.0f}<br>" +
                         "<extra></extra>"
        ))

    if 'Total' in chart_data.columns:
        fig.add_trace(go.Scatter(
            x=chart_data['year'],
            y=chart_data['Total'],
            mode='lines',
            name='Total',
            line=dict(color='black', width=2, dash='dot'),
            hovertemplate="<b>Year:</b> %{x}<br><b>Total:</b> $%{y:,.0f}<extra></extra>"
        ))

    fig.update_layout(
        title=title,
        barmode='stack',
        xaxis_title="Year",
        yaxis_title="Annual Amount (Today's Dollars)",
        template="plotly_white",
        hovermode="x unified",
        legend=dict(x=0.02, y=0.98)
    )
    return fig


def create_income_chart(income: IncomeProjection,
                        title: str = "Income by Stream") -> go.Figure:
    """
    Create stacked bar chart of annual present-value income per stream.

    Args:
        income: Income projection
        title: Chart title

    Returns:
        Plotly figure
    """
    return _stacked_bar_from_chart_data(income.chart_data, title)


def create_expense_chart(expenses: ExpenseProjection,
                         title: str = "Expenses by Category") -> go.Figure:
    """
    Create stacked bar chart of annual present-value expenses per category.

    Args:
        expenses: Expense projection
        title: Chart title

    Returns:
        Plotly figure
    """
    chart_data = expenses.chart_data
    if 'One-Time' in chart_data.columns and not chart_data['One-Time'].any():
        chart_data = chart_data.drop(columns=['One-Time'])
    return _stacked_bar_from_chart_data(chart_data, title)


def create_net_worth_chart(gap: GapProjection,
                           title: str = "Net Worth Projection",
                           currency_format: str = "real",
                           show_components: bool = True) -> go.Figure:
    """
    Create line chart of net worth, optionally with account components.

    Args:
        gap: Gap projection
        title: Chart title
        currency_format: "real" (present value) or "nominal"
        show_components: Add cash, investments, 401k and home equity lines

    Returns:
        Plotly figure
    """
    yearly = gap.yearly
    suffix = '_pv' if currency_format == "real" else ''
    currency_label = _currency_label(currency_format)
    years = yearly['year']

    fig = go.Figure()
    fig.add_trace(go.Scatter(
        x=years, y=yearly[f'net_worth{suffix}'],
        mode='lines',
        name='Net Worth',
        line=dict(color='darkblue', width=3),
        hovertemplate="<b>Year:</b> %{x}<br>" +
                     "<b>Net Worth:</b> $%{y:,.0f}<br>" +
                     "<extra></extra>"
    ))

    if show_components:
        components = [
            ('cash_ending', 'Cash', 'green'),
            ('investments_ending', 'Investments', 'orange'),
            ('k401_ending', '401k', 'purple'),
            ('home_equity', 'Home Equity', 'brown'),
        ]
        for column, name, color in components:
            values = yearly[f'{column}{suffix}']
            if not values.any():
                continue
            fig.add_trace(go.Scatter(
                x=years, y=values,
                mode='lines',
                name=name,
                line=dict(color=color, width=1.5, dash='dash'),
                hovertemplate=f"<b>{name}:</b> " + "$%{y:,.0f}<extra></extra>"
            ))

    negative = yearly.loc[yearly['cash_negative'], 'year']
    if len(negative):
        fig.add_vline(
            x=int(negative.iloc[0]),
            line_dash="dot",
            line_color="darkred",
            annotation=dict(text="Cash goes negative", xanchor="left")
        )

    fig.update_layout(
        title=f"{title} ({currency_label} Dollars)",
        xaxis_title="Year",
        yaxis_title=f"Balance ({currency_label} $)",
        template="plotly_white",
        hovermode="x unified",
        legend=dict(x=0.02, y=0.98)
    )
    return fig


def create_tax_breakdown_chart(gap: GapProjection,
                               title: str = "Annual Taxes",
                               currency_format: str = "nominal") -> go.Figure:
    """
    Create stacked bar chart of federal, state and payroll taxes per year.

    Args:
        gap: Gap projection
        title: Chart title
        currency_format: "real" or "nominal"

    Returns:
        Plotly figure
    """
    yearly = gap.yearly
    years = yearly['year']
    divisor = yearly['inflation_multiplier'] if currency_format == "real" else 1.0
    currency_label = _currency_label(currency_format)

    series = {
        'Federal': np.array([t.federal for t in gap.tax_breakdowns]),
        'State': np.array([t.state for t in gap.tax_breakdowns]),
        'Payroll': np.array([t.payroll_total for t in gap.tax_breakdowns]),
    }

    fig = go.Figure()
    for name, values in series.items():
        fig.add_trace(go.Bar(
            x=years, y=values / divisor,
            name=name,
            hovertemplate=f"<b>{name}:</b> " + "$%{y:,.0f}<extra></extra>"
        ))

    gross = yearly['gross_income'].to_numpy(dtype=float)
    effective_rate = np.divide(yearly['total_tax'].to_numpy(dtype=float), gross,
                               out=np.zeros(len(yearly)), where=gross > 0) * 100
    fig.add_trace(go.Scatter(
        x=years, y=effective_rate,
        mode='lines+markers',
        name='Effective Rate',
        yaxis='y2',
        line=dict(color='red', width=2),
        hovertemplate="<b>Effective Rate:</b> %{y:.1f}%<extra></extra>"
    ))

    fig.update_layout(
        title=f"{title} ({currency_label} Dollars)",
        barmode='stack',
        xaxis_title="Year",
        yaxis_title=f"Tax ({currency_label} $)",
        yaxis2=dict(title="Effective Rate (%)", overlaying='y', side='right', showgrid=False),
        template="plotly_white",
        hovermode="x unified",
        legend=dict(x=0.02, y=0.98)
    )
    return fig


def create_gap_chart(gap: GapProjection, title: Optional[str] = None) -> go.Figure:
    """Bar chart of the yearly gap, green for surplus and red for deficit (today's dollars)"""
    yearly = gap.yearly
    values = yearly['gap_pv']
    colors = ['green' if v >= 0 else 'red' for v in values]

    fig = go.Figure(go.Bar(
        x=yearly['year'], y=values,
        marker_color=colors,
        name='Gap',
        hovertemplate="<b>Year:</b> %{x}<br><b>Gap:</b> $%{y:,.0f}<extra></extra>"
    ))
    fig.update_layout(
        title=title or "Annual Surplus / Deficit (Real Dollars)",
        xaxis_title="Year",
        yaxis_title="Gap (Real $)",
        template="plotly_white",
        showlegend=False
    )
    return fig
