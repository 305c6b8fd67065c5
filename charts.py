"""
Plotly chart builders for retirement projection visualizations.
Creates interactive charts for account balances, withdrawals and outcome distributions.
"""
import plotly.graph_objects as go
import numpy as np
from typing import List, Optional

from simulation import HistogramBin, PlanParameters
from deterministic import ProjectionYear
from config_utils import account_label
from io_utils import format_axis_value, format_currency


def _axis_ticks(max_value: float, count: int = 6):
    """Tick positions and compact labels from 0 to max_value"""
    if max_value <= 0:
        return [0], [format_axis_value(0)]
    tickvals = np.linspace(0, max_value, count)
    return tickvals.tolist(), [format_axis_value(v) for v in tickvals]


def create_balance_projection_chart(projection: List[ProjectionYear],
                                    params: PlanParameters,
                                    title: str = "Projected Account Balances") -> go.Figure:
    """
    Create stacked area chart of account balances by age with a total balance line.

    Args:
        projection: Output of build_projection
        params: Plan parameters (account labels and colors)
        title: Chart title

    Returns:
        Plotly figure
    """
    ages = [row.age for row in projection]
    fig = go.Figure()

    for key, account in params.accounts.items():
        label = account_label(key, account)
        fig.add_trace(go.Scatter(
            x=ages,
            y=[row.balances.get(key, 0.0) for row in projection],
            mode='lines',
            stackgroup='accounts',
            name=label,
            line=dict(width=0.5, color=account.color or None),
            hovertemplate=f"<b>{label}</b><br>" +
                         "<b>Age:</b> %{x}<br>" +
                         "<b>Balance:</b> $%{y:,.0f}<br>" +
                         "<extra></extra>"
        ))

    totals = [row.total_balance for row in projection]
    fig.add_trace(go.Scatter(
        x=ages,
        y=totals,
        mode='lines',
        name='Total Balance',
        line=dict(color='black', width=2, dash='dot'),
        hovertemplate="<b>Age:</b> %{x}<br>" +
                     "<b>Total:</b> $%{y:,.0f}<br>" +
                     "<extra></extra>"
    ))

    # Mark retirement
    if projection and params.current_age <= params.retirement_age <= ages[-1]:
        fig.add_vline(
            x=params.retirement_age,
            line_dash="dash",
            line_color="gray",
            annotation=dict(text=f"Retire at {params.retirement_age}", yanchor="top")
        )

    tickvals, ticktext = _axis_ticks(max(totals) if totals else 0)
    fig.update_layout(
        title=title,
        xaxis_title="Age",
        yaxis_title="Balance",
        yaxis=dict(tickvals=tickvals, ticktext=ticktext),
        template="plotly_white",
        hovermode="x unified",
        legend=dict(x=0.02, y=0.98)
    )

    return fig


def create_withdrawal_chart(projection: List[ProjectionYear],
                            title: str = "Annual Withdrawals (Inflation-Adjusted)") -> go.Figure:
    """Create bar chart of withdrawals by age with total balance on a secondary axis"""
    ages = [row.age for row in projection]

    fig = go.Figure()
    fig.add_trace(go.Bar(
        x=ages,
        y=[row.withdrawal for row in projection],
        name='Withdrawal',
        marker_color='lightcoral',
        hovertemplate="<b>Age:</b> %{x}<br>" +
                     "<b>Withdrawal:</b> $%{y:,.0f}<br>" +
                     "<extra></extra>"
    ))
    fig.add_trace(go.Scatter(
        x=ages,
        y=[row.total_balance for row in projection],
        mode='lines',
        name='Total Balance',
        line=dict(color='darkblue', width=2),
        yaxis='y2'
    ))

    fig.update_layout(
        title=title,
        xaxis_title="Age",
        yaxis_title="Withdrawal",
        yaxis2=dict(
            title="Total Balance",
            overlaying="y",
            side="right",
            showgrid=False
        ),
        template="plotly_white",
        hovermode="x unified"
    )

    return fig


def create_distribution_chart(histogram: List[HistogramBin],
                              title: str,
                              median: Optional[float] = None,
                              color: str = '#4299e1') -> go.Figure:
    """
    Create bar chart of a simulated outcome histogram.

    Args:
        histogram: Bins from simulate_distribution
        title: Chart title
        median: Median value shown in the subtitle and as a marker line
        color: Bar color

    Returns:
        Plotly figure
    """
    values = [bin_.value for bin_ in histogram]
    percentages = [bin_.percentage for bin_ in histogram]

    fig = go.Figure()
    fig.add_trace(go.Bar(
        x=values,
        y=percentages,
        name='Frequency',
        marker_color=color,
        customdata=[format_currency(v) for v in values],
        hovertemplate="<b>Value:</b> %{customdata}<br>" +
                     "<b>Frequency:</b> %{y:.2f}%<br>" +
                     "<extra></extra>"
    ))

    subtitle = ""
    if median is not None:
        subtitle = f"<br><sub>Median: {format_currency(median)}</sub>"
        fig.add_vline(x=median, line_dash="dash", line_color="darkred", line_width=2)

    tickvals = values[::max(1, len(values) // 6)]
    fig.update_layout(
        title=dict(text=f"{title}{subtitle}", x=0.5, xanchor='center'),
        xaxis_title="Portfolio Value",
        yaxis_title="Frequency (%)",
        xaxis=dict(tickvals=tickvals, ticktext=[format_axis_value(v) for v in tickvals]),
        template="plotly_white",
        bargap=0.05,
        showlegend=False
    )

    return fig
