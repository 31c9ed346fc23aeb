from __future__ import annotations

from typing import Optional

import numpy as np
import pandas as pd

import plotly.graph_objects as go
from plotly.colors import sample_colorscale
from plotly.subplots import make_subplots

from .modeling import model_label


OBS_COLOR = '#1d55e1'
PRED_COLOR = '#1cdf3c'
BAR_LINE = '#f57650'
BAR_PATTERN = '#f8734a'
BOX_FILL = 'rgba(51, 77, 204, 0.5)'

# one fill pattern per model, in legend order
BAR_PATTERNS = ['.', '\\', '-', 'x', '|', '', '/', '+']

# filled/open triangles for hybrids, crosses and dots for single models
HORIZON_SYMBOLS = [
    'triangle-up', 'triangle-up-open', 'triangle-up', 'triangle-up-open',
    'cross', 'circle', 'cross', 'circle',
]


def _layout(fig: go.Figure, title: str, **kwargs) -> go.Figure:
    fig.update_layout(
        title=dict(text=title, x=0.02, xanchor='left'),
        template='plotly_white',
        margin=dict(l=70, r=30, t=80, b=60),
        **kwargs,
    )
    return fig


def _labels(models) -> list:
    return sorted({model_label(m) for m in models})


def time_plot(series: pd.Series, policy_time: Optional[pd.Timestamp] = None) -> go.Figure:
    fig = go.Figure()
    fig.add_trace(go.Scatter(
        x=series.index,
        y=series.to_numpy(),
        mode='lines',
        name='Hourly visits',
        line=dict(width=1, color='black'),
        hovertemplate='Time=%{x|%Y-%m-%d %H:00}<br>Visits=%{y:,.0f}<extra></extra>',
    ))
    if policy_time is not None:
        fig.add_vline(x=policy_time, line_dash='dash', line_color='red', line_width=1)
    _layout(fig, 'Hourly visits', xaxis_title='Year', yaxis_title='Hourly visits', showlegend=False)
    return fig


def season_plot(profile: pd.DataFrame, period: str, show_legend: bool = False) -> go.Figure:
    """One line per cycle (day/week/year), coloured along the cycle order."""
    fig = go.Figure()
    cycles = list(pd.unique(profile['cycle']))
    colors = _sample_viridis(len(cycles))

    for c, color in zip(cycles, colors):
        g = profile[profile['cycle'] == c].sort_values('position')
        name = str(c.date()) if isinstance(c, pd.Timestamp) else str(c)
        fig.add_trace(go.Scattergl(
            x=g['position'],
            y=g['visits'],
            mode='lines',
            name=name,
            line=dict(width=1, color=color),
            opacity=0.6,
            showlegend=show_legend,
        ))

    x_title = {'day': 'Hour of the day', 'week': 'Hour of the week', 'year': 'Hour of the year'}[period]
    _layout(fig, f'Seasonal plot: {period}', xaxis_title=x_title, yaxis_title='Hourly visits', showlegend=show_legend)
    return fig


def _sample_viridis(n: int) -> list:
    if n <= 0:
        return []
    if n == 1:
        return sample_colorscale('Viridis', [0.0])
    return sample_colorscale('Viridis', list(np.linspace(0.0, 1.0, n)))


def tsdisplay(series: pd.Series, ac: pd.DataFrame, title: str = 'Hourly visits') -> go.Figure:
    """Series on top, ACF and PACF side by side underneath."""
    fig = make_subplots(
        rows=2,
        cols=2,
        specs=[[{'colspan': 2}, None], [{}, {}]],
        vertical_spacing=0.14,
        subplot_titles=[title, 'ACF', 'PACF'],
    )
    fig.add_trace(go.Scatter(x=series.index, y=series.to_numpy(), mode='lines', line=dict(width=1, color='black'), showlegend=False), row=1, col=1)

    bound = float(ac.attrs.get('bound', np.nan))
    for col, key in ((1, 'acf'), (2, 'pacf')):
        fig.add_trace(go.Bar(x=ac['lag'], y=ac[key], marker_color='black', width=0.2, showlegend=False), row=2, col=col)
        if np.isfinite(bound):
            for b in (bound, -bound):
                fig.add_hline(y=b, line_dash='dash', line_color='blue', line_width=1, row=2, col=col)

    fig.update_xaxes(title_text='Lag [1h]', row=2, col=1)
    fig.update_xaxes(title_text='Lag [1h]', row=2, col=2)
    _layout(fig, title, height=700)
    return fig


def decomposition_plot(components: pd.DataFrame, observed: Optional[pd.Series] = None) -> go.Figure:
    cols = [c for c in components.columns if c != 'season_adjust']
    panels = ([('visits', observed)] if observed is not None else []) + [(c, components[c]) for c in cols]

    fig = make_subplots(rows=len(panels), cols=1, shared_xaxes=True, vertical_spacing=0.02)
    for i, (name, s) in enumerate(panels, start=1):
        fig.add_trace(go.Scattergl(x=s.index, y=s.to_numpy(), mode='lines', line=dict(width=1, color='black'), name=name, showlegend=False), row=i, col=1)
        fig.update_yaxes(title_text=name, row=i, col=1)

    fig.update_xaxes(title_text='Hour of the year', row=len(panels), col=1)
    _layout(fig, 'STL decomposition', height=max(400, 180 * len(panels)))
    return fig


def forecast_vs_observed(future: pd.Series, forecast: pd.Series, label: str) -> go.Figure:
    fig = go.Figure()
    fig.add_trace(go.Scatter(
        x=future.index, y=future.to_numpy(), mode='lines', name='Observation',
        line=dict(width=1.5, color=OBS_COLOR),
    ))
    fig.add_trace(go.Scatter(
        x=forecast.index, y=forecast.to_numpy(), mode='lines', name=f'{label} Prediction',
        line=dict(width=1.5, color=PRED_COLOR),
    ))
    _layout(
        fig, f'{label}: forecast vs observation',
        xaxis_title='Hour',
        yaxis_title='Visits',
        legend=dict(x=0.01, xanchor='left', y=0.99, yanchor='top', bgcolor='white', bordercolor='gray', borderwidth=1),
        hovermode='x unified',
    )
    return fig


def accuracy_bars(acc: pd.DataFrame, metrics=('RMSE', 'MAE')) -> go.Figure:
    """Faceted bars, one patterned bar per model and metric, values printed on top."""
    for m in metrics:
        if m not in acc.columns:
            raise ValueError(f'Missing required column: {m}')

    df = acc.copy()
    df['label'] = df['model'].map(model_label)
    order = _labels(df['model'])

    fig = make_subplots(rows=1, cols=len(metrics), subplot_titles=list(metrics), horizontal_spacing=0.08)
    for j, label in enumerate(order):
        row = df[df['label'] == label].iloc[0]
        for k, m in enumerate(metrics, start=1):
            v = float(row[m])
            fig.add_trace(go.Bar(
                x=[label],
                y=[v],
                name=label,
                legendgroup=label,
                showlegend=(k == 1),
                text=[f'{v:.2f}'],
                textposition='outside',
                marker=dict(
                    color='white',
                    line=dict(color=BAR_LINE, width=1),
                    pattern=dict(shape=BAR_PATTERNS[j % len(BAR_PATTERNS)], fgcolor=BAR_PATTERN, solidity=0.5),
                ),
            ), row=1, col=k)

    fig.update_xaxes(showticklabels=False)
    _layout(
        fig, 'Forecast accuracy',
        barmode='group',
        legend=dict(orientation='h', x=0.0, xanchor='left', y=-0.08, yanchor='top'),
    )
    return fig


def horizon_accuracy_plot(horizon_acc: pd.DataFrame, metric: str = 'MAE') -> go.Figure:
    if metric not in horizon_acc.columns:
        raise ValueError(f'Missing required column: {metric}')

    df = horizon_acc.copy()
    df['label'] = df['model'].map(model_label)

    fig = go.Figure()
    for j, label in enumerate(_labels(df['model'])):
        g = df[df['label'] == label].sort_values('h_day')
        fig.add_trace(go.Scatter(
            x=g['h_day'],
            y=g[metric],
            mode='markers',
            name=label,
            marker=dict(size=9, symbol=HORIZON_SYMBOLS[j % len(HORIZON_SYMBOLS)]),
        ))

    _layout(
        fig, f'Cross-validated {metric} by forecast horizon',
        xaxis_title='Forecast horizon (day)',
        yaxis_title=metric,
        legend=dict(orientation='h', x=0.0, xanchor='left', y=-0.15, yanchor='top'),
    )
    return fig


def month_boxplot(month_acc: pd.DataFrame, metric: str = 'RMSE') -> go.Figure:
    """Spread of a metric across models, per calendar month."""
    if metric not in month_acc.columns:
        raise ValueError(f'Missing required column: {metric}')

    fig = go.Figure()
    for month, g in month_acc.groupby('month', sort=True):
        fig.add_trace(go.Box(
            y=g[metric],
            name=str(int(month)),
            fillcolor=BOX_FILL,
            line=dict(color='black', width=1),
            boxpoints='outliers',
            showlegend=False,
        ))

    _layout(fig, f'Cross-validated {metric} by month', xaxis_title='Month', yaxis_title=metric)
    return fig
