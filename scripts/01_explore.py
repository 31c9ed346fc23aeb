#!/usr/bin/env python3
from __future__ import annotations

import argparse
from pathlib import Path

import pandas as pd

from visits_forecasting.config import ProjectConfig
from visits_forecasting.console import console
from visits_forecasting.data import load_hourly_visits, policy_change_time
from visits_forecasting.eda import autocorrelations, seasonal_difference, seasonal_profile
from visits_forecasting.figures import decomposition_plot, season_plot, time_plot, tsdisplay
from visits_forecasting.modeling import decompose
from visits_forecasting.viz_utils import save_plotly


def main() -> None:
    ap = argparse.ArgumentParser(description='Exploratory plots: time plot, seasonal patterns, ACF/PACF and STL decomposition.')
    ap.add_argument('--data', type=str, default=str(ProjectConfig().data_path), help='Hourly visits CSV (time, visits).')
    ap.add_argument('--figdir', type=str, default=str(ProjectConfig().figures_dir / 'eda'))
    ap.add_argument('--tabledir', type=str, default=str(ProjectConfig().tables_dir))
    ap.add_argument('--policy-change', type=str, default=str(ProjectConfig().policy_change))
    ap.add_argument('--lag-max', type=int, default=48)
    ap.add_argument('--diff-lag', type=int, default=24)
    ap.add_argument('--periods', type=int, nargs='+', default=list(ProjectConfig().seasonal_periods))
    ap.add_argument('--image-format', type=str, default=ProjectConfig().image_format, help='Static image format (png, pdf, svg).')
    ap.add_argument('--no-images', action='store_true', help='Only write HTML figures.')
    args = ap.parse_args()

    figdir = Path(args.figdir)
    tabledir = Path(args.tabledir)
    image_format = None if args.no_images else args.image_format

    series = load_hourly_visits(Path(args.data))
    console.print(f'[dim]Loaded[/dim] {len(series):,} hourly observations  {series.index[0]} → {series.index[-1]}')

    outputs = []

    policy = policy_change_time(series, pd.Timestamp(args.policy_change))
    if policy is None:
        console.print(f'[yellow]Policy change {args.policy_change} is outside the data; no marker drawn.[/yellow]')
    outputs += save_plotly(time_plot(series, policy), figdir, 'time_plot', image_format, width=1050, height=750)

    for period, stem, legend, width in (
        ('day', 'daily_pattern', False, 1050),
        ('week', 'weekly_pattern', False, 1050),
        ('year', 'yearly_pattern', True, 1200),
    ):
        fig = season_plot(seasonal_profile(series, period), period, show_legend=legend)
        outputs += save_plotly(fig, figdir, stem, image_format, width=width, height=750)

    outputs += save_plotly(tsdisplay(series, autocorrelations(series, args.lag_max)), figdir, 'acf', image_format)

    diffed = seasonal_difference(series, args.diff_lag)
    fig = tsdisplay(diffed, autocorrelations(diffed, args.lag_max), title=f'Visits, lag-{args.diff_lag} difference')
    outputs += save_plotly(fig, figdir, 'acf_dif', image_format)

    components = decompose(series, args.periods, robust=True)
    outputs += save_plotly(decomposition_plot(components, observed=series), figdir, 'stl', image_format, height=1100)

    tabledir.mkdir(parents=True, exist_ok=True)
    comp_out = tabledir / 'stl_components.csv.gz'
    components.to_csv(comp_out, index_label='time', compression='gzip')
    outputs.append(comp_out)

    for p in outputs:
        print(f'Wrote: {p}')


if __name__ == '__main__':
    main()
