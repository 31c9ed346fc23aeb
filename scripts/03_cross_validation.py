#!/usr/bin/env python3
from __future__ import annotations

import argparse
from dataclasses import replace
from pathlib import Path

import pandas as pd

from visits_forecasting.backtest import (
    first_days_accuracy,
    fold_summary,
    horizon_accuracy,
    monthly_accuracy,
    rolling_origin_forecasts,
)
from visits_forecasting.config import ProjectConfig
from visits_forecasting.console import console, print_table
from visits_forecasting.data import load_hourly_visits
from visits_forecasting.figures import horizon_accuracy_plot, month_boxplot
from visits_forecasting.metrics import rank_models
from visits_forecasting.modeling import BASE_MODELS, MODEL_LABELS
from visits_forecasting.viz_utils import save_plotly


def main() -> None:
    d = ProjectConfig()
    ap = argparse.ArgumentParser(description='Rolling-origin cross-validation: accuracy by horizon day, by month and over the first days.')
    ap.add_argument('--data', type=str, default=str(d.data_path))
    ap.add_argument('--figdir', type=str, default=str(d.figures_dir / 'cv'))
    ap.add_argument('--tabledir', type=str, default=str(d.tables_dir / 'cv'))
    ap.add_argument('--train-start', type=str, default=str(d.train_start))
    ap.add_argument('--train-end', type=str, default=str(d.train_end))
    ap.add_argument('--init-hours', type=int, default=d.cv_init_hours)
    ap.add_argument('--step-hours', type=int, default=d.cv_step_hours)
    ap.add_argument('--horizon-hours', type=int, default=d.cv_horizon_hours)
    ap.add_argument('--max-day', type=int, default=d.cv_max_day)
    ap.add_argument('--first-days', type=int, default=d.cv_first_days)
    ap.add_argument('--models', type=str, nargs='+', default=list(d.model_names), help=f'Base models. Choices: {list(BASE_MODELS)}')
    ap.add_argument('--periods', type=int, nargs='+', default=list(d.seasonal_periods))
    ap.add_argument('--max-p', type=int, default=d.max_p)
    ap.add_argument('--max-q', type=int, default=d.max_q)
    ap.add_argument('--max-P', type=int, default=d.max_P)
    ap.add_argument('--max-Q', type=int, default=d.max_Q)
    ap.add_argument('--max-d', type=int, default=d.max_d)
    ap.add_argument('--max-D', type=int, default=d.max_D)
    ap.add_argument('--arima-period', type=int, default=d.arima_period, help='Seasonal period (hours) for SARIMA and NNAR.')
    ap.add_argument('--snaive-lag', type=int, default=d.snaive_lag)
    ap.add_argument('--nnar-repeats', type=int, default=d.nnar_repeats)
    ap.add_argument('--nnar-seasonal-lags', type=int, default=d.nnar_seasonal_lags)
    ap.add_argument('--nnar-max-iter', type=int, default=d.nnar_max_iter)
    ap.add_argument('--seed', type=int, default=d.seed)
    ap.add_argument('--image-format', type=str, default=d.image_format)
    ap.add_argument('--no-images', action='store_true')
    args = ap.parse_args()

    unknown = [m for m in args.models if m not in BASE_MODELS]
    if unknown:
        raise SystemExit(f"Unknown model(s) {unknown}. Available: {list(BASE_MODELS)}")

    cfg = replace(
        d,
        data_path=Path(args.data),
        train_start=pd.Timestamp(args.train_start),
        train_end=pd.Timestamp(args.train_end),
        cv_init_hours=args.init_hours,
        cv_step_hours=args.step_hours,
        cv_horizon_hours=args.horizon_hours,
        cv_max_day=args.max_day,
        cv_first_days=args.first_days,
        seasonal_periods=tuple(args.periods),
        max_p=args.max_p,
        max_q=args.max_q,
        max_P=args.max_P,
        max_Q=args.max_Q,
        max_d=args.max_d,
        max_D=args.max_D,
        arima_period=args.arima_period,
        snaive_lag=args.snaive_lag,
        nnar_repeats=args.nnar_repeats,
        nnar_seasonal_lags=args.nnar_seasonal_lags,
        nnar_max_iter=args.nnar_max_iter,
        seed=args.seed,
        model_names=tuple(args.models),
    )
    figdir = Path(args.figdir)
    tabledir = Path(args.tabledir)
    image_format = None if args.no_images else args.image_format

    series = load_hourly_visits(cfg.data_path)

    try:
        fc = rolling_origin_forecasts(series, cfg, model_names=cfg.model_names)
    except ValueError as e:
        raise SystemExit(str(e))
    if fc.empty:
        raise SystemExit('No fold produced forecasts.')
    console.print(f"[dim]Folds:[/dim] {fc['fold'].nunique()}  |  [dim]Models:[/dim] {fc['model'].nunique()}")

    tabledir.mkdir(parents=True, exist_ok=True)
    outputs = []

    fc_out = tabledir / 'cv_forecasts.csv.gz'
    fc.to_csv(fc_out, index=False, compression='gzip')
    outputs.append(fc_out)

    folds = fold_summary(fc, series)
    folds_out = tabledir / 'cv_folds.csv'
    folds.to_csv(folds_out, index=False)
    outputs.append(folds_out)

    by_h = horizon_accuracy(fc, series, max_day=cfg.cv_max_day)
    h_out = tabledir / 'cv_horizon_accuracy.csv'
    by_h.to_csv(h_out, index=False)
    outputs.append(h_out)

    by_month = monthly_accuracy(fc, series)
    m_out = tabledir / 'cv_month_accuracy.csv'
    by_month.to_csv(m_out, index=False)
    outputs.append(m_out)

    first = first_days_accuracy(fc, series, days=cfg.cv_first_days)
    first_out = tabledir / f'cv_first_{cfg.cv_first_days}_days_accuracy.csv'
    outputs.append(first_out)

    if not first.empty:
        ranked = rank_models(first, 'RMSE', labels=MODEL_LABELS)
        ranked.to_csv(first_out, index=False)
        print_table(ranked[['model', 'label', 'MAE', 'RMSE']], title=f'Accuracy over the first {cfg.cv_first_days} days')
    else:
        first.to_csv(first_out, index=False)

    if not by_h.empty:
        outputs += save_plotly(horizon_accuracy_plot(by_h, 'MAE'), figdir, 'cv_mae', image_format)
        outputs += save_plotly(horizon_accuracy_plot(by_h, 'RMSE'), figdir, 'cv_rmse', image_format)
    if not by_month.empty:
        outputs += save_plotly(month_boxplot(by_month, 'RMSE'), figdir, 'month_rmse_boxplot', image_format)
        outputs += save_plotly(month_boxplot(by_month, 'MAE'), figdir, 'month_mae_boxplot', image_format)

    for p in outputs:
        print(f'Wrote: {p}')


if __name__ == '__main__':
    main()
