#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
from dataclasses import replace
from pathlib import Path

import pandas as pd
from rich.markup import escape

from visits_forecasting.config import ProjectConfig
from visits_forecasting.console import console, print_table
from visits_forecasting.data import load_hourly_visits, split_train_future
from visits_forecasting.figures import accuracy_bars, forecast_vs_observed
from visits_forecasting.metrics import accuracy_table, rank_models
from visits_forecasting.modeling import BASE_MODELS, MODEL_LABELS, build_models
from visits_forecasting.prediction import attach_actuals, fit_models, forecast_models, model_reports
from visits_forecasting.viz_utils import save_plotly


def main() -> None:
    d = ProjectConfig()
    ap = argparse.ArgumentParser(description='Fit all models on the training window, forecast, score and plot.')
    ap.add_argument('--data', type=str, default=str(d.data_path))
    ap.add_argument('--figdir', type=str, default=str(d.figures_dir / 'forecast'))
    ap.add_argument('--tabledir', type=str, default=str(d.tables_dir))
    ap.add_argument('--train-start', type=str, default=str(d.train_start))
    ap.add_argument('--train-end', type=str, default=str(d.train_end))
    ap.add_argument('--horizon-hours', type=int, default=d.horizon_hours)
    ap.add_argument('--models', type=str, nargs='+', default=list(d.model_names), help=f'Base models to fit. Choices: {list(BASE_MODELS)}')
    ap.add_argument('--periods', type=int, nargs='+', default=list(d.seasonal_periods), help='STL seasonal periods (hours).')
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
    ap.add_argument('--sort-by', type=str, default='RMSE', help='Accuracy column to rank models by (ascending).')
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
        horizon_hours=args.horizon_hours,
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
    train, future = split_train_future(series, cfg.train_start, cfg.train_end, cfg.horizon_hours)
    console.print(f'[dim]Train/Future hours:[/dim] {len(train):,} / {len(future):,}')
    if future.empty:
        console.print('[yellow]No observations after the training window; accuracy will be empty.[/yellow]')

    fitted, failures = fit_models(train, build_models(cfg, names=cfg.model_names))
    if not fitted:
        raise SystemExit('Every model failed to fit.')

    reports = model_reports(fitted, failures)
    for name, rep in reports.items():
        console.print(f"[bold]{MODEL_LABELS.get(name, name)}[/bold]  {escape(str(rep.get('model', rep.get('notes', ''))))}")

    fc = forecast_models(fitted, cfg.horizon_hours)
    acc = accuracy_table(fc, series, by=('model',), train=train, period=cfg.snaive_lag)

    outputs = []
    tabledir.mkdir(parents=True, exist_ok=True)

    fc_out = tabledir / 'forecasts.csv'
    attach_actuals(fc, series).to_csv(fc_out, index=False)
    outputs.append(fc_out)

    rep_out = tabledir / 'model_reports.json'
    rep_out.write_text(json.dumps(reports, indent=2, default=str), encoding='utf-8')
    outputs.append(rep_out)

    if not acc.empty:
        for metric in ('RMSE', 'MAE'):
            ranked = rank_models(acc, metric, labels=MODEL_LABELS)
            print_table(ranked[['model', 'label', 'RMSE', 'MAE']], title=f'Accuracy, sorted by {metric}')

        sort_by = args.sort_by if args.sort_by in acc.columns else 'RMSE'
        acc_out = tabledir / 'accuracy.csv'
        rank_models(acc, sort_by, labels=MODEL_LABELS).to_csv(acc_out, index=False)
        outputs.append(acc_out)

        outputs += save_plotly(accuracy_bars(acc), figdir, 'acc_bar', image_format, width=900, height=700)

    for name, g in fc.groupby('model', sort=False):
        label = MODEL_LABELS.get(name, name)
        pred = pd.Series(g['forecast'].to_numpy(), index=pd.DatetimeIndex(g['time']), name='forecast')
        fig = forecast_vs_observed(future, pred, label)
        outputs += save_plotly(fig, figdir, f'results_{label}', image_format, width=1050, height=750)

    for p in outputs:
        print(f'Wrote: {p}')


if __name__ == '__main__':
    main()
