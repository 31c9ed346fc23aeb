from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np
import pandas as pd

from rich.console import Console
from rich.markup import escape
from rich.progress import Progress, SpinnerColumn, TextColumn, BarColumn, TimeElapsedColumn

from .config import ProjectConfig
from .console import console as default_console
from .data import filter_window, stretch_origins
from .metrics import accuracy_table, join_actuals, mae, rmse
from .modeling import available_combinations, build_models, combine_forecasts


@dataclass(frozen=True)
class RollingOriginConfig:
    init_hours: int = 24 * 827
    step_hours: int = 24 * 30
    horizon_hours: int = 24 * 30

    @classmethod
    def from_project(cls, cfg: ProjectConfig) -> 'RollingOriginConfig':
        return cls(
            init_hours=cfg.cv_init_hours,
            step_hours=cfg.cv_step_hours,
            horizon_hours=cfg.cv_horizon_hours,
        )


def rolling_origin_forecasts(
    series: pd.Series,
    cfg: ProjectConfig = ProjectConfig(),
    model_names: Optional[Sequence[str]] = None,
    cv: Optional[RollingOriginConfig] = None,
    console: Optional[Console] = None,
) -> pd.DataFrame:
    """Expanding-window (rolling-origin) forecasts over the training window.

    Fold k trains on the first ``init + (k - 1) * step`` hours of the window and
    forecasts ``horizon`` hours past its end. Forecasts may run beyond the window;
    they are scored wherever observations exist.
    """
    cv = cv or RollingOriginConfig.from_project(cfg)
    console = console or default_console

    window = filter_window(series, cfg.train_start, cfg.train_end)
    lengths = stretch_origins(len(window), cv.init_hours, cv.step_hours)

    progress = Progress(
        SpinnerColumn(),
        TextColumn("[bold]{task.description}[/bold]"),
        BarColumn(),
        TextColumn("{task.completed}/{task.total}"),
        TimeElapsedColumn(),
        console=console,
    )

    frames = []
    with progress:
        t_folds = progress.add_task("Folds", total=len(lengths))
        for fold_i, n_train in enumerate(lengths, start=1):
            train = window.iloc[:n_train]
            models = build_models(cfg, names=model_names)

            for name, mdl in models.items():
                progress.update(t_folds, description=f"Fold {fold_i}: {name}")
                try:
                    fc = mdl.fit(train).forecast(cv.horizon_hours)
                except Exception as e:
                    console.print(f"[red]✗[/red] fold {fold_i} {name}  {type(e).__name__}: {escape(str(e))}")
                    continue

                frames.append(pd.DataFrame({
                    'fold': fold_i,
                    'model': name,
                    'time': fc.index,
                    'step': np.arange(1, cv.horizon_hours + 1),
                    'forecast': fc.to_numpy(),
                    'train_end': train.index[-1],
                }))

            progress.update(t_folds, advance=1, description="Folds")

    if not frames:
        return pd.DataFrame(columns=['fold', 'model', 'time', 'step', 'forecast', 'train_end'])

    base = pd.concat(frames, ignore_index=True)
    combos = available_combinations(base['model'].unique())
    return combine_forecasts(base, combos, by=('fold',))


def add_horizon_day(fc: pd.DataFrame, hours_per_day: int = 24) -> pd.DataFrame:
    """1-based forecast day: steps 1..24 are day 1, 25..48 day 2, and so on.

    The R workflow this replaces bucketed with ``row_number() %/% 24 + 1``, which
    puts step 24 into day 2. Per-day tables therefore differ from its numbers at
    every day boundary.
    """
    out = fc.copy()
    out['h_day'] = (out['step'].astype(int) - 1) // hours_per_day + 1
    return out


def horizon_accuracy(fc: pd.DataFrame, actual: pd.Series, max_day: int = 30, hours_per_day: int = 24) -> pd.DataFrame:
    """Accuracy per (forecast day, model), pooled over folds."""
    df = add_horizon_day(fc, hours_per_day)
    df = df[df['h_day'] <= max_day]
    acc = accuracy_table(df, actual, by=('h_day', 'model'))
    return acc.sort_values(['model', 'h_day']).reset_index(drop=True)


def monthly_accuracy(fc: pd.DataFrame, actual: pd.Series) -> pd.DataFrame:
    """Accuracy per (calendar month of the forecast target, model)."""
    df = fc.copy()
    df['month'] = pd.DatetimeIndex(df['time']).month
    return accuracy_table(df, actual, by=('month', 'model'))


def first_days_accuracy(fc: pd.DataFrame, actual: pd.Series, days: int = 15, hours_per_day: int = 24) -> pd.DataFrame:
    """Per-model accuracy over the first ``days`` forecast days of every fold."""
    df = add_horizon_day(fc, hours_per_day)
    df = df[df['h_day'] <= days]
    return accuracy_table(df, actual, by=('model',))


def fold_summary(fc: pd.DataFrame, actual: pd.Series) -> pd.DataFrame:
    """RMSE/MAE per fold and model, with the fold's training cut-off."""
    df = join_actuals(fc, actual, how='inner').dropna(subset=['actual', 'forecast'])

    rows = []
    for (fold, model), g in df.groupby(['fold', 'model'], sort=True):
        rows.append({
            'fold': int(fold),
            'model': model,
            'train_end': g['train_end'].iloc[0] if 'train_end' in g.columns else pd.NaT,
            'rows_test': int(len(g)),
            'RMSE': rmse(g['actual'], g['forecast']),
            'MAE': mae(g['actual'], g['forecast']),
        })
    return pd.DataFrame(rows)
