from __future__ import annotations

import time
from typing import Dict, Optional, Tuple

import numpy as np
import pandas as pd

from rich.console import Console
from rich.markup import escape
from rich.progress import Progress, SpinnerColumn, TextColumn, BarColumn, TimeElapsedColumn

from .console import console as default_console
from .metrics import join_actuals
from .modeling import Forecaster, available_combinations, combine_forecasts


def fit_models(
    train: pd.Series,
    models: Dict[str, Forecaster],
    console: Optional[Console] = None,
    show_progress: bool = True,
) -> Tuple[Dict[str, Forecaster], Dict[str, str]]:
    """
    Fit every model on ``train``.

    A model that raises is recorded in the returned failures mapping
    (``FAILED: <Type>: <message>``) and left out of the fitted set, so one bad fit
    doesn't sink the rest of the run.
    """
    console = console or default_console
    fitted: Dict[str, Forecaster] = {}
    failures: Dict[str, str] = {}

    progress = Progress(
        SpinnerColumn(),
        TextColumn("[bold]{task.description}[/bold]"),
        BarColumn(),
        TextColumn("{task.completed}/{task.total}"),
        TimeElapsedColumn(),
        console=console,
        disable=not show_progress,
    )

    with progress:
        t_models = progress.add_task("Models", total=len(models))
        for name, mdl in models.items():
            try:
                # rich allows one live display at a time, so the spinner text rides on the task
                progress.update(t_models, description=f"Fitting {name}")
                t0 = time.perf_counter()
                mdl.fit(train)
                fit_s = time.perf_counter() - t0
                fitted[name] = mdl
                if show_progress:
                    console.print(f"[green]✓[/green] {name}  [dim]fit[/dim] {fit_s:.2f}s")
            except Exception as e:
                failures[name] = f"FAILED: {type(e).__name__}: {e}"
                console.print(f"[red]✗[/red] {name}  {type(e).__name__}: {escape(str(e))}")

            progress.update(t_models, advance=1, description="Models")

    return fitted, failures


def forecast_models(
    fitted: Dict[str, Forecaster],
    h: int,
    with_combinations: bool = True,
) -> pd.DataFrame:
    """Tidy forecasts (model, time, step, forecast) for every fitted model plus the available combinations."""
    frames = []
    for name, mdl in fitted.items():
        fc = mdl.forecast(h)
        frames.append(pd.DataFrame({
            'model': name,
            'time': fc.index,
            'step': np.arange(1, h + 1),
            'forecast': fc.to_numpy(),
        }))

    if not frames:
        return pd.DataFrame(columns=['model', 'time', 'step', 'forecast'])

    base = pd.concat(frames, ignore_index=True)
    if not with_combinations:
        return base
    return combine_forecasts(base, available_combinations(fitted))


def model_reports(fitted: Dict[str, Forecaster], failures: Optional[Dict[str, str]] = None) -> Dict[str, dict]:
    reports = {name: mdl.report() for name, mdl in fitted.items()}
    for name, msg in (failures or {}).items():
        reports[name] = {'notes': msg}
    return reports


def attach_actuals(fc: pd.DataFrame, actual: pd.Series) -> pd.DataFrame:
    """Left-join observations onto a tidy forecast table as ``actual``."""
    return join_actuals(fc, actual, how='left')
