from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Tuple

import pandas as pd


@dataclass(frozen=True)
class ProjectConfig:
    # Paths (repo-relative by default)
    data_path: Path = Path('data/open_hourly_visits.csv')
    figures_dir: Path = Path('reports/figures')
    tables_dir: Path = Path('reports/tables')

    # Windows
    train_start: pd.Timestamp = pd.Timestamp('2020-01-23 00:00')
    train_end: pd.Timestamp = pd.Timestamp('2023-04-23 23:00')
    policy_change: pd.Timestamp = pd.Timestamp('2022-12-19 00:00')
    horizon_hours: int = 24 * 15

    # Seasonality (hours)
    seasonal_periods: Tuple[int, ...] = (24, 24 * 7, 8766)
    arima_period: int = 24
    snaive_lag: int = 24

    # Rolling-origin cross-validation
    cv_init_hours: int = 24 * 827
    cv_step_hours: int = 24 * 30
    cv_horizon_hours: int = 24 * 30
    cv_max_day: int = 30
    cv_first_days: int = 15

    # ARIMA order search limits
    max_p: int = 5
    max_q: int = 5
    max_P: int = 2
    max_Q: int = 2
    max_d: int = 2
    max_D: int = 1

    # NNAR
    nnar_repeats: int = 20
    nnar_seasonal_lags: int = 1
    nnar_max_iter: int = 100

    # Output
    image_format: str = 'png'
    model_names: Tuple[str, ...] = ('snaive', 'sarima', 'nnetar', 'stl_arima')

    # Runtime
    seed: int = 7
