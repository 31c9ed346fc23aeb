from __future__ import annotations

import numpy as np
import pandas as pd

from statsmodels.tsa.stattools import acf, pacf


SEASON_PERIODS = ('day', 'week', 'year')


def seasonal_profile(series: pd.Series, period: str = 'day') -> pd.DataFrame:
    """Long table for a season plot: one line (``cycle``) per day/week/year, x = hour within it."""
    if period not in SEASON_PERIODS:
        raise ValueError(f"Unknown period '{period}'. Expected one of {SEASON_PERIODS}")

    idx = pd.DatetimeIndex(series.index)
    if period == 'day':
        cycle = idx.normalize()
        position = idx.hour
    elif period == 'week':
        cycle = idx.to_period('W-SUN').start_time
        position = idx.dayofweek * 24 + idx.hour
    else:
        cycle = idx.year
        position = (idx.dayofyear - 1) * 24 + idx.hour

    return pd.DataFrame({
        'time': idx,
        'cycle': np.asarray(cycle),
        'position': np.asarray(position, dtype=int),
        'visits': np.asarray(series, dtype=float),
    })


def autocorrelations(series: pd.Series, lag_max: int = 48) -> pd.DataFrame:
    x = np.asarray(pd.Series(series).dropna(), dtype=float)
    if lag_max < 1:
        raise ValueError('lag_max must be positive')
    if lag_max >= x.size // 2:
        raise ValueError(f'lag_max={lag_max} needs more than {2 * lag_max} observations (got {x.size})')

    r = acf(x, nlags=lag_max, fft=True)
    pr = pacf(x, nlags=lag_max, method='ywm')

    out = pd.DataFrame({
        'lag': np.arange(1, lag_max + 1),
        'acf': r[1:],
        'pacf': pr[1:],
    })
    out.attrs['bound'] = 1.96 / np.sqrt(x.size)
    return out


def seasonal_difference(series: pd.Series, lag: int = 24) -> pd.Series:
    return series.diff(lag).dropna()
