from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Tuple

import numpy as np
import pandas as pd

from .console import warn


def load_hourly_visits(path: Path, time_col: str = 'time', value_col: str = 'visits') -> pd.Series:
    """Read the hourly visits CSV into a regular hourly series.

    Leading unnamed index columns (``write.csv`` / ``to_csv`` artefacts) are ignored.
    Gaps in the hourly grid are interpolated in time and reported.
    """
    df = pd.read_csv(path)
    df = df.loc[:, [c for c in df.columns if not str(c).startswith('Unnamed') and not str(c).startswith('...')]]

    for c in (time_col, value_col):
        if c not in df.columns:
            raise ValueError(f'Missing required column: {c}')

    df[time_col] = pd.to_datetime(df[time_col], errors='coerce')
    df[value_col] = pd.to_numeric(df[value_col], errors='coerce')
    df = df.dropna(subset=[time_col]).sort_values(time_col).reset_index(drop=True)

    if df.empty:
        raise ValueError(f'No rows with a parseable {time_col!r} in {path}')

    dup = df[time_col].duplicated()
    if dup.any():
        raise ValueError(f'Duplicate timestamps in {path}: {df.loc[dup, time_col].iloc[0]}')

    s = pd.Series(df[value_col].to_numpy(dtype=float), index=pd.DatetimeIndex(df[time_col]), name=value_col)
    return to_hourly(s)


def to_hourly(series: pd.Series) -> pd.Series:
    """Reindex onto a complete hourly grid, interpolating any holes."""
    s = series.sort_index()
    idx = pd.date_range(s.index.min(), s.index.max(), freq='h', name='time')
    s = s.reindex(idx)

    n_missing = int(s.isna().sum())
    if n_missing:
        warn(f'{n_missing} missing hourly values filled by interpolation')
        s = s.interpolate(method='time').bfill().ffill()

    s.name = series.name or 'visits'
    return s


def filter_window(series: pd.Series, start: pd.Timestamp, end: pd.Timestamp) -> pd.Series:
    start = pd.Timestamp(start)
    end = pd.Timestamp(end)
    if end < start:
        raise ValueError(f'Window end {end} is before start {start}')
    return series[(series.index >= start) & (series.index <= end)].copy()


def split_train_future(
    series: pd.Series,
    train_start: pd.Timestamp,
    train_end: pd.Timestamp,
    horizon: int,
) -> Tuple[pd.Series, pd.Series]:
    """Training window plus the ``horizon`` hours that follow it."""
    if horizon < 1:
        raise ValueError('horizon must be positive')

    train = filter_window(series, train_start, train_end)
    if train.empty:
        raise ValueError(f'No observations between {train_start} and {train_end}')

    future_begin = train.index[-1] + pd.Timedelta(hours=1)
    future_end = train.index[-1] + pd.Timedelta(hours=horizon)
    future = filter_window(series, future_begin, future_end)
    return train, future


def stretch_origins(n: int, init: int, step: int) -> List[int]:
    """Lengths of expanding training windows: init, init + step, ... up to n."""
    if step < 1:
        raise ValueError('step must be positive')
    if init < 1 or init > n:
        raise ValueError(f'init={init} must be within 1..{n}')
    return list(range(init, n + 1, step))


def policy_change_time(series: pd.Series, when: pd.Timestamp) -> Optional[pd.Timestamp]:
    when = pd.Timestamp(when)
    return when if when in series.index else None


def future_index(last: pd.Timestamp, h: int) -> pd.DatetimeIndex:
    return pd.date_range(pd.Timestamp(last) + pd.Timedelta(hours=1), periods=h, freq='h', name='time')


def make_synthetic_visits(
    start: str = '2022-01-01',
    hours: int = 24 * 7 * 8,
    level: float = 200.0,
    seed: int = 7,
) -> pd.Series:
    """Hourly series with daily and weekly cycles, used for demos and tests."""
    rng = np.random.default_rng(seed)
    t = np.arange(hours)
    daily = 60.0 * np.sin(2 * np.pi * t / 24)
    weekly = 25.0 * np.sin(2 * np.pi * t / (24 * 7))
    trend = 0.02 * t
    noise = rng.normal(0.0, 5.0, size=hours)
    idx = pd.date_range(start, periods=hours, freq='h', name='time')
    return pd.Series(level + trend + daily + weekly + noise, index=idx, name='visits')
