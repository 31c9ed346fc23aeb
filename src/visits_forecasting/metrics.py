from __future__ import annotations

from typing import Dict, Optional, Sequence

import numpy as np
import pandas as pd


def me(y, yhat) -> float:
    y = np.asarray(y, dtype=float)
    yhat = np.asarray(yhat, dtype=float)
    return float(np.mean(y - yhat))


def rmse(y, yhat) -> float:
    y = np.asarray(y, dtype=float)
    yhat = np.asarray(yhat, dtype=float)
    return float(np.sqrt(np.mean((y - yhat) ** 2)))


def mae(y, yhat) -> float:
    y = np.asarray(y, dtype=float)
    yhat = np.asarray(yhat, dtype=float)
    return float(np.mean(np.abs(y - yhat)))


def mpe(y, yhat, eps: float = 1e-9) -> float:
    y = np.asarray(y, dtype=float)
    yhat = np.asarray(yhat, dtype=float)
    denom = np.where(np.abs(y) < eps, np.nan, y)
    return float(np.nanmean((y - yhat) / denom) * 100.0)


def mape(y, yhat, eps: float = 1e-9) -> float:
    y = np.asarray(y, dtype=float)
    yhat = np.asarray(yhat, dtype=float)
    denom = np.maximum(np.abs(y), eps)
    return float(np.mean(np.abs((y - yhat) / denom)) * 100.0)


def smape(y, yhat, eps: float = 1e-9) -> float:
    y = np.asarray(y, dtype=float)
    yhat = np.asarray(yhat, dtype=float)
    denom = np.maximum(np.abs(y) + np.abs(yhat), eps)
    return float(np.mean(2.0 * np.abs(yhat - y) / denom) * 100.0)


def acf1(y, yhat) -> float:
    """Lag-1 autocorrelation of the forecast errors."""
    e = np.asarray(y, dtype=float) - np.asarray(yhat, dtype=float)
    if e.size < 2:
        return float('nan')
    e = e - e.mean()
    denom = float(np.sum(e ** 2))
    if denom == 0.0:
        return float('nan')
    return float(np.sum(e[1:] * e[:-1]) / denom)


def naive_scale(train, period: int = 24, power: int = 1) -> float:
    """Mean in-sample seasonal-naive error, |e| (power=1) or e^2 (power=2)."""
    x = np.asarray(train, dtype=float)
    if x.size <= period:
        return float('nan')
    d = x[period:] - x[:-period]
    return float(np.mean(np.abs(d) ** power))


def mase(y, yhat, train, period: int = 24) -> float:
    scale = naive_scale(train, period=period, power=1)
    if not np.isfinite(scale) or scale == 0.0:
        return float('nan')
    return mae(y, yhat) / scale


def rmsse(y, yhat, train, period: int = 24) -> float:
    scale = naive_scale(train, period=period, power=2)
    if not np.isfinite(scale) or scale == 0.0:
        return float('nan')
    y = np.asarray(y, dtype=float)
    yhat = np.asarray(yhat, dtype=float)
    return float(np.sqrt(np.mean((y - yhat) ** 2) / scale))


def join_actuals(forecasts: pd.DataFrame, actual: pd.Series, how: str = 'inner') -> pd.DataFrame:
    """Merge observations onto a tidy forecast table as an ``actual`` column, keyed on ``time``."""
    obs = pd.DataFrame({
        'time': pd.DatetimeIndex(actual.index).as_unit('ns'),
        'actual': np.asarray(actual, dtype=float),
    })
    fc = forecasts.copy()
    fc['time'] = pd.DatetimeIndex(fc['time']).as_unit('ns')
    return fc.merge(obs, on='time', how=how)


def score_block(y, yhat, train=None, period: int = 24) -> Dict[str, float]:
    """The accuracy measures reported for one group of forecasts."""
    out = {
        'ME': me(y, yhat),
        'RMSE': rmse(y, yhat),
        'MAE': mae(y, yhat),
        'MPE': mpe(y, yhat),
        'MAPE': mape(y, yhat),
    }
    if train is not None:
        out['MASE'] = mase(y, yhat, train, period=period)
        out['RMSSE'] = rmsse(y, yhat, train, period=period)
    out['ACF1'] = acf1(y, yhat)
    out['n'] = int(np.asarray(y).size)
    return out


def accuracy_table(
    forecasts: pd.DataFrame,
    actual: pd.Series,
    by: Sequence[str] = ('model',),
    train: Optional[pd.Series] = None,
    period: int = 24,
    value_col: str = 'forecast',
) -> pd.DataFrame:
    """Score a tidy forecast table against observations.

    Forecasts are matched to ``actual`` on ``time``; forecasts falling outside the
    observed range are dropped. Within each ``by`` group, errors are taken in time
    order so ACF1 is meaningful.
    """
    required = ['time', value_col] + list(by)
    for c in required:
        if c not in forecasts.columns:
            raise ValueError(f'Missing required column: {c}')

    df = join_actuals(forecasts, actual, how='inner')
    df = df.dropna(subset=['actual', value_col])

    rows = []
    for key, g in df.groupby(list(by), sort=True):
        key = key if isinstance(key, tuple) else (key,)
        g = g.sort_values('time')
        rows.append({
            **dict(zip(by, key)),
            **score_block(g['actual'], g[value_col], train=train, period=period),
        })

    return pd.DataFrame(rows)


def rank_models(acc: pd.DataFrame, metric: str = 'RMSE', labels: Optional[Dict[str, str]] = None) -> pd.DataFrame:
    """Sort an accuracy table ascending by ``metric`` and attach display labels."""
    if metric not in acc.columns:
        raise ValueError(f'Missing required column: {metric}')
    out = acc.sort_values(metric, ascending=True, na_position='last').reset_index(drop=True)
    if labels is not None and 'model' in out.columns:
        out.insert(1, 'label', out['model'].map(lambda m: labels.get(m, m)))
    return out
