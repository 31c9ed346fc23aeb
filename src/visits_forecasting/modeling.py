from __future__ import annotations

import math
import warnings
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

import pmdarima as pm
from sklearn.exceptions import ConvergenceWarning as SkConvergenceWarning
from sklearn.neural_network import MLPRegressor
from statsmodels.tsa.ar_model import ar_select_order
from statsmodels.tsa.seasonal import MSTL, STL

from .config import ProjectConfig
from .data import future_index


MODEL_LABELS: Dict[str, str] = {
    'snaive': 'SNaïve',
    'sarima': 'SARIMA',
    'nnetar': 'NNAR',
    'stl_arima': 'STLF',
    'combination_1': 'Hybrid SARIMA-STLF',
    'combination_2': 'Hybrid NNAR-STLF',
    'combination_3': 'Hybrid SARIMA-NNAR',
    'combination_4': 'Hybrid SARIMA-NNAR-STLF',
}

BASE_MODELS: Tuple[str, ...] = ('snaive', 'sarima', 'nnetar', 'stl_arima')

COMBINATIONS: Dict[str, Tuple[str, ...]] = {
    'combination_1': ('stl_arima', 'sarima'),
    'combination_2': ('stl_arima', 'nnetar'),
    'combination_3': ('sarima', 'nnetar'),
    'combination_4': ('nnetar', 'sarima', 'stl_arima'),
}

# seasonal-strength threshold above which one seasonal difference is taken
SEASONAL_STRENGTH_THRESHOLD = 0.64


def model_label(name: str) -> str:
    return MODEL_LABELS.get(name, name)


# -------------------------
# Forecaster interface
# -------------------------

class Forecaster:
    """fit(y) on an hourly series, then forecast(h) the next h hours."""

    def __init__(self) -> None:
        self._last: Optional[pd.Timestamp] = None
        self._n: int = 0

    @property
    def is_fitted(self) -> bool:
        return self._last is not None

    def _start_fit(self, y: pd.Series) -> np.ndarray:
        if not isinstance(y, pd.Series) or not isinstance(y.index, pd.DatetimeIndex):
            raise ValueError('Expected a pandas Series with a DatetimeIndex')
        x = np.asarray(y, dtype=float)
        if x.size == 0:
            raise ValueError('Cannot fit on an empty series')
        if np.isnan(x).any():
            raise ValueError('Series contains missing values')
        self._last = y.index[-1]
        self._n = int(x.size)
        return x

    def _check_forecast(self, h: int) -> pd.DatetimeIndex:
        if not self.is_fitted:
            raise RuntimeError(f'{type(self).__name__} must be fitted before forecasting')
        if h < 1:
            raise ValueError('h must be positive')
        return future_index(self._last, h)

    def fit(self, y: pd.Series) -> 'Forecaster':
        raise NotImplementedError

    def forecast(self, h: int) -> pd.Series:
        raise NotImplementedError

    def report(self) -> dict:
        return {}


class SeasonalNaive(Forecaster):
    def __init__(self, lag: int = 24) -> None:
        super().__init__()
        if lag < 1:
            raise ValueError('lag must be positive')
        self.lag = int(lag)
        self._tail: Optional[np.ndarray] = None
        self._sigma2: float = float('nan')

    def fit(self, y: pd.Series) -> 'SeasonalNaive':
        x = self._start_fit(y)
        if x.size < self.lag:
            raise ValueError(f'Need at least {self.lag} observations for a lag-{self.lag} seasonal naive')
        self._tail = x[-self.lag:].copy()
        if x.size > self.lag:
            d = x[self.lag:] - x[:-self.lag]
            self._sigma2 = float(np.mean(d ** 2))
        return self

    def forecast(self, h: int) -> pd.Series:
        idx = self._check_forecast(h)
        steps = np.arange(1, h + 1)
        # position inside the last observed cycle
        pos = (steps - 1) % self.lag
        return pd.Series(self._tail[pos], index=idx, name='forecast')

    def report(self) -> dict:
        return {'model': f'SNAIVE[lag={self.lag}]', 'lag': self.lag, 'sigma2': self._sigma2, 'n_obs': self._n}


# -------------------------
# Seasonality helpers
# -------------------------

def usable_periods(n: int, periods: Iterable[int]) -> Tuple[int, ...]:
    """Seasonal periods that fit at least two full cycles into n observations."""
    return tuple(sorted({int(p) for p in periods if int(p) > 1 and 2 * int(p) < n}))


def seasonal_strength(series, period: int) -> float:
    """1 - Var(remainder) / Var(season + remainder) from a robust STL fit, clipped to [0, 1]."""
    x = np.asarray(series, dtype=float)
    if period < 2 or x.size <= 2 * period:
        return 0.0
    res = STL(x, period=period, robust=True).fit()
    detrended = res.seasonal + res.resid
    v = float(np.var(detrended))
    if v == 0.0:
        return 0.0
    return float(min(1.0, max(0.0, 1.0 - np.var(res.resid) / v)))


def decompose(series: pd.Series, periods: Sequence[int], robust: bool = True) -> pd.DataFrame:
    """Multi-seasonal STL decomposition.

    Returns ``trend``, one ``season_<period>`` column per usable period, ``remainder``
    and ``season_adjust`` (series minus all seasonal components). Periods that do
    not fit two full cycles into the series are dropped.
    """
    y = np.asarray(series, dtype=float)
    use = usable_periods(y.size, periods)
    if not use:
        raise ValueError(f'Series of length {y.size} is too short for any of the periods {tuple(periods)}')

    if len(use) == 1:
        res = STL(y, period=use[0], robust=robust).fit()
        seasonal = np.asarray(res.seasonal).reshape(-1, 1)
    else:
        res = MSTL(y, periods=use, stl_kwargs={'robust': robust}).fit()
        seasonal = np.asarray(res.seasonal).reshape(y.size, -1)

    out = pd.DataFrame(index=series.index)
    out['trend'] = np.asarray(res.trend)
    for j, p in enumerate(use):
        out[f'season_{p}'] = seasonal[:, j]
    out['remainder'] = np.asarray(res.resid)
    out['season_adjust'] = y - seasonal.sum(axis=1)
    return out


def nsdiffs_strength(x, period: int, max_D: int = 1) -> int:
    if max_D < 1 or period < 2:
        return 0
    return min(max_D, int(seasonal_strength(x, period) > SEASONAL_STRENGTH_THRESHOLD))


# -------------------------
# ARIMA
# -------------------------

class AutoARIMA(Forecaster):
    """Seasonal ARIMA chosen by pmdarima's stepwise AICc search.

    D comes from the STL seasonal-strength rule, d from KPSS tests on the
    seasonally differenced series. A constant is allowed while d + D <= 1;
    SARIMAX applies it to the differenced series, so with one difference it is
    a drift.
    """

    def __init__(
        self,
        period: int = 24,
        seasonal: bool = True,
        max_p: int = 5,
        max_q: int = 5,
        max_P: int = 2,
        max_Q: int = 2,
        max_d: int = 2,
        max_D: int = 1,
        maxiter: int = 50,
    ) -> None:
        super().__init__()
        self.period = int(period)
        self.seasonal = seasonal
        self.max_p = max_p
        self.max_q = max_q
        self.max_P = max_P
        self.max_Q = max_Q
        self.max_d = max_d
        self.max_D = max_D
        self.maxiter = maxiter

        self.order: Optional[Tuple[int, int, int]] = None
        self.seasonal_order: Optional[Tuple[int, int, int, int]] = None
        self.constant: bool = False
        self._model = None

    def fit(self, y: pd.Series) -> 'AutoARIMA':
        x = self._start_fit(y)

        seasonal = self.seasonal and self.period > 1 and x.size > 2 * self.period
        D = nsdiffs_strength(x, self.period, self.max_D) if seasonal else 0

        try:
            model = pm.auto_arima(
                x,
                seasonal=seasonal,
                m=self.period if seasonal else 1,
                D=D,
                test='kpss',
                alpha=0.05,
                max_d=self.max_d,
                max_p=self.max_p,
                max_q=self.max_q,
                max_P=self.max_P if seasonal else 0,
                max_Q=self.max_Q if seasonal else 0,
                max_order=None,
                information_criterion='aicc',
                with_intercept='auto',
                stepwise=True,
                maxiter=self.maxiter,
                error_action='ignore',
                suppress_warnings=True,
                # filter-only fits: no smoothed state covariances kept per candidate
                low_memory=True,
            )
        except ValueError as e:
            raise RuntimeError(f'No ARIMA candidate could be fitted: {e}') from e

        P, D, Q, s = model.seasonal_order if seasonal else (0, 0, 0, 0)
        self.order = tuple(int(v) for v in model.order)
        self.seasonal_order = (int(P), int(D), int(Q), int(s) if seasonal else 0)
        self.constant = 'intercept' in model.arima_res_.model.param_names
        self._model = model
        return self

    def forecast(self, h: int) -> pd.Series:
        idx = self._check_forecast(h)
        values = np.asarray(self._model.predict(n_periods=h), dtype=float)
        return pd.Series(values, index=idx, name='forecast')

    def report(self) -> dict:
        if self._model is None:
            return {}
        res = self._model.arima_res_
        p, d, q = self.order
        P, D, Q, s = self.seasonal_order
        label = f'ARIMA({p},{d},{q})'
        if s:
            label += f'({P},{D},{Q})[{s}]'
        if self.constant:
            label += ' w/ ' + ('mean' if d + D == 0 else 'drift')
        params = dict(zip(res.model.param_names, np.asarray(res.params, dtype=float).tolist()))
        return {
            'model': label,
            'order': list(self.order),
            'seasonal_order': list(self.seasonal_order),
            'constant': self.constant,
            'coef': {k: v for k, v in params.items() if k != 'sigma2'},
            'sigma2': params.get('sigma2', float('nan')),
            'aic': float(res.aic),
            'aicc': float(res.aicc),
            'bic': float(res.bic),
            'log_likelihood': float(res.llf),
            'n_obs': self._n,
        }


# -------------------------
# Neural network autoregression
# -------------------------

def select_ar_order(x, period: int = 24, max_lag: Optional[int] = None) -> int:
    """AIC-optimal linear AR order of the seasonally adjusted series (at least 1)."""
    x = np.asarray(x, dtype=float)
    if period > 1 and x.size > 2 * period:
        res = STL(x, period=period, robust=True).fit()
        x = x - res.seasonal
    if max_lag is None:
        max_lag = int(10 * math.log10(max(x.size, 10)))
    max_lag = max(1, min(max_lag, x.size // 2 - 1))
    sel = ar_select_order(x, maxlag=max_lag, ic='aic', trend='c')
    lags = sel.ar_lags or []
    return max(len(lags), 1)


class NNAR(Forecaster):
    """Averaged single-hidden-layer networks on lagged, standardised values."""

    def __init__(
        self,
        period: int = 24,
        p: Optional[int] = None,
        P: int = 1,
        size: Optional[int] = None,
        repeats: int = 20,
        decay: float = 1e-4,
        max_iter: int = 100,
        seed: int = 7,
    ) -> None:
        super().__init__()
        self.period = int(period)
        self.p = p
        self.P = P
        self.size = size
        self.repeats = repeats
        self.decay = decay
        self.max_iter = max_iter
        self.seed = seed

        self.lags: List[int] = []
        self._nets: List[MLPRegressor] = []
        self._history: List[float] = []
        self._loc = 0.0
        self._scale = 1.0
        self._sigma2 = float('nan')

    def fit(self, y: pd.Series) -> 'NNAR':
        x = self._start_fit(y)

        P = self.P if self.period > 1 and x.size > self.period * self.P + 2 else 0
        p = self.p if self.p is not None else select_ar_order(x, period=self.period)
        lags = list(range(1, p + 1))
        lags += [self.period * i for i in range(1, P + 1) if self.period * i not in lags]
        size = self.size if self.size is not None else max(1, round((p + P + 1) / 2))

        max_lag = max(lags)
        if x.size <= max_lag + 1:
            raise ValueError(f'Need more than {max_lag + 1} observations for lags {lags}')

        self._loc = float(np.mean(x))
        self._scale = float(np.std(x)) or 1.0
        z = (x - self._loc) / self._scale

        X = np.column_stack([z[max_lag - lag: x.size - lag] for lag in lags])
        target = z[max_lag:]

        nets = []
        with warnings.catch_warnings():
            warnings.simplefilter('ignore', category=SkConvergenceWarning)
            for i in range(self.repeats):
                net = MLPRegressor(
                    hidden_layer_sizes=(size,),
                    activation='logistic',
                    solver='lbfgs',
                    alpha=self.decay,
                    max_iter=self.max_iter,
                    random_state=self.seed + i,
                )
                nets.append(net.fit(X, target))

        fitted = np.mean([net.predict(X) for net in nets], axis=0)
        self._sigma2 = float(np.mean(((target - fitted) * self._scale) ** 2))

        self.lags = lags
        self.size = size
        self._p, self._P = p, P
        self._nets = nets
        self._history = z[-max_lag:].tolist()
        return self

    def forecast(self, h: int) -> pd.Series:
        idx = self._check_forecast(h)
        hist = list(self._history)
        out = np.empty(h)
        for i in range(h):
            row = np.array([[hist[-lag] for lag in self.lags]])
            zhat = float(np.mean([net.predict(row)[0] for net in self._nets]))
            hist.append(zhat)
            out[i] = zhat
        return pd.Series(out * self._scale + self._loc, index=idx, name='forecast')

    def report(self) -> dict:
        if not self._nets:
            return {}
        return {
            'model': f'NNAR({self._p},{self._P},{self.size})[{self.period}]',
            'lags': self.lags,
            'hidden_units': self.size,
            'repeats': len(self._nets),
            'weights_per_net': int(sum(c.size for c in self._nets[0].coefs_) + sum(b.size for b in self._nets[0].intercepts_)),
            'sigma2': self._sigma2,
            'n_obs': self._n,
        }


# -------------------------
# STL decomposition + ARIMA
# -------------------------

class STLARIMA(Forecaster):
    """Non-seasonal ARIMA on the seasonally adjusted series, seasonal naive on each seasonal component."""

    def __init__(self, periods: Sequence[int] = (24, 168, 8766), robust: bool = True, **arima_kwargs) -> None:
        super().__init__()
        self.periods = tuple(int(p) for p in periods)
        self.robust = robust
        self.arima_kwargs = arima_kwargs
        self.components: Optional[pd.DataFrame] = None
        self._arima: Optional[AutoARIMA] = None
        self._seasonal: Dict[int, SeasonalNaive] = {}

    def fit(self, y: pd.Series) -> 'STLARIMA':
        self._start_fit(y)
        comps = decompose(y, self.periods, robust=self.robust)

        kwargs = {k: v for k, v in self.arima_kwargs.items() if k not in ('seasonal', 'max_P', 'max_Q', 'max_D')}
        self._arima = AutoARIMA(seasonal=False, **kwargs).fit(comps['season_adjust'])

        self._seasonal = {}
        for col in comps.columns:
            if col.startswith('season_') and col != 'season_adjust':
                p = int(col.split('_', 1)[1])
                self._seasonal[p] = SeasonalNaive(lag=p).fit(comps[col])

        self.components = comps
        return self

    def forecast(self, h: int) -> pd.Series:
        idx = self._check_forecast(h)
        total = self._arima.forecast(h).to_numpy()
        for snaive in self._seasonal.values():
            total = total + snaive.forecast(h).to_numpy()
        return pd.Series(total, index=idx, name='forecast')

    def report(self) -> dict:
        if self._arima is None:
            return {}
        return {
            'model': 'STL decomposition model',
            'seasonal_periods': sorted(self._seasonal),
            'season_adjust': self._arima.report(),
            'seasonal_components': {f'season_{p}': m.report()['model'] for p, m in self._seasonal.items()},
        }


# -------------------------
# Model set
# -------------------------

def build_models(cfg: ProjectConfig = ProjectConfig(), names: Optional[Sequence[str]] = None) -> Dict[str, Forecaster]:
    """Fresh, unfitted base forecasters keyed by model name."""
    names = list(names) if names is not None else list(BASE_MODELS)
    unknown = [n for n in names if n not in BASE_MODELS]
    if unknown:
        raise ValueError(f'Unknown model(s) {unknown}. Available: {list(BASE_MODELS)}')

    arima_kwargs = dict(
        max_p=cfg.max_p, max_q=cfg.max_q, max_P=cfg.max_P, max_Q=cfg.max_Q,
        max_d=cfg.max_d, max_D=cfg.max_D,
    )

    models: Dict[str, Forecaster] = {}
    for name in names:
        if name == 'snaive':
            models[name] = SeasonalNaive(lag=cfg.snaive_lag)
        elif name == 'sarima':
            models[name] = AutoARIMA(period=cfg.arima_period, **arima_kwargs)
        elif name == 'nnetar':
            models[name] = NNAR(
                period=cfg.arima_period,
                P=cfg.nnar_seasonal_lags,
                repeats=cfg.nnar_repeats,
                max_iter=cfg.nnar_max_iter,
                seed=cfg.seed,
            )
        elif name == 'stl_arima':
            models[name] = STLARIMA(periods=cfg.seasonal_periods, robust=True, **arima_kwargs)
    return models


def available_combinations(names: Iterable[str]) -> Dict[str, Tuple[str, ...]]:
    """Combinations whose members are all among ``names``."""
    have = set(names)
    return {k: v for k, v in COMBINATIONS.items() if set(v) <= have}


def combine_forecasts(
    base: pd.DataFrame,
    combinations: Optional[Dict[str, Tuple[str, ...]]] = None,
    by: Sequence[str] = (),
    value_col: str = 'forecast',
) -> pd.DataFrame:
    """Append equal-weight combination rows to a tidy forecast table.

    ``base`` holds one row per (model, time[, by...]). A combination is added only
    where every member has forecasts.
    """
    combinations = COMBINATIONS if combinations is None else combinations
    keys = list(by) + ['time']

    if base.empty:
        return base.copy()

    wide = base.pivot_table(index=keys, columns='model', values=value_col, aggfunc='first')
    extra_cols = [c for c in base.columns if c not in ('model', value_col) and c not in keys]
    extras = base.drop_duplicates(subset=keys).set_index(keys)[extra_cols] if extra_cols else None

    frames = [base]
    for name, members in combinations.items():
        if not set(members) <= set(wide.columns):
            continue
        # rows where a member is missing (e.g. it failed in that fold) get no combination
        comb = wide[list(members)].mean(axis=1, skipna=False).rename(value_col).dropna().to_frame()
        if comb.empty:
            continue
        if extras is not None:
            comb = comb.join(extras)
        comb = comb.reset_index()
        comb['model'] = name
        frames.append(comb[base.columns])

    return pd.concat(frames, ignore_index=True)
