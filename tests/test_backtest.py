import numpy as np
import pandas as pd
import pytest

from visits_forecasting.backtest import (
    RollingOriginConfig,
    add_horizon_day,
    first_days_accuracy,
    fold_summary,
    horizon_accuracy,
    monthly_accuracy,
    rolling_origin_forecasts,
)
from visits_forecasting.config import ProjectConfig


def _cfg(hourly, **kw) -> ProjectConfig:
    return ProjectConfig(train_start=hourly.index[0], train_end=hourly.index[-1], **kw)


def test_add_horizon_day_is_one_based():
    fc = pd.DataFrame({'step': [1, 24, 25, 48, 49]})
    assert add_horizon_day(fc)['h_day'].tolist() == [1, 1, 2, 2, 3]


def test_rolling_origin_forecasts_snaive(hourly, quiet_console):
    cfg = _cfg(hourly)
    cv = RollingOriginConfig(init_hours=24 * 14, step_hours=24 * 7, horizon_hours=48)

    fc = rolling_origin_forecasts(hourly, cfg, model_names=['snaive'], cv=cv, console=quiet_console)

    # windows of 14, 21 and 28 days
    assert sorted(fc['fold'].unique()) == [1, 2, 3]
    assert set(fc['model']) == {'snaive'}
    assert (fc.groupby('fold').size() == 48).all()

    ends = fc.groupby('fold')['train_end'].first()
    assert ends.loc[1] == hourly.index[24 * 14 - 1]
    assert ends.is_monotonic_increasing

    first = fc[fc['fold'] == 1].sort_values('step')
    assert first['time'].iloc[0] == ends.loc[1] + pd.Timedelta(hours=1)
    np.testing.assert_allclose(first['forecast'].to_numpy()[:24], hourly.to_numpy()[24 * 13: 24 * 14])


def test_rolling_origin_forecasts_adds_combinations(hourly, quiet_console):
    cfg = _cfg(hourly, max_p=1, max_q=1, nnar_repeats=1, nnar_max_iter=20, seasonal_periods=(24, 168))
    cv = RollingOriginConfig(init_hours=24 * 21, step_hours=24 * 7, horizon_hours=24)

    fc = rolling_origin_forecasts(hourly, cfg, model_names=['nnetar', 'stl_arima'], cv=cv, console=quiet_console)

    assert set(fc['model']) == {'nnetar', 'stl_arima', 'combination_2'}
    comb = fc[fc['model'] == 'combination_2'].set_index(['fold', 'time'])['forecast']
    members = fc[fc['model'].isin(['nnetar', 'stl_arima'])].groupby(['fold', 'time'])['forecast'].mean()
    np.testing.assert_allclose(comb.sort_index().to_numpy(), members.sort_index().to_numpy())


def test_rolling_origin_init_too_large(hourly, quiet_console):
    cv = RollingOriginConfig(init_hours=len(hourly) + 1, step_hours=24, horizon_hours=24)
    with pytest.raises(ValueError):
        rolling_origin_forecasts(hourly, _cfg(hourly), model_names=['snaive'], cv=cv, console=quiet_console)


def _fake_cv(actual: pd.Series) -> pd.DataFrame:
    """Two folds, 72-step horizon; model 'a' is off by 1, model 'b' by the forecast day."""
    rows = []
    for fold, origin in ((1, 0), (2, 24)):
        times = actual.index[origin: origin + 72]
        steps = np.arange(1, 73)
        day = (steps - 1) // 24 + 1
        obs = actual.loc[times].to_numpy()
        rows.append(pd.DataFrame({'fold': fold, 'model': 'a', 'time': times, 'step': steps, 'forecast': obs + 1.0, 'train_end': times[0]}))
        rows.append(pd.DataFrame({'fold': fold, 'model': 'b', 'time': times, 'step': steps, 'forecast': obs + day, 'train_end': times[0]}))
    return pd.concat(rows, ignore_index=True)


def test_horizon_accuracy(hourly):
    fc = _fake_cv(hourly)
    acc = horizon_accuracy(fc, hourly, max_day=2)

    assert set(acc['h_day']) == {1, 2}
    b = acc[acc['model'] == 'b'].set_index('h_day')
    assert b.loc[1, 'MAE'] == pytest.approx(1.0)
    assert b.loc[2, 'RMSE'] == pytest.approx(2.0)
    np.testing.assert_allclose(acc[acc['model'] == 'a']['MAE'].to_numpy(), 1.0)
    assert (acc['n'] == 48).all()


def test_monthly_accuracy_groups_by_target_month(hourly):
    fc = _fake_cv(hourly)
    acc = monthly_accuracy(fc, hourly)

    assert set(acc['month']) == {1}
    assert set(acc['model']) == {'a', 'b'}


def test_first_days_accuracy(hourly):
    fc = _fake_cv(hourly)
    acc = first_days_accuracy(fc, hourly, days=1).set_index('model')

    assert acc.loc['b', 'MAE'] == pytest.approx(1.0)
    assert acc.loc['b', 'n'] == 48


def test_fold_summary(hourly):
    fc = _fake_cv(hourly)
    folds = fold_summary(fc, hourly)

    assert len(folds) == 4
    assert folds['rows_test'].tolist() == [72, 72, 72, 72]
    a = folds[folds['model'] == 'a']
    np.testing.assert_allclose(a['MAE'].to_numpy(), 1.0)
