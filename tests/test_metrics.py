import numpy as np
import pandas as pd
import pytest

from visits_forecasting.metrics import (
    accuracy_table,
    acf1,
    mae,
    mape,
    mase,
    me,
    naive_scale,
    rank_models,
    rmse,
    rmsse,
    smape,
)


def test_point_metrics():
    y = [10.0, 20.0, 30.0]
    yhat = [12.0, 18.0, 30.0]

    assert me(y, yhat) == pytest.approx(0.0)
    assert mae(y, yhat) == pytest.approx(4.0 / 3.0)
    assert rmse(y, yhat) == pytest.approx(np.sqrt(8.0 / 3.0))
    assert mape(y, yhat) == pytest.approx((20.0 + 10.0 + 0.0) / 3.0)
    assert smape(y, y) == pytest.approx(0.0)


def test_scaled_errors_use_seasonal_naive_training_error():
    train = [1.0, 2.0, 4.0]
    assert naive_scale(train, period=1) == pytest.approx(1.5)
    assert naive_scale(train, period=1, power=2) == pytest.approx(2.5)

    assert mase([3.0], [0.0], train, period=1) == pytest.approx(2.0)
    assert rmsse([3.0], [0.0], train, period=1) == pytest.approx(np.sqrt(9.0 / 2.5))

    # too short for the period
    assert np.isnan(mase([1.0], [0.0], [1.0, 2.0], period=24))


def test_acf1_sign():
    y = np.zeros(10)
    alternating = np.array([1.0, -1.0] * 5)
    assert acf1(y, alternating) < 0
    assert acf1(y, np.arange(10.0)) > 0


def _tidy(values, start='2022-01-01', model='m'):
    idx = pd.date_range(start, periods=len(values), freq='h')
    return pd.DataFrame({'model': model, 'time': idx, 'forecast': values})


def test_accuracy_table_drops_unobserved_and_groups():
    actual = pd.Series([10.0, 10.0, 10.0], index=pd.date_range('2022-01-01', periods=3, freq='h'))
    fc = pd.concat([
        _tidy([11.0, 11.0, 11.0, 11.0, 11.0], model='a'),
        _tidy([7.0, 7.0, 7.0], model='b'),
    ], ignore_index=True)

    acc = accuracy_table(fc, actual)

    assert acc['model'].tolist() == ['a', 'b']
    assert acc['n'].tolist() == [3, 3]
    assert acc.set_index('model').loc['a', 'MAE'] == pytest.approx(1.0)
    assert acc.set_index('model').loc['b', 'RMSE'] == pytest.approx(3.0)
    assert acc.set_index('model').loc['b', 'ME'] == pytest.approx(3.0)
    assert 'MASE' not in acc.columns


def test_accuracy_table_with_training_scale():
    train = pd.Series(np.arange(48.0), index=pd.date_range('2021-12-30', periods=48, freq='h'))
    actual = pd.Series([10.0, 10.0], index=pd.date_range('2022-01-01', periods=2, freq='h'))

    acc = accuracy_table(_tidy([12.0, 12.0]), actual, train=train, period=24)

    # seasonal-naive differences of a unit ramp are all 24
    assert acc.loc[0, 'MASE'] == pytest.approx(2.0 / 24.0)
    assert acc.loc[0, 'RMSSE'] == pytest.approx(2.0 / 24.0)


def test_accuracy_table_missing_column():
    with pytest.raises(ValueError, match='forecast'):
        accuracy_table(pd.DataFrame({'model': [], 'time': []}), pd.Series(dtype=float))


def test_rank_models_sorts_and_labels():
    acc = pd.DataFrame({'model': ['sarima', 'snaive'], 'RMSE': [5.0, 3.0]})
    ranked = rank_models(acc, 'RMSE', labels={'snaive': 'SNaïve'})

    assert ranked['model'].tolist() == ['snaive', 'sarima']
    assert ranked['label'].tolist() == ['SNaïve', 'sarima']

    with pytest.raises(ValueError):
        rank_models(acc, 'MAE')
