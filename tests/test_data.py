from pathlib import Path

import numpy as np
import pandas as pd
import pytest

from visits_forecasting.data import (
    filter_window,
    load_hourly_visits,
    policy_change_time,
    split_train_future,
    stretch_origins,
)


def test_load_hourly_visits_drops_index_column(visits_csv: Path, hourly):
    s = load_hourly_visits(visits_csv)

    assert s.name == 'visits'
    assert s.index.name == 'time'
    assert len(s) == len(hourly)
    assert s.index.freqstr in ('h', 'H')
    np.testing.assert_allclose(s.to_numpy(), hourly.to_numpy())


def test_load_hourly_visits_sorts_and_fills_gaps(tmp_path: Path):
    idx = pd.date_range('2022-03-01', periods=6, freq='h')
    df = pd.DataFrame({'time': idx, 'visits': [10.0, 20.0, 30.0, 40.0, 50.0, 60.0]})
    df = df.drop(index=2).iloc[::-1]  # hole at 02:00, rows reversed
    path = tmp_path / 'gappy.csv'
    df.to_csv(path, index=False)

    s = load_hourly_visits(path)

    assert len(s) == 6
    assert s.index.is_monotonic_increasing
    assert s.iloc[2] == pytest.approx(30.0)


def test_load_hourly_visits_missing_column(tmp_path: Path):
    path = tmp_path / 'bad.csv'
    pd.DataFrame({'time': ['2022-01-01 00:00'], 'count': [1]}).to_csv(path, index=False)

    with pytest.raises(ValueError, match='visits'):
        load_hourly_visits(path)


def test_load_hourly_visits_duplicate_timestamps(tmp_path: Path):
    path = tmp_path / 'dup.csv'
    pd.DataFrame({
        'time': ['2022-01-01 00:00', '2022-01-01 00:00', '2022-01-01 01:00'],
        'visits': [1, 2, 3],
    }).to_csv(path, index=False)

    with pytest.raises(ValueError, match='Duplicate'):
        load_hourly_visits(path)


def test_filter_window_is_inclusive(hourly):
    start = pd.Timestamp('2022-01-02 00:00')
    end = pd.Timestamp('2022-01-02 23:00')
    w = filter_window(hourly, start, end)

    assert len(w) == 24
    assert w.index[0] == start
    assert w.index[-1] == end

    with pytest.raises(ValueError):
        filter_window(hourly, end, start)


def test_split_train_future(hourly):
    train, future = split_train_future(
        hourly,
        pd.Timestamp('2022-01-01 00:00'),
        pd.Timestamp('2022-01-14 23:00'),
        horizon=48,
    )

    assert len(train) == 14 * 24
    assert len(future) == 48
    assert future.index[0] == train.index[-1] + pd.Timedelta(hours=1)


def test_split_train_future_truncates_at_data_end(hourly):
    _, future = split_train_future(hourly, hourly.index[0], hourly.index[-10], horizon=48)
    assert len(future) == 9


def test_stretch_origins():
    assert stretch_origins(100, 40, 30) == [40, 70, 100]
    assert stretch_origins(99, 40, 30) == [40, 70]

    with pytest.raises(ValueError):
        stretch_origins(10, 20, 5)


def test_policy_change_time(hourly):
    assert policy_change_time(hourly, pd.Timestamp('2022-01-05')) == pd.Timestamp('2022-01-05')
    assert policy_change_time(hourly, pd.Timestamp('2030-01-01')) is None
