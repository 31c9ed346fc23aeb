from pathlib import Path

import numpy as np
import pandas as pd
import plotly.graph_objects as go
import pytest

from visits_forecasting.eda import autocorrelations, seasonal_profile
from visits_forecasting.figures import (
    accuracy_bars,
    decomposition_plot,
    forecast_vs_observed,
    horizon_accuracy_plot,
    month_boxplot,
    season_plot,
    time_plot,
    tsdisplay,
)
from visits_forecasting.modeling import MODEL_LABELS, decompose
from visits_forecasting.viz_utils import save_plotly


def test_time_plot_with_policy_line(hourly):
    fig = time_plot(hourly, pd.Timestamp('2022-01-10'))
    assert isinstance(fig, go.Figure)
    assert len(fig.data) == 1
    assert len(fig.layout.shapes) == 1


def test_season_plot_one_line_per_day(hourly):
    fig = season_plot(seasonal_profile(hourly, 'day'), 'day')
    assert len(fig.data) == 28
    assert fig.layout.xaxis.title.text == 'Hour of the day'


def test_tsdisplay_and_decomposition(hourly):
    fig = tsdisplay(hourly, autocorrelations(hourly, 24))
    assert len(fig.data) == 3

    comps = decompose(hourly, (24, 168))
    fig = decomposition_plot(comps, observed=hourly)
    # observed + trend + two seasons + remainder
    assert len(fig.data) == 5


def test_forecast_vs_observed(hourly):
    future = hourly.iloc[-48:]
    fig = forecast_vs_observed(future, future + 1.0, 'SARIMA')
    assert [t.name for t in fig.data] == ['Observation', 'SARIMA Prediction']


def test_accuracy_bars():
    acc = pd.DataFrame({'model': list(MODEL_LABELS), 'RMSE': np.arange(8.0) + 1, 'MAE': np.arange(8.0)})
    fig = accuracy_bars(acc)
    assert len(fig.data) == 16
    shapes = {t.marker.pattern.shape for t in fig.data}
    assert len(shapes) == 8

    with pytest.raises(ValueError):
        accuracy_bars(acc.drop(columns='MAE'))


def test_cv_figures():
    h = pd.DataFrame({
        'model': ['snaive'] * 3 + ['sarima'] * 3,
        'h_day': [1, 2, 3] * 2,
        'MAE': [1.0, 2.0, 3.0, 1.5, 2.5, 3.5],
        'RMSE': [2.0, 3.0, 4.0, 2.5, 3.5, 4.5],
    })
    fig = horizon_accuracy_plot(h, 'MAE')
    assert sorted(t.name for t in fig.data) == ['SARIMA', 'SNaïve']

    m = h.rename(columns={'h_day': 'month'})
    fig = month_boxplot(m, 'RMSE')
    assert [t.name for t in fig.data] == ['1', '2', '3']


def test_save_plotly_html_only(tmp_path: Path, hourly):
    written = save_plotly(time_plot(hourly), tmp_path / 'figs', 'time_plot', image_format=None)
    assert written == [tmp_path / 'figs' / 'time_plot.html']
    assert written[0].exists()


def test_save_plotly_image_failure_is_a_warning(tmp_path: Path, hourly, monkeypatch):
    fig = time_plot(hourly)

    def boom(*args, **kwargs):
        raise RuntimeError('no kaleido')

    monkeypatch.setattr(fig, 'write_image', boom)
    written = save_plotly(fig, tmp_path, 'time_plot', image_format='png')

    assert written == [tmp_path / 'time_plot.html']
    assert not (tmp_path / 'time_plot.png').exists()
