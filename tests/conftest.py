from __future__ import annotations

import io
from pathlib import Path

import pytest
from rich.console import Console

from visits_forecasting.data import make_synthetic_visits


@pytest.fixture
def hourly():
    # four weeks: two full weekly cycles fit, the yearly one does not
    return make_synthetic_visits(start='2022-01-01', hours=24 * 7 * 4)


@pytest.fixture
def visits_csv(tmp_path: Path, hourly) -> Path:
    path = tmp_path / 'open_hourly_visits.csv'
    # leading unnamed index column, like R's write.csv
    hourly.reset_index().to_csv(path)
    return path


@pytest.fixture
def quiet_console() -> Console:
    return Console(file=io.StringIO(), force_terminal=False)
