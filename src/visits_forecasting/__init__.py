"""Hourly visits forecasting: seasonal naive, SARIMA, NNAR, STL + ARIMA and their averages.

Importable modules plus CLI-friendly scripts under /scripts.
"""

from .config import ProjectConfig
