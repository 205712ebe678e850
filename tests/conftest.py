import numpy as np
import pandas as pd
import pytest

from arima_model import FittedModel, as_model_input
from errors import ConvergenceError


def monthly_index(periods, start='2015-01-01'):
    return pd.date_range(start=start, periods=periods, freq='MS')


@pytest.fixture
def synthetic_cpi():
    """96 months of a CPI-like series: drifting random walk in logs plus a yearly cycle."""
    rng = np.random.default_rng(42)
    t = np.arange(96)
    log_cpi = (np.log(100.0) + 0.0015 * t + 0.003 * np.sin(2 * np.pi * t / 12)
               + np.cumsum(rng.normal(0, 0.002, size=96)))
    return pd.Series(np.exp(log_cpi), index=monthly_index(96), name='cpi')


@pytest.fixture
def trend_seasonal_cpi():
    """60 months with a linear trend and a period-12 seasonal pattern."""
    rng = np.random.default_rng(7)
    t = np.arange(60)
    values = 100 + 0.2 * t + 1.5 * np.sin(2 * np.pi * t / 12) + rng.normal(0, 0.3, size=60)
    return pd.Series(values, index=monthly_index(60), name='cpi')


@pytest.fixture
def write_cpi_csv(tmp_path):
    def _write(rows, name='cpi.csv', header='time,cpi', sep=','):
        path = tmp_path / name
        lines = [header] + [sep.join(str(value) for value in row) for row in rows]
        path.write_text('\n'.join(lines) + '\n')
        return str(path)
    return _write


def make_fitted(spec, series, aic, bic=None, aicc=None, llf=0.0, sigma2=1.0):
    """A FittedModel built without an estimation backend."""
    source = as_model_input(series)
    return FittedModel(
        spec=spec,
        params=pd.Series({'sigma2': sigma2}),
        aic=aic,
        bic=aic if bic is None else bic,
        aicc=aic if aicc is None else aicc,
        llf=llf,
        nobs=len(source),
        sigma2=sigma2,
        ar_polynomial=np.array([1.0]),
        ma_polynomial=np.array([1.0]),
        source=source,
    )


class StubFitter:
    """Fitting primitive returning canned scores; specs in `failing` raise ConvergenceError."""

    def __init__(self, scores, failing=()):
        self.scores = scores
        self.failing = set(failing)
        self.calls = []

    def __call__(self, series, spec):
        self.calls.append(spec)
        if spec in self.failing:
            raise ConvergenceError("Optimizer did not converge", spec=spec)
        aic, bic = self.scores[spec]
        return make_fitted(spec, series, aic=aic, bic=bic)


@pytest.fixture
def stub_fitter():
    return StubFitter
