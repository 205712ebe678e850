import dataclasses

import numpy as np
import pandas as pd
import pytest

from arima_model import ModelSpec, fit_sarima
from conftest import make_fitted
from data_preparation import log_transform
from forecasting import forecast, forecast_standard_errors, future_months, psi_weights

AIRLINE = ModelSpec(0, 1, 1, 0, 1, 1, 12)


@pytest.fixture
def airline_fit(synthetic_cpi):
    return fit_sarima(log_transform(synthetic_cpi), AIRLINE)


def test_random_walk_psi_weights_are_one(synthetic_cpi):
    fitted = make_fitted(ModelSpec(0, 1, 0), synthetic_cpi, aic=1.0, sigma2=4.0)

    np.testing.assert_allclose(psi_weights(fitted, 6), np.ones(6))
    np.testing.assert_allclose(forecast_standard_errors(fitted, 4), 2.0 * np.sqrt([1, 2, 3, 4]))


def test_ar1_psi_weights_decay(synthetic_cpi):
    fitted = dataclasses.replace(make_fitted(ModelSpec(1, 0, 0), synthetic_cpi, aic=1.0),
                                 ar_polynomial=np.array([1.0, -0.5]))

    np.testing.assert_allclose(psi_weights(fitted, 5), 0.5 ** np.arange(5))


def test_seasonal_differencing_enters_psi_weights(synthetic_cpi):
    fitted = make_fitted(ModelSpec(0, 0, 0, 0, 1, 0, 12), synthetic_cpi, aic=1.0)

    psi = psi_weights(fitted, 25)

    assert psi[0] == 1.0 and psi[12] == 1.0 and psi[24] == 1.0
    assert psi[1] == 0.0


def test_forecast_shape_and_months(airline_fit):
    result = forecast(airline_fit, horizon=36, levels=(95, 80))

    assert result.horizon == 36
    assert result.levels == (80.0, 95.0)
    assert result.index[0] == pd.Timestamp('2023-01-01')
    assert result.index[-1] == pd.Timestamp('2025-12-01')
    assert result.scale == 'fitted'


def test_interval_widths_never_shrink(airline_fit):
    result = forecast(airline_fit, horizon=36)

    for level in result.levels:
        width = result.upper(level) - result.lower(level)
        assert np.all(np.diff(width) >= -1e-12)
        np.testing.assert_allclose(width, result.width(level))
    assert np.all(result.width(95) > result.width(80))


def test_bounds_bracket_point_forecast(airline_fit):
    result = forecast(airline_fit, horizon=12).back_transform()

    assert np.all(result.lower(95) <= result.lower(80))
    assert np.all(result.lower(80) <= result.mean)
    assert np.all(result.mean <= result.upper(80))
    assert np.all(result.upper(80) <= result.upper(95))


def test_back_transform_exponentiates(airline_fit):
    log_result = forecast(airline_fit, horizon=6)
    original = log_result.back_transform()

    np.testing.assert_allclose(original.mean, np.exp(log_result.mean))
    np.testing.assert_allclose(original.upper(95), np.exp(log_result.upper(95)))
    assert original.scale == 'original'
    assert original.back_transform() is original


def test_forecast_table(airline_fit):
    frame = forecast(airline_fit, horizon=36).back_transform().to_frame()

    assert list(frame.columns) == ['forecast', 'lower_80', 'upper_80', 'lower_95', 'upper_95']
    assert frame.index.name == 'month'
    assert len(frame) == 36
    assert frame.notna().all().all()


def test_future_months():
    months = future_months(pd.Timestamp('2024-11-01'), 3)

    assert list(months) == list(pd.to_datetime(['2024-12-01', '2025-01-01', '2025-02-01']))


@pytest.mark.parametrize('kwargs', [{'horizon': 0}, {'levels': (0,)}, {'levels': (100,)}, {'levels': ()}])
def test_invalid_arguments(airline_fit, kwargs):
    with pytest.raises(ValueError):
        forecast(airline_fit, **kwargs)


def test_forecast_needs_estimation_results(synthetic_cpi):
    with pytest.raises(ValueError):
        forecast(make_fitted(AIRLINE, synthetic_cpi, aic=1.0))
