"""
French CPI SARIMA Analysis - Forecasting
----------------------------------------
Projects the selected SARIMA model forward and attaches prediction intervals.

Intervals are built from the model's psi-weights (its MA(infinity)
representation, differencing included):

    Var(h) = sigma2 * (psi_0^2 + ... + psi_{h-1}^2)

Each horizon adds a non-negative term, so the interval width can only grow
with the horizon. Forecasts are produced in the fitted (log) scale and mapped
back to CPI units through the transform provenance of the fitted series.
"""

from dataclasses import dataclass, field
from typing import Dict, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy import stats
from statsmodels.tsa.arima_process import arma2ma

from arima_model import FittedModel
from data_preparation import TransformedSeries

FITTED_SCALE = 'fitted'
ORIGINAL_SCALE = 'original'


@dataclass(frozen=True)
class ForecastResult:
    """
    Point forecasts and interval bounds for each future month.

    Attributes:
    -----------
    index : pd.DatetimeIndex
        Future months
    mean : np.ndarray
        Point forecasts
    se : np.ndarray
        Forecast standard errors in the fitted scale
    levels : Tuple[float, ...]
        Confidence levels in percent
    bounds : Dict[float, Tuple[np.ndarray, np.ndarray]]
        (lower, upper) per level
    scale : str
        'fitted' or 'original'
    model_label : str
        Label of the model that produced the forecast
    source : TransformedSeries
        Fitted series whose provenance is used to back-transform
    """

    index: pd.DatetimeIndex
    mean: np.ndarray
    se: np.ndarray
    levels: Tuple[float, ...]
    bounds: Dict[float, Tuple[np.ndarray, np.ndarray]]
    scale: str
    model_label: str
    source: TransformedSeries = field(repr=False)

    @property
    def horizon(self) -> int:
        return len(self.index)

    def lower(self, level: float) -> np.ndarray:
        return self.bounds[float(level)][0]

    def upper(self, level: float) -> np.ndarray:
        return self.bounds[float(level)][1]

    def width(self, level: float) -> np.ndarray:
        """Interval width per horizon in the fitted scale (2 * z * se)."""
        return 2.0 * _z_value(level) * self.se

    def back_transform(self) -> 'ForecastResult':
        """
        Map point forecasts and bounds to the original scale. The log is
        monotonic, so exp(lower) and exp(upper) remain ordered bounds.
        """
        if self.scale == ORIGINAL_SCALE:
            return self
        mean = np.asarray(self.source.back_transform(self.mean), dtype=float)
        bounds = {
            level: (np.asarray(self.source.back_transform(lower), dtype=float),
                    np.asarray(self.source.back_transform(upper), dtype=float))
            for level, (lower, upper) in self.bounds.items()
        }
        return ForecastResult(
            index=self.index,
            mean=mean,
            se=self.se,
            levels=self.levels,
            bounds=bounds,
            scale=ORIGINAL_SCALE,
            model_label=self.model_label,
            source=self.source,
        )

    def to_frame(self) -> pd.DataFrame:
        """Report table keyed by month: forecast, lower_XX, upper_XX per level."""
        columns = {'forecast': self.mean}
        for level in self.levels:
            lower, upper = self.bounds[level]
            columns[f'lower_{level:g}'] = lower
            columns[f'upper_{level:g}'] = upper
        frame = pd.DataFrame(columns, index=self.index)
        frame.index.name = 'month'
        return frame


def _z_value(level: float) -> float:
    return float(stats.norm.ppf(0.5 + float(level) / 200.0))


def future_months(last_month: pd.Timestamp, horizon: int) -> pd.DatetimeIndex:
    start = pd.Timestamp(last_month) + pd.offsets.MonthBegin(1)
    return pd.date_range(start=start, periods=horizon, freq='MS', name='month')


def integrated_ar_polynomial(fitted: FittedModel) -> np.ndarray:
    """AR lag polynomial multiplied by (1 - L)^d (1 - L^s)^D."""
    ar = np.asarray(fitted.ar_polynomial, dtype=float)
    for _ in range(fitted.spec.d):
        ar = np.convolve(ar, [1.0, -1.0])
    if fitted.spec.D:
        seasonal = np.zeros(fitted.spec.s + 1)
        seasonal[0], seasonal[-1] = 1.0, -1.0
        for _ in range(fitted.spec.D):
            ar = np.convolve(ar, seasonal)
    return ar


def psi_weights(fitted: FittedModel, horizon: int) -> np.ndarray:
    """First `horizon` MA(infinity) weights of the full (integrated) model."""
    return arma2ma(integrated_ar_polynomial(fitted), np.asarray(fitted.ma_polynomial, dtype=float), lags=horizon)


def forecast_standard_errors(fitted: FittedModel, horizon: int) -> np.ndarray:
    psi = psi_weights(fitted, horizon)
    return np.sqrt(fitted.sigma2 * np.cumsum(psi ** 2))


def forecast(fitted: FittedModel, horizon: int = 36, levels: Sequence[float] = (80, 95)) -> ForecastResult:
    """
    Forecast `horizon` months ahead with prediction intervals.

    Parameters:
    -----------
    fitted : FittedModel
        Selected model
    horizon : int
        Number of future months
    levels : Sequence[float]
        Confidence levels in percent

    Returns:
    --------
    ForecastResult
        In the fitted (log) scale; call back_transform() for CPI units
    """
    if horizon < 1:
        raise ValueError(f"Forecast horizon must be >= 1, got {horizon}")
    levels = tuple(sorted(dict.fromkeys(float(level) for level in levels)))
    if not levels:
        raise ValueError("At least one confidence level is required")
    for level in levels:
        if not 0 < level < 100:
            raise ValueError(f"Confidence levels must lie in (0, 100), got {level}")
    if fitted.results is None:
        raise ValueError(f"{fitted.label} carries no estimation results to forecast from")

    print(f"\nGenerating {horizon}-month forecast with {fitted.label}...")

    mean = np.asarray(fitted.results.get_forecast(steps=horizon).predicted_mean, dtype=float)
    se = forecast_standard_errors(fitted, horizon)

    bounds = {}
    for level in levels:
        z = _z_value(level)
        bounds[level] = (mean - z * se, mean + z * se)

    return ForecastResult(
        index=future_months(fitted.source.index[-1], horizon),
        mean=mean,
        se=se,
        levels=levels,
        bounds=bounds,
        scale=FITTED_SCALE,
        model_label=fitted.label,
        source=fitted.source,
    )
