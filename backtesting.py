"""
French CPI SARIMA Analysis - Holdout Backtesting
-----------------------------------------------
Refits a specification on a training prefix of the CPI series, forecasts the
held-out months and scores the forecast in CPI units. The test/train RMSE
ratio doubles as the overfitting check.
"""

from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np
import pandas as pd
from sklearn.metrics import mean_absolute_error, mean_squared_error, r2_score

from arima_model import ModelSpec, fit_sarima
from data_preparation import log_transform
from forecasting import forecast

OVERFITTING_RATIO = 1.5


@dataclass(frozen=True)
class HoldoutEvaluation:
    model_label: str
    train_size: int
    test_size: int
    rmse: float
    mae: float
    mape: float
    r2: float
    train_rmse: float
    coverage_95: float
    predictions: pd.Series

    @property
    def ratio(self) -> float:
        return self.rmse / self.train_rmse if self.train_rmse else float('nan')

    @property
    def overfitting(self) -> bool:
        return bool(np.isfinite(self.ratio) and self.ratio > OVERFITTING_RATIO)

    def to_dict(self) -> dict:
        return {
            'model_name': self.model_label,
            'RMSE': self.rmse,
            'MAE': self.mae,
            'MAPE': self.mape,
            'R2': self.r2,
            'Train_RMSE': self.train_rmse,
            'Ratio': self.ratio,
            'Coverage_95': self.coverage_95,
        }


def mean_absolute_percentage_error(y_true, y_pred):
    """Calculate Mean Absolute Percentage Error (MAPE)"""
    y_true, y_pred = np.array(y_true), np.array(y_pred)
    # Avoid division by zero
    mask = y_true != 0
    return np.mean(np.abs((y_true[mask] - y_pred[mask]) / y_true[mask])) * 100


def evaluate_holdout(series: pd.Series, spec: ModelSpec, test_size: int = 12,
                     fit: Optional[Callable] = None) -> HoldoutEvaluation:
    """
    Fit on all but the last `test_size` months and score the forecast.

    Parameters:
    -----------
    series : pd.Series
        CPI series in original units
    spec : ModelSpec
        Specification to evaluate (usually the selected one)
    test_size : int
        Held-out months
    fit : callable, optional
        Fitting primitive, defaults to fit_sarima

    Returns:
    --------
    HoldoutEvaluation
    """
    if test_size < 1:
        raise ValueError(f"test_size must be >= 1, got {test_size}")
    if test_size >= len(series):
        raise ValueError(f"test_size ({test_size}) must be smaller than the series ({len(series)})")

    fit = fit or fit_sarima
    train_data = series.iloc[:-test_size]
    test_data = series.iloc[-test_size:]

    print(f"\nHoldout evaluation of {spec.label}: "
          f"{len(train_data)} training / {len(test_data)} test observations")

    fitted = fit(log_transform(train_data), spec)
    result = forecast(fitted, horizon=test_size, levels=(95,)).back_transform()
    predictions = pd.Series(result.mean, index=test_data.index, name='prediction')

    rmse = np.sqrt(mean_squared_error(test_data, predictions))
    mae = mean_absolute_error(test_data, predictions)
    mape = mean_absolute_percentage_error(test_data, predictions)
    r2 = r2_score(test_data, predictions) if len(test_data) > 1 else float('nan')

    lower, upper = result.lower(95), result.upper(95)
    inside = (test_data.to_numpy() >= lower) & (test_data.to_numpy() <= upper)
    coverage = float(np.mean(inside))

    # In-sample fit, skipping the differencing burn-in
    log_train_pred = pd.Series(np.asarray(fitted.results.fittedvalues, dtype=float), index=train_data.index)
    train_pred = np.exp(log_train_pred.iloc[spec.burn_in:])
    train_rmse = np.sqrt(mean_squared_error(train_data.iloc[spec.burn_in:], train_pred))

    evaluation = HoldoutEvaluation(
        model_label=spec.label,
        train_size=len(train_data),
        test_size=len(test_data),
        rmse=float(rmse),
        mae=float(mae),
        mape=float(mape),
        r2=float(r2),
        train_rmse=float(train_rmse),
        coverage_95=coverage,
        predictions=predictions,
    )

    print("\nTest Set Performance (Original Scale):")
    print(f"RMSE: {evaluation.rmse:.4f}")
    print(f"MAE: {evaluation.mae:.4f}")
    print(f"MAPE: {evaluation.mape:.4f}%")
    print(f"R²: {evaluation.r2:.4f}")
    print(f"95% interval coverage: {evaluation.coverage_95:.0%}")
    print("\nOverfitting Check (Original Scale):")
    print(f"Train RMSE: {evaluation.train_rmse:.4f}")
    print(f"Ratio (Test/Train): {evaluation.ratio:.2f}")
    if evaluation.overfitting:
        print("WARNING: Possible overfitting (Test RMSE significantly higher than Train RMSE)")

    return evaluation
