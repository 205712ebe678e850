"""
French CPI SARIMA Analysis - Visualizations
-------------------------------------------
Figures for each stage of the analysis. Every function writes a PNG to the
given path and returns that path.
"""

import os

import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
import seaborn as sns
import statsmodels.api as sm
from statsmodels.graphics.tsaplots import plot_acf, plot_pacf

from data_preparation import TransformedSeries


def _save(fig, path):
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    fig.tight_layout()
    fig.savefig(path)
    plt.close(fig)
    return path


def _values(series):
    if isinstance(series, TransformedSeries):
        return series.as_series()
    return series


def plot_series(series, path, window=12, title='French CPI'):
    """Series with rolling mean and standard deviation."""
    values = _values(series)
    fig, ax = plt.subplots(figsize=(12, 6))
    ax.plot(values, label='Original')
    ax.plot(values.rolling(window=window).mean(), label=f'Rolling Mean (window={window})')
    ax.plot(values.rolling(window=window).std(), label=f'Rolling Std (window={window})')
    ax.set_title(f'Rolling Statistics - {title}')
    ax.legend()
    ax.grid(True)
    return _save(fig, path)


def plot_transforms(transformed, path):
    """
    One panel per transformed series.

    Parameters:
    -----------
    transformed : Sequence[TransformedSeries]
        Series to draw, titled by their provenance
    path : str
        Output file
    """
    fig, axes = plt.subplots(len(transformed), 1, figsize=(12, 3.5 * len(transformed)), squeeze=False)
    for ax, series in zip(axes[:, 0], transformed):
        ax.plot(series.as_series())
        ax.set_title(series.provenance)
        ax.grid(True)
    return _save(fig, path)


def plot_acf_pacf(series, path, lags=40, title=''):
    """ACF and PACF of a series, used to read candidate AR/MA orders."""
    values = _values(series).dropna()
    lags = max(1, min(lags, len(values) // 2 - 1))
    fig, axes = plt.subplots(2, 1, figsize=(12, 8))
    plot_acf(values, lags=lags, ax=axes[0], alpha=0.05)
    axes[0].set_title(f'Autocorrelation Function - {title}')
    axes[0].grid(True)
    plot_pacf(values, lags=lags, ax=axes[1], alpha=0.05, method='ywm')
    axes[1].set_title(f'Partial Autocorrelation Function - {title}')
    axes[1].grid(True)
    return _save(fig, path)


def plot_residual_diagnostics(report, path, lags=36):
    """Residuals, histogram, residual ACF and Q-Q plot of a DiagnosticsReport."""
    residuals = report.residuals.dropna()
    lags = max(1, min(lags, len(residuals) - 1))

    fig, axes = plt.subplots(2, 2, figsize=(14, 10))

    axes[0, 0].plot(residuals)
    axes[0, 0].axhline(y=0, color='r', linestyle='-')
    axes[0, 0].set_title('Residuals')
    axes[0, 0].grid(True)

    sns.histplot(residuals, kde=True, stat='density', ax=axes[0, 1])
    axes[0, 1].set_title('Residual Histogram')

    plot_acf(residuals, lags=lags, ax=axes[1, 0], alpha=0.05)
    axes[1, 0].set_title(f'ACF of Residuals (Ljung-Box p={report.ljung_box.pvalue:.3f})')
    axes[1, 0].grid(True)

    sm.qqplot(residuals, line='s', ax=axes[1, 1])
    axes[1, 1].set_title('Q-Q Plot of Residuals')
    axes[1, 1].grid(True)

    fig.suptitle(report.model_label)
    return _save(fig, path)


def plot_forecast(history, result, path, title='French CPI'):
    """Historical series with the forecast and one shaded band per level."""
    values = _values(history)
    fig, ax = plt.subplots(figsize=(12, 6))
    ax.plot(values.index, values, label='Historical Data')
    ax.plot(result.index, result.mean, color='red', label='Forecast')
    for position, level in enumerate(sorted(result.levels, reverse=True)):
        lower, upper = result.bounds[level]
        ax.fill_between(result.index, lower, upper, color='red', alpha=0.15 + 0.15 * position,
                        label=f'{level:g}% Prediction Interval')
    ax.set_title(f'{result.model_label} Forecast - {title}')
    ax.set_xlabel('Date')
    ax.legend()
    ax.grid(True)
    return _save(fig, path)
