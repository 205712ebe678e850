"""
French CPI SARIMA Analysis - Pipeline
-------------------------------------
Runs the complete analysis on the monthly French CPI:
load -> transform -> stationarity tests -> SARIMA grid search -> selection
-> residual diagnostics -> 36-month forecast -> holdout backtest,
and writes the report files.
"""

import json
import os
import sys
import time
import warnings
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence

import pandas as pd

from arima_model import FittedModel, ModelSpec, SearchResult, default_candidate_grid, search_models, select_best
from backtesting import HoldoutEvaluation, evaluate_holdout
from collectors.cpi_collector import load_cpi_series
from config import AnalysisConfig
from data_diagnostics import DiagnosticsReport, run_diagnostics
from data_preparation import TransformedSeries, stationarize
from errors import ConvergenceError, StationarityTestError
from forecasting import ForecastResult, forecast
from stationarity import StationarityResult, test_stationarity

warnings.filterwarnings('ignore')


@dataclass(frozen=True)
class AnalysisResult:
    """Everything produced by one run of the analysis."""

    series: pd.Series
    transforms: Dict[str, TransformedSeries]
    stationarity: Dict[str, Optional[StationarityResult]]
    search: SearchResult
    best: FittedModel
    diagnostics: DiagnosticsReport
    forecast: ForecastResult
    forecast_original: ForecastResult
    holdout: Optional[HoldoutEvaluation] = None
    files: Dict[str, str] = field(default_factory=dict)


def create_output_directories(config: AnalysisConfig):
    """Create necessary output directories."""
    directories = [config.output_dir]
    if config.make_plots:
        directories.append(config.visualization_dir)
    for directory in directories:
        os.makedirs(directory, exist_ok=True)


def run_stationarity_tests(transforms: Dict[str, TransformedSeries], alpha: float) -> Dict[str, Optional[StationarityResult]]:
    """
    Test each transformed series. A test that cannot be computed is reported
    and recorded as None so the caller can decide whether to go on.
    """
    results = {}
    for name, series in transforms.items():
        try:
            results[name] = test_stationarity(series, alpha=alpha, name=name)
        except StationarityTestError as e:
            print(f"Warning: {e}")
            results[name] = None
    return results


def save_forecast(result: ForecastResult, path: str) -> str:
    """Save forecast report (original CPI units) to CSV"""
    frame = result.to_frame()
    frame.index = frame.index.strftime('%Y-%m').rename('month')
    frame.to_csv(path, float_format='%.4f')
    print(f"\nForecast saved to {path}")
    return path


def write_summary(result: AnalysisResult, config: AnalysisConfig, path: str) -> str:
    """Document the selected model, its diagnostics and the holdout scores."""
    best = result.best
    diagnostics = result.diagnostics
    with open(path, 'w') as f:
        f.write("SARIMA MODEL FOR FRENCH CPI (LOG SCALE)\n")
        f.write("=======================================\n\n")
        f.write(f"Data: {config.data_path} ({len(result.series)} months, "
                f"{result.series.index.min():%Y-%m} to {result.series.index.max():%Y-%m})\n")
        f.write(f"Transform provenance: {best.source.provenance}\n\n")

        f.write("Stationarity tests:\n")
        for name, outcome in result.stationarity.items():
            verdict = outcome.verdict if outcome is not None else 'not computable'
            f.write(f"- {name}: {verdict}\n")

        f.write(f"\nCandidates: {len(result.search.models) + len(result.search.failures)} "
                f"({len(result.search.failures)} failed to converge)\n")
        f.write(f"Selection criterion: {result.search.criterion.upper()}\n")
        f.write(f"Selected model: {best.label}\n")
        f.write(f"- AIC: {best.aic:.4f}\n- BIC: {best.bic:.4f}\n- AICc: {best.aicc:.4f}\n"
                f"- Log-likelihood: {best.llf:.4f}\n\n")

        f.write("Coefficients:\n")
        for name, value in best.params.items():
            f.write(f"- {name}: {value:.6f}\n")

        f.write("\nResidual diagnostics:\n")
        f.write(f"- Ljung-Box (lags={diagnostics.ljung_box.lags}): p-value "
                f"{diagnostics.ljung_box.pvalue:.4f} -> {diagnostics.ljung_box.verdict}\n")
        f.write(f"- Mean: {diagnostics.distribution.mean:.6f}, skewness: "
                f"{diagnostics.distribution.skewness:.4f}, Jarque-Bera p-value: "
                f"{diagnostics.distribution.jarque_bera_pvalue:.4f}\n")

        if result.holdout is not None:
            holdout = result.holdout
            f.write(f"\nHoldout ({holdout.test_size} months, original scale):\n")
            f.write(f"- RMSE: {holdout.rmse:.4f}\n- MAE: {holdout.mae:.4f}\n"
                    f"- MAPE: {holdout.mape:.4f}%\n- Train RMSE: {holdout.train_rmse:.4f}\n"
                    f"- Ratio (Test/Train): {holdout.ratio:.2f}\n")

        f.write(f"\nForecast horizon: {config.horizon} months, levels: "
                f"{', '.join(f'{level:g}%' for level in result.forecast.levels)}\n")
        f.write("Forecast generated on: " + datetime.now().strftime("%Y-%m-%d %H:%M:%S"))
    return path


def make_plots(series, transforms, diagnostics, forecast_original, config: AnalysisConfig) -> Dict[str, str]:
    # Imported lazily: matplotlib is only needed when figures are requested
    import visualization

    directory = config.visualization_dir
    files = {
        'series_plot': visualization.plot_series(
            series, os.path.join(directory, 'cpi_rolling_statistics.png'), window=config.seasonal_period),
        'transforms_plot': visualization.plot_transforms(
            list(transforms.values()), os.path.join(directory, 'cpi_transforms.png')),
        'acf_pacf_plot': visualization.plot_acf_pacf(
            transforms['seasonal_difference'], os.path.join(directory, 'acf_pacf_stationary.png'),
            title='Seasonally differenced log CPI'),
        'diagnostics_plot': visualization.plot_residual_diagnostics(
            diagnostics, os.path.join(directory, 'residual_diagnostics.png')),
        'forecast_plot': visualization.plot_forecast(
            series, forecast_original, os.path.join(directory, 'cpi_forecast.png')),
    }
    print(f"Figures saved to {directory}/")
    return files


def run_analysis(config: Optional[AnalysisConfig] = None, specs: Optional[Sequence[ModelSpec]] = None,
                 fit: Optional[Callable] = None, series: Optional[pd.Series] = None) -> AnalysisResult:
    """
    Run the complete analysis.

    Parameters:
    -----------
    config : AnalysisConfig, optional
        Run settings, read from the environment when omitted
    specs : Sequence[ModelSpec], optional
        Candidate grid, defaults to the 36-model CPI grid
    fit : callable, optional
        Fitting primitive passed to the model search
    series : pd.Series, optional
        Already loaded CPI series; config.data_path is read otherwise

    Returns:
    --------
    AnalysisResult
    """
    start_time = time.time()
    config = config or AnalysisConfig.from_env()
    create_output_directories(config)

    print("=" * 80)
    print("FRENCH CPI - SARIMA ANALYSIS")
    print("=" * 80)

    print("\nSTEP 1: DATA LOADING")
    if series is None:
        series = load_cpi_series(config.data_path, time_col=config.time_column, value_col=config.value_column)

    print("\nSTEP 2: TRANSFORMS")
    log_series, first_diff, seasonal_diff = stationarize(series, period=config.seasonal_period)
    transforms = {
        'log': log_series,
        'first_difference': first_diff,
        'seasonal_difference': seasonal_diff,
    }
    for name, transformed in transforms.items():
        print(f"  {name}: {transformed.provenance} "
              f"({len(transformed) - transformed.undefined_count} defined values)")

    print("\nSTEP 3: STATIONARITY TESTS")
    stationarity = run_stationarity_tests(transforms, config.significance_level)
    final = stationarity['seasonal_difference']
    if final is None or not final.is_stationary:
        print("Warning: stationarity of the differenced log CPI is not confirmed; proceeding with the search.")

    print("\nSTEP 4: MODEL SEARCH")
    specs = list(specs) if specs is not None else default_candidate_grid(config.seasonal_period)
    search = search_models(log_series, specs, fit=fit, criterion=config.criterion,
                           tie_breakers=config.tie_breakers, n_jobs=config.n_jobs)

    print("\nSTEP 5: MODEL SELECTION")
    best = select_best(search)

    print("\nSTEP 6: RESIDUAL DIAGNOSTICS")
    diagnostics = run_diagnostics(best, lags=config.ljung_box_lags, alpha=config.significance_level)

    print("\nSTEP 7: FORECAST")
    forecast_log = forecast(best, horizon=config.horizon, levels=config.confidence_levels)
    forecast_original = forecast_log.back_transform()
    print(forecast_original.to_frame().head(12).to_string(float_format=lambda value: f"{value:.2f}"))

    holdout = None
    if config.holdout_months > 0:
        print("\nSTEP 8: HOLDOUT BACKTEST")
        try:
            holdout = evaluate_holdout(series, best.spec, test_size=config.holdout_months, fit=fit)
        except (ConvergenceError, ValueError) as e:
            print(f"Warning: holdout evaluation skipped: {e}")

    files = {
        'ranking': os.path.join(config.output_dir, 'ranking.csv'),
        'forecast': os.path.join(config.output_dir, 'forecast.csv'),
        'summary': os.path.join(config.output_dir, 'model_summary.txt'),
        'record': os.path.join(config.output_dir, 'pipeline_record.json'),
    }
    search.ranking.to_csv(files['ranking'], index=False)
    save_forecast(forecast_original, files['forecast'])

    if config.make_plots:
        files.update(make_plots(series, transforms, diagnostics, forecast_original, config))

    result = AnalysisResult(
        series=series,
        transforms=transforms,
        stationarity=stationarity,
        search=search,
        best=best,
        diagnostics=diagnostics,
        forecast=forecast_log,
        forecast_original=forecast_original,
        holdout=holdout,
        files=files,
    )
    write_summary(result, config, files['summary'])

    elapsed_time = time.time() - start_time
    record = {
        'timestamp': datetime.now().strftime('%Y-%m-%d %H:%M:%S'),
        'data_path': config.data_path,
        'selected_model': best.label,
        'criterion': search.criterion,
        'failed_specifications': [failure.spec.label for failure in search.failures],
        'execution_time_seconds': elapsed_time,
        'status': 'completed',
    }
    with open(files['record'], 'w') as f:
        json.dump(record, f, indent=2)

    print("\n" + "=" * 80)
    print(f"ANALYSIS COMPLETED IN {elapsed_time:.2f} SECONDS")
    print(f"Results saved to {config.output_dir}/")
    print("=" * 80)
    return result


def main(argv: Optional[List[str]] = None):
    """Main function to run the analysis."""
    # Parse command line arguments (if any)
    argv = sys.argv[1:] if argv is None else argv

    if len(argv) > 1:
        print("Usage: python pipeline.py [path/to/cpi.csv]")
        return 2

    overrides = {'data_path': argv[0]} if argv else {}
    run_analysis(AnalysisConfig.from_env(**overrides))
    return 0


if __name__ == "__main__":
    sys.exit(main())
