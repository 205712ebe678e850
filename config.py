"""
French CPI SARIMA Analysis - Configuration
------------------------------------------
Run settings for the analysis. Defaults give the standard CPI analysis (36-month
forecast, 80% and 95% bands, AICc selection, 24 Ljung-Box lags); any value
can be overridden from the environment or a local .env file.
"""

import os
from dataclasses import dataclass, field, replace
from typing import Mapping, Optional, Tuple

from dotenv import load_dotenv

load_dotenv()

VALID_CRITERIA = ('aicc', 'aic', 'bic', 'auto')
TRUE_VALUES = ('1', 'true', 'yes', 'on')
FALSE_VALUES = ('0', 'false', 'no', 'off')


@dataclass(frozen=True)
class AnalysisConfig:
    """Settings shared by every stage of the analysis."""

    data_path: str = 'data/cpi_france.csv'
    time_column: str = 'time'
    value_column: str = 'cpi'
    horizon: int = 36
    confidence_levels: Tuple[float, ...] = (80.0, 95.0)
    seasonal_period: int = 12
    criterion: str = 'aicc'
    ljung_box_lags: int = 24
    significance_level: float = 0.05
    holdout_months: int = 12
    n_jobs: int = 1
    output_dir: str = 'outputs'
    visualization_dir: str = 'visualizations/sarima'
    make_plots: bool = True
    tie_breakers: Tuple[str, ...] = field(default=('bic', 'n_params'))

    def __post_init__(self):
        if self.horizon < 1:
            raise ValueError(f"horizon must be >= 1, got {self.horizon}")
        if self.criterion not in VALID_CRITERIA:
            raise ValueError(f"criterion must be one of {VALID_CRITERIA}, got {self.criterion!r}")
        if not self.confidence_levels:
            raise ValueError("at least one confidence level is required")
        for level in self.confidence_levels:
            if not 0 < level < 100:
                raise ValueError(f"confidence levels must lie in (0, 100), got {level}")
        if not 0 < self.significance_level < 1:
            raise ValueError(f"significance_level must lie in (0, 1), got {self.significance_level}")
        if self.seasonal_period < 2:
            raise ValueError(f"seasonal_period must be >= 2, got {self.seasonal_period}")
        if self.ljung_box_lags < 1:
            raise ValueError(f"ljung_box_lags must be >= 1, got {self.ljung_box_lags}")
        if self.holdout_months < 0:
            raise ValueError(f"holdout_months must be >= 0, got {self.holdout_months}")
        if self.n_jobs == 0:
            raise ValueError("n_jobs must be a positive worker count or negative (joblib convention), got 0")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> 'AnalysisConfig':
        """
        Build a configuration from environment variables.

        Parameters:
        -----------
        environ : Mapping[str, str], optional
            Variables to read, defaults to os.environ
        **overrides
            Explicit values taking precedence over the environment

        Returns:
        --------
        AnalysisConfig
        """
        env = os.environ if environ is None else environ
        values = {}

        readers = {
            'CPI_DATA_PATH': ('data_path', str),
            'CPI_TIME_COLUMN': ('time_column', str),
            'CPI_VALUE_COLUMN': ('value_column', str),
            'FORECAST_HORIZON': ('horizon', int),
            'CONFIDENCE_LEVELS': ('confidence_levels', _parse_levels),
            'SEASONAL_PERIOD': ('seasonal_period', int),
            'SELECTION_CRITERION': ('criterion', lambda raw: raw.strip().lower()),
            'LJUNG_BOX_LAGS': ('ljung_box_lags', int),
            'SIGNIFICANCE_LEVEL': ('significance_level', float),
            'HOLDOUT_MONTHS': ('holdout_months', int),
            'N_JOBS': ('n_jobs', int),
            'OUTPUT_DIR': ('output_dir', str),
            'VISUALIZATION_DIR': ('visualization_dir', str),
            'MAKE_PLOTS': ('make_plots', _parse_bool),
        }

        for variable, (attribute, parse) in readers.items():
            raw = env.get(variable)
            if raw is None or raw == '':
                continue
            try:
                values[attribute] = parse(raw)
            except ValueError as e:
                raise ValueError(f"Invalid value for {variable}: {raw!r} ({e})") from e

        values.update(overrides)
        return cls(**values)

    def with_overrides(self, **changes) -> 'AnalysisConfig':
        return replace(self, **changes)


def _parse_levels(raw: str) -> Tuple[float, ...]:
    levels = tuple(float(part) for part in raw.split(',') if part.strip())
    if not levels:
        raise ValueError("no confidence level given")
    return levels


def _parse_bool(raw: str) -> bool:
    value = raw.strip().lower()
    if value in TRUE_VALUES:
        return True
    if value in FALSE_VALUES:
        return False
    raise ValueError(f"expected one of {TRUE_VALUES + FALSE_VALUES}")
