"""
French CPI SARIMA Analysis - Data Preparation
---------------------------------------------
Transforms used to bring the CPI series to stationarity: log, first
differencing and seasonal differencing. Each transform is pure and returns a
new TransformedSeries tagged with the step it applied, so that the series (or
a forecast made on it) can be mapped back to CPI units with the exact same
provenance.
"""

from dataclasses import dataclass, field
from typing import Tuple, Union

import numpy as np
import pandas as pd

from errors import DomainError, TransformError

LOG = 'log'
DIFFERENCE = 'difference'
SEASONAL_DIFFERENCE = 'seasonal_difference'


@dataclass(frozen=True)
class TransformStep:
    """
    Provenance of a single transform.

    Attributes:
    -----------
    kind : str
        'log', 'difference' or 'seasonal_difference'
    lag : int
        Differencing lag (0 for the log transform)
    offset : int
        Number of leading missing values in the step's input
    seed : Tuple[float, ...]
        First `lag` defined values of the input, needed to undo differencing
    """

    kind: str
    lag: int = 0
    offset: int = 0
    seed: Tuple[float, ...] = ()

    @property
    def pointwise(self) -> bool:
        return self.kind == LOG

    @property
    def label(self) -> str:
        if self.kind == LOG:
            return 'log'
        if self.kind == DIFFERENCE:
            return f'diff({self.lag})'
        return f'seasonal_diff({self.lag})'

    def invert_values(self, values):
        """Inverse of a point-wise step, applied element by element."""
        if not self.pointwise:
            raise TransformError("Differencing cannot be inverted point-wise", transform=self.label)
        return np.exp(values)

    def invert_series(self, series: pd.Series) -> pd.Series:
        """Undo this step on a whole series."""
        if self.pointwise:
            return np.exp(series)

        values = series.to_numpy(dtype=float)
        restored = np.full(len(values), np.nan)
        start = self.offset
        restored[start:start + self.lag] = self.seed
        # x[t] = y[t] + x[t - lag]
        for t in range(start + self.lag, len(values)):
            restored[t] = values[t] + restored[t - self.lag]
        return pd.Series(restored, index=series.index, name=series.name)


@dataclass(frozen=True)
class TransformedSeries:
    """A series derived from the CPI by a chain of transforms."""

    values: pd.Series
    steps: Tuple[TransformStep, ...] = field(default=())

    def __post_init__(self):
        # Own a private copy so callers cannot mutate the stored values
        object.__setattr__(self, 'values', self.values.astype(float).copy())
        object.__setattr__(self, 'steps', tuple(self.steps))

    def __len__(self):
        return len(self.values)

    @property
    def index(self) -> pd.DatetimeIndex:
        return self.values.index

    @property
    def name(self):
        return self.values.name

    @property
    def undefined_count(self) -> int:
        """Number of leading entries left undefined by differencing."""
        first_valid = self.values.first_valid_index()
        if first_valid is None:
            return len(self.values)
        return int(self.values.index.get_loc(first_valid))

    @property
    def provenance(self) -> str:
        if not self.steps:
            return 'identity'
        return ' -> '.join(step.label for step in self.steps)

    def as_series(self) -> pd.Series:
        return self.values.copy()

    def dropna(self) -> pd.Series:
        return self.values.dropna()

    def invert(self) -> pd.Series:
        """
        Reconstruct the original series by undoing every step in reverse order
        (cumulative summation from the stored seeds, then exponentiation).
        """
        restored = self.values.copy()
        for step in reversed(self.steps):
            restored = step.invert_series(restored)
        return restored

    def back_transform(self, values):
        """
        Map values expressed in this series' scale back to the original scale.

        Only point-wise steps (the log) can be undone this way; differencing
        needs the history of the series and is handled by the model itself.
        """
        differencing = [step.label for step in self.steps if not step.pointwise]
        if differencing:
            raise TransformError("Cannot back-transform values point-wise through differencing",
                                 transform=self.provenance)
        restored = values
        for step in reversed(self.steps):
            restored = step.invert_values(restored)
        return restored


SeriesLike = Union[pd.Series, TransformedSeries]


def _unwrap(series: SeriesLike) -> Tuple[pd.Series, Tuple[TransformStep, ...]]:
    if isinstance(series, TransformedSeries):
        return series.as_series(), series.steps
    if isinstance(series, pd.Series):
        return series.astype(float).copy(), ()
    raise TypeError(f"Expected a pandas Series or TransformedSeries, got {type(series).__name__}")


def log_transform(series: SeriesLike) -> TransformedSeries:
    """
    Apply the natural log.

    Parameters:
    -----------
    series : pd.Series or TransformedSeries
        Strictly positive values

    Returns:
    --------
    TransformedSeries
        ln(value), tagged with a 'log' step

    Raises:
    -------
    DomainError
        If any value is <= 0 or missing (leading gaps left by differencing excepted)
    """
    values, steps = _unwrap(series)
    first_valid = values.first_valid_index()
    if first_valid is not None:
        missing = values.loc[first_valid:]
        missing = missing[missing.isna()]
        if not missing.empty:
            raise DomainError("Log transform requires a value for every month",
                              transform='log',
                              timestamps=[str(ts) for ts in missing.index[:5]],
                              count=len(missing))
    defined = values.dropna()
    offending = defined[defined <= 0]
    if not offending.empty:
        raise DomainError("Log transform requires strictly positive values",
                          transform='log',
                          timestamps=[str(ts) for ts in offending.index[:5]],
                          count=len(offending))
    logged = np.log(values)
    logged.name = values.name
    return TransformedSeries(logged, steps + (TransformStep(LOG),))


def _difference(series: SeriesLike, lag: int, kind: str) -> TransformedSeries:
    if lag < 1:
        raise ValueError(f"Differencing lag must be >= 1, got {lag}")
    values, steps = _unwrap(series)
    first_valid = values.first_valid_index()
    offset = len(values) if first_valid is None else int(values.index.get_loc(first_valid))
    if len(values) - offset <= lag:
        raise TransformError("Series too short to difference",
                             transform=kind, lag=lag, defined=len(values) - offset)
    seed = tuple(float(v) for v in values.iloc[offset:offset + lag])
    differenced = values - values.shift(lag)
    differenced.name = values.name
    return TransformedSeries(differenced, steps + (TransformStep(kind, lag, offset, seed),))


def difference(series: SeriesLike, lag: int = 1) -> TransformedSeries:
    """First difference: value[t] - value[t-lag], first `lag` entries undefined."""
    return _difference(series, lag, DIFFERENCE)


def seasonal_difference(series: SeriesLike, period: int = 12) -> TransformedSeries:
    """Seasonal difference: value[t] - value[t-period], first `period` entries undefined."""
    return _difference(series, period, SEASONAL_DIFFERENCE)


def stationarize(series: SeriesLike, period: int = 12) -> Tuple[TransformedSeries, TransformedSeries, TransformedSeries]:
    """
    Apply the usual CPI chain: log, first difference, seasonal difference.

    Returns:
    --------
    tuple
        (log series, log first difference, seasonal difference of the latter)
    """
    log_series = log_transform(series)
    first_diff = difference(log_series, lag=1)
    seasonal_diff = seasonal_difference(first_diff, period=period)
    return log_series, first_diff, seasonal_diff
