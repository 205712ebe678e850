"""
French CPI SARIMA Analysis - Stationarity Testing
-------------------------------------------------
Augmented Dickey-Fuller (null: unit root) and KPSS (null: stationarity)
tests on a transformed series. The two tests have opposite nulls, so the
verdict is only "stationary" when ADF rejects and KPSS does not.
"""

import warnings
from dataclasses import dataclass, field
from typing import Dict, Optional

import numpy as np
import pandas as pd
from statsmodels.tools.sm_exceptions import InterpolationWarning
from statsmodels.tsa.stattools import adfuller, kpss

from data_preparation import TransformedSeries
from errors import StationarityTestError

STATIONARY = 'stationary'
NON_STATIONARY = 'non-stationary'
INCONCLUSIVE = 'inconclusive'


@dataclass(frozen=True)
class UnitRootOutcome:
    """Result of a single unit-root or stationarity test."""

    name: str
    statistic: float
    pvalue: float
    lags: int
    nobs: int
    critical_values: Dict[str, float] = field(default_factory=dict)
    reject_null: bool = False
    note: Optional[str] = None


@dataclass(frozen=True)
class StationarityResult:
    """Joint ADF / KPSS verdict for one series."""

    series_name: str
    adf: UnitRootOutcome
    kpss: UnitRootOutcome
    alpha: float

    @property
    def verdict(self) -> str:
        if self.adf.reject_null and not self.kpss.reject_null:
            return STATIONARY
        if not self.adf.reject_null and self.kpss.reject_null:
            return NON_STATIONARY
        return INCONCLUSIVE

    @property
    def is_stationary(self) -> bool:
        return self.verdict == STATIONARY

    @property
    def tests_agree(self) -> bool:
        return self.verdict != INCONCLUSIVE

    def to_frame(self) -> pd.DataFrame:
        rows = []
        for outcome in (self.adf, self.kpss):
            rows.append({
                'test': outcome.name,
                'statistic': outcome.statistic,
                'p-value': outcome.pvalue,
                'lags': outcome.lags,
                'nobs': outcome.nobs,
                'reject_null': outcome.reject_null,
            })
        return pd.DataFrame(rows).set_index('test')


def _prepare(series, name: str, min_obs: int, test: str) -> pd.Series:
    if isinstance(series, TransformedSeries):
        values = series.dropna()
    else:
        values = pd.Series(series).dropna()
    if len(values) < min_obs:
        raise StationarityTestError("Not enough non-missing observations",
                                    test=test, series=name, nobs=len(values), required=min_obs)
    if np.allclose(values.to_numpy(), values.iloc[0]):
        raise StationarityTestError("Series is constant", test=test, series=name)
    return values


def _series_name(series, name: Optional[str]) -> str:
    if name:
        return name
    if isinstance(series, TransformedSeries):
        return f"{series.name or 'series'} [{series.provenance}]"
    return str(getattr(series, 'name', None) or 'series')


def adf_test(series, alpha=0.05, regression='c', autolag='AIC', min_obs=12, name=None) -> UnitRootOutcome:
    """
    Augmented Dickey-Fuller test.

    Parameters:
    -----------
    series : pd.Series or TransformedSeries
        Series to test, leading missing values are dropped
    alpha : float
        Significance level
    regression : str
        Deterministic terms ('c', 'ct', 'ctt', 'n')
    autolag : str
        Lag selection method passed to adfuller

    Returns:
    --------
    UnitRootOutcome
        reject_null is True when the unit-root null is rejected
    """
    name = _series_name(series, name)
    values = _prepare(series, name, min_obs, 'ADF')
    try:
        statistic, pvalue, lags, nobs, critical_values, _ = adfuller(values, regression=regression, autolag=autolag)
    except (ValueError, np.linalg.LinAlgError) as e:
        raise StationarityTestError(f"ADF test failed: {e}", test='ADF', series=name) from e
    if not (np.isfinite(statistic) and np.isfinite(pvalue)):
        raise StationarityTestError("ADF statistic is not finite", test='ADF', series=name)

    return UnitRootOutcome(
        name='ADF',
        statistic=float(statistic),
        pvalue=float(pvalue),
        lags=int(lags),
        nobs=int(nobs),
        critical_values={key: float(value) for key, value in critical_values.items()},
        reject_null=bool(pvalue < alpha),
    )


def kpss_test(series, alpha=0.05, regression='c', nlags='auto', min_obs=12, name=None) -> UnitRootOutcome:
    """
    KPSS test. The reported p-value is interpolated from a table and is
    bounded to [0.01, 0.10]; the bound is noted when it is hit.

    Returns:
    --------
    UnitRootOutcome
        reject_null is True when the stationarity null is rejected
    """
    name = _series_name(series, name)
    values = _prepare(series, name, min_obs, 'KPSS')
    note = None
    try:
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter('always', InterpolationWarning)
            statistic, pvalue, lags, critical_values = kpss(values, regression=regression, nlags=nlags)
    except (ValueError, np.linalg.LinAlgError, ZeroDivisionError) as e:
        raise StationarityTestError(f"KPSS test failed: {e}", test='KPSS', series=name) from e
    if any(issubclass(w.category, InterpolationWarning) for w in caught):
        note = 'p-value outside lookup table range'
    if not np.isfinite(statistic):
        raise StationarityTestError("KPSS statistic is not finite", test='KPSS', series=name)

    return UnitRootOutcome(
        name='KPSS',
        statistic=float(statistic),
        pvalue=float(pvalue),
        lags=int(lags),
        nobs=len(values),
        critical_values={key: float(value) for key, value in critical_values.items()},
        reject_null=bool(pvalue < alpha),
        note=note,
    )


def test_stationarity(series, alpha=0.05, name=None, min_obs=12) -> StationarityResult:
    """
    Run ADF and KPSS on a series and print the joint verdict.

    Parameters:
    -----------
    series : pd.Series or TransformedSeries
        Series to test
    alpha : float
        Significance level shared by both tests
    name : str, optional
        Label used in the printed report

    Returns:
    --------
    StationarityResult
    """
    name = _series_name(series, name)
    print(f"\nStationarity Tests for {name}")

    adf = adf_test(series, alpha=alpha, min_obs=min_obs, name=name)
    kpss_outcome = kpss_test(series, alpha=alpha, min_obs=min_obs, name=name)
    result = StationarityResult(series_name=name, adf=adf, kpss=kpss_outcome, alpha=alpha)

    print(f"  ADF:  statistic={adf.statistic:.4f}, p-value={adf.pvalue:.4f} "
          f"({'reject' if adf.reject_null else 'fail to reject'} unit root)")
    print(f"  KPSS: statistic={kpss_outcome.statistic:.4f}, p-value={kpss_outcome.pvalue:.4f} "
          f"({'reject' if kpss_outcome.reject_null else 'fail to reject'} stationarity)"
          + (f" [{kpss_outcome.note}]" if kpss_outcome.note else ''))
    print(f"  Result: {result.verdict}")

    return result


# Keep pytest from collecting the public helper as a test function
test_stationarity.__test__ = False
