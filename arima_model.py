#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
SARIMA Model Search using the Box-Jenkins Methodology
-----------------------------------------------------
Fits an explicit grid of SARIMA(p,d,q)(P,D,Q)[s] specifications to the log
CPI series and ranks them by information criteria:
1. Enumerate the candidate grid
2. Fit each candidate by maximum likelihood (failures are recorded, not fatal)
3. Rank by AICc (or the configured criterion), ties broken by BIC then by
   the number of ARMA parameters
4. Select the top-ranked model

The fitting primitive is pluggable: any callable fit(series, spec) returning
a FittedModel or raising ConvergenceError can replace fit_sarima.
"""

import itertools
import warnings
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from statsmodels.tsa.statespace.sarimax import SARIMAX

from data_preparation import TransformedSeries
from errors import ConvergenceError, FitExhaustedError

CRITERIA = ('aicc', 'aic', 'bic')
TIE_BREAKERS = ('aicc', 'aic', 'bic', 'n_params')
# Burnham & Anderson: prefer AICc while n / k stays below this ratio
AICC_RATIO_THRESHOLD = 40
# Derivative-free restarts tried when lbfgs reports non-convergence
RETRY_METHODS = ('nm', 'powell')
RETRY_MAXITER_FACTOR = 10


@dataclass(frozen=True)
class ModelSpec:
    """SARIMA(p,d,q)(P,D,Q)[s] orders."""

    p: int
    d: int
    q: int
    P: int = 0
    D: int = 0
    Q: int = 0
    s: int = 0

    def __post_init__(self):
        for name in ('p', 'd', 'q', 'P', 'D', 'Q', 's'):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, np.integer)) or value < 0:
                raise ValueError(f"SARIMA order {name} must be a non-negative integer, got {value!r}")
        if (self.P or self.D or self.Q) and self.s < 2:
            raise ValueError(f"Seasonal orders require a seasonal period s >= 2, got s={self.s}")

    @property
    def order(self) -> Tuple[int, int, int]:
        return (self.p, self.d, self.q)

    @property
    def seasonal_order(self) -> Tuple[int, int, int, int]:
        if not (self.P or self.D or self.Q):
            return (0, 0, 0, 0)
        return (self.P, self.D, self.Q, self.s)

    @property
    def n_params(self) -> int:
        """Number of ARMA coefficients, p + q + P + Q."""
        return self.p + self.q + self.P + self.Q

    @property
    def burn_in(self) -> int:
        """Observations consumed by differencing."""
        return self.d + self.D * self.s

    @property
    def label(self) -> str:
        return f"SARIMA({self.p},{self.d},{self.q})({self.P},{self.D},{self.Q})[{self.s}]"

    def as_tuple(self) -> Tuple[int, ...]:
        return (self.p, self.d, self.q, self.P, self.D, self.Q, self.s)

    def __str__(self):
        return self.label


@dataclass(frozen=True)
class FittedModel:
    """
    A successfully estimated specification.

    Attributes:
    -----------
    spec : ModelSpec
        The fitted orders
    params : pd.Series
        Estimated coefficients, including sigma2
    aic, bic, aicc, llf : float
        Fit statistics
    nobs : int
        Observations used in the fit
    sigma2 : float
        Innovation variance
    ar_polynomial, ma_polynomial : np.ndarray
        Reduced (seasonal x non-seasonal) lag polynomials, lowest degree first,
        without the differencing factors
    source : TransformedSeries
        The series the model was fit on, with its transform provenance
    results : object
        Backend results object, used for forecasting and residuals
    """

    spec: ModelSpec
    params: pd.Series
    aic: float
    bic: float
    aicc: float
    llf: float
    nobs: int
    sigma2: float
    ar_polynomial: np.ndarray
    ma_polynomial: np.ndarray
    source: TransformedSeries
    results: Any = field(default=None, repr=False, compare=False)

    @property
    def n_params(self) -> int:
        return self.spec.n_params

    @property
    def label(self) -> str:
        return self.spec.label

    def criterion(self, name: str) -> float:
        if name == 'n_params':
            return float(self.n_params)
        return float(getattr(self, name))

    def summary_row(self) -> dict:
        return {
            'model': self.spec.label,
            'p': self.spec.p, 'd': self.spec.d, 'q': self.spec.q,
            'P': self.spec.P, 'D': self.spec.D, 'Q': self.spec.Q, 's': self.spec.s,
            'n_params': self.n_params,
            'aic': self.aic,
            'bic': self.bic,
            'aicc': self.aicc,
            'llf': self.llf,
        }


@dataclass(frozen=True)
class FailedFit:
    """A specification that could not be fitted, with the reason."""

    spec: ModelSpec
    reason: str


@dataclass(frozen=True)
class SearchResult:
    """Ranked outcome of a model search."""

    ranking: pd.DataFrame
    models: Tuple[FittedModel, ...]
    failures: Tuple[FailedFit, ...]
    criterion: str

    @property
    def best(self) -> FittedModel:
        return self.models[0]

    @property
    def failed_specs(self) -> Tuple[ModelSpec, ...]:
        return tuple(failure.spec for failure in self.failures)


FitFunction = Callable[[TransformedSeries, ModelSpec], FittedModel]


def as_model_input(series: Union[pd.Series, TransformedSeries]) -> TransformedSeries:
    """Wrap a plain Series so that every fitted model carries a provenance."""
    if isinstance(series, TransformedSeries):
        return series
    if isinstance(series, pd.Series):
        return TransformedSeries(series)
    raise TypeError(f"Expected a pandas Series or TransformedSeries, got {type(series).__name__}")


def effective_nobs(nobs: int, spec: ModelSpec) -> int:
    return nobs - spec.burn_in


def corrected_aic(aic: float, nobs_effective: int, k: int) -> float:
    """AICc = AIC + 2k(k+1) / (n - k - 1); infinite when n - k - 1 <= 0."""
    denominator = nobs_effective - k - 1
    if denominator <= 0:
        return float('inf')
    return aic + 2.0 * k * (k + 1) / denominator


def _converged(results) -> bool:
    return bool((results.mle_retvals or {}).get('converged', True))


def build_candidate_grid(p_values=(0, 1, 2), d_values=(1,), q_values=(0, 1, 2),
                         P_values=(0, 1), D_values=(1,), Q_values=(0, 1), s=12) -> List[ModelSpec]:
    """
    Enumerate SARIMA specifications in a fixed, reproducible order.

    Parameters:
    -----------
    p_values, d_values, q_values : Sequence[int]
        Non-seasonal orders to try
    P_values, D_values, Q_values : Sequence[int]
        Seasonal orders to try
    s : int
        Seasonal period

    Returns:
    --------
    List[ModelSpec]
    """
    grid = []
    for p, d, q, P, D, Q in itertools.product(p_values, d_values, q_values, P_values, D_values, Q_values):
        spec = ModelSpec(p, d, q, P, D, Q, s if (P or D or Q) else 0)
        if spec not in grid:
            grid.append(spec)
    return grid


def default_candidate_grid(seasonal_period: int = 12) -> List[ModelSpec]:
    """The standard 36-model CPI grid: p,q in 0..2, d=1, P,Q in 0..1, D=1."""
    return build_candidate_grid(s=seasonal_period)


def fit_sarima(series, spec: ModelSpec, maxiter: int = 200,
               enforce_stationarity: bool = True, enforce_invertibility: bool = True) -> FittedModel:
    """
    Fit one SARIMA specification by maximum likelihood with statsmodels.

    Parameters:
    -----------
    series : pd.Series or TransformedSeries
        Undifferenced series (the model differences it according to d and D)
    spec : ModelSpec
        Orders to estimate
    maxiter : int
        Iteration limit of the first lbfgs pass; derivative-free restarts
        (Nelder-Mead, then Powell) get ten times as many

    Returns:
    --------
    FittedModel

    Raises:
    -------
    ConvergenceError
        When the specification cannot be estimated reliably
    """
    source = as_model_input(series)
    values = source.as_series()
    first_valid = values.first_valid_index()
    if first_valid is None:
        raise ConvergenceError("Series has no defined values", spec=spec)
    values = values.loc[first_valid:]

    nobs = int(values.notna().sum())
    n_eff = effective_nobs(nobs, spec)
    k = spec.n_params + 1  # ARMA coefficients + sigma2
    if n_eff - k - 1 <= 0:
        raise ConvergenceError("Not enough observations for the number of parameters",
                               spec=spec, nobs_effective=n_eff, k=k)

    try:
        model = SARIMAX(
            values,
            order=spec.order,
            seasonal_order=spec.seasonal_order,
            enforce_stationarity=enforce_stationarity,
            enforce_invertibility=enforce_invertibility,
        )
        with warnings.catch_warnings():
            warnings.simplefilter('ignore')
            results = model.fit(disp=False, maxiter=maxiter)
            # lbfgs stops early on line-search failures; restart derivative-free from where it stopped
            for method in RETRY_METHODS:
                if _converged(results):
                    break
                results = model.fit(start_params=np.asarray(results.params), method=method, disp=False,
                                    maxiter=maxiter * RETRY_MAXITER_FACTOR)
    except (np.linalg.LinAlgError, ValueError, IndexError, OverflowError) as e:
        raise ConvergenceError(f"Estimation failed: {e}", spec=spec) from e

    if not _converged(results):
        raise ConvergenceError("Optimizer did not converge", spec=spec,
                               methods=('lbfgs',) + RETRY_METHODS,
                               iterations=(results.mle_retvals or {}).get('iterations'))

    aic, bic, llf = float(results.aic), float(results.bic), float(results.llf)
    params = pd.Series(np.asarray(results.params, dtype=float), index=list(model.param_names))
    aicc = corrected_aic(aic, n_eff, len(params))
    if not all(np.isfinite(value) for value in (aic, bic, aicc, llf)):
        raise ConvergenceError("Non-finite likelihood or information criteria", spec=spec,
                               aic=aic, bic=bic, llf=llf)

    sigma2 = float(params['sigma2'])
    if not np.isfinite(sigma2) or sigma2 <= 0:
        raise ConvergenceError("Invalid innovation variance", spec=spec, sigma2=sigma2)

    return FittedModel(
        spec=spec,
        params=params,
        aic=aic,
        bic=bic,
        aicc=aicc,
        llf=llf,
        nobs=nobs,
        sigma2=sigma2,
        ar_polynomial=np.asarray(results.polynomial_reduced_ar, dtype=float).copy(),
        ma_polynomial=np.asarray(results.polynomial_reduced_ma, dtype=float).copy(),
        source=source,
        results=results,
    )


def choose_criterion(nobs: int, specs: Sequence[ModelSpec]) -> str:
    """
    AICc when the sample is small relative to any candidate, else AIC.

    The ratio uses each candidate's effective sample, nobs - d - D*s, against
    its parameter count p + q + P + Q + 1 (sigma2 included).
    """
    smallest_ratio = min(effective_nobs(nobs, spec) / (spec.n_params + 1) for spec in specs)
    return 'aicc' if smallest_ratio < AICC_RATIO_THRESHOLD else 'aic'


def _fit_one(fit: FitFunction, series: TransformedSeries, spec: ModelSpec,
             criterion: str) -> Union[FittedModel, FailedFit]:
    try:
        fitted = fit(series, spec)
    except ConvergenceError as e:
        return FailedFit(spec, e.message)
    if not np.isfinite(fitted.criterion(criterion)):
        return FailedFit(spec, f"non-finite {criterion}")
    return fitted


def rank_models(models: Iterable[FittedModel], criterion: str = 'aicc',
                tie_breakers: Sequence[str] = ('bic', 'n_params')) -> List[FittedModel]:
    """
    Sort fitted models ascending by the criterion, then by each tie-breaker,
    then by the orders themselves so the order never depends on input order.
    """
    def sort_key(model: FittedModel):
        return (model.criterion(criterion),) + tuple(model.criterion(name) for name in tie_breakers) \
            + model.spec.as_tuple()

    return sorted(models, key=sort_key)


def ranking_table(models: Sequence[FittedModel]) -> pd.DataFrame:
    columns = ['model', 'p', 'd', 'q', 'P', 'D', 'Q', 's', 'n_params', 'aic', 'bic', 'aicc', 'llf']
    table = pd.DataFrame([model.summary_row() for model in models], columns=columns)
    table['rank'] = np.arange(1, len(table) + 1)
    return table


def search_models(series, specs: Iterable[ModelSpec], fit: Optional[FitFunction] = None,
                  criterion: str = 'aicc', tie_breakers: Sequence[str] = ('bic', 'n_params'),
                  n_jobs: int = 1) -> SearchResult:
    """
    Fit every candidate specification and rank the ones that converged.

    Parameters:
    -----------
    series : pd.Series or TransformedSeries
        Undifferenced (log) series
    specs : Iterable[ModelSpec]
        Candidate grid
    fit : callable, optional
        Fitting primitive fit(series, spec) -> FittedModel, defaults to fit_sarima
    criterion : str
        'aicc', 'aic', 'bic' or 'auto'
    tie_breakers : Sequence[str]
        Secondary sort keys
    n_jobs : int
        Parallel workers (joblib); 1 fits sequentially

    Returns:
    --------
    SearchResult

    Raises:
    -------
    FitExhaustedError
        If no specification converged
    """
    specs = list(dict.fromkeys(specs))
    if not specs:
        raise ValueError("The candidate grid is empty")
    if criterion not in CRITERIA + ('auto',):
        raise ValueError(f"Unknown criterion {criterion!r}, expected one of {CRITERIA + ('auto',)}")
    unknown = [name for name in tie_breakers if name not in TIE_BREAKERS]
    if unknown:
        raise ValueError(f"Unknown tie-breakers {unknown}, expected names from {TIE_BREAKERS}")

    source = as_model_input(series)
    if criterion == 'auto':
        criterion = choose_criterion(int(source.values.notna().sum()), specs)
    fit = fit or fit_sarima

    print(f"\nPerforming grid search over {len(specs)} SARIMA specifications "
          f"(criterion: {criterion.upper()})...")

    if n_jobs == 1:
        outcomes = []
        for count, spec in enumerate(specs, start=1):
            outcomes.append(_fit_one(fit, source, spec, criterion))
            if count % 10 == 0:
                print(f"  Evaluated {count}/{len(specs)} models...")
    else:
        outcomes = Parallel(n_jobs=n_jobs)(
            delayed(_fit_one)(fit, source, spec, criterion) for spec in specs
        )

    fitted = [outcome for outcome in outcomes if isinstance(outcome, FittedModel)]
    failures = tuple(sorted((outcome for outcome in outcomes if isinstance(outcome, FailedFit)),
                            key=lambda failure: failure.spec.as_tuple()))

    for failure in failures:
        print(f"  Skipped {failure.spec.label}: {failure.reason}")

    if not fitted:
        raise FitExhaustedError("No candidate specification converged",
                                failures=failures, candidates=len(specs))

    ranked = tuple(rank_models(fitted, criterion, tie_breakers))
    table = ranking_table(ranked)

    print(f"\n{len(ranked)} of {len(specs)} models fitted successfully. "
          f"Top models by {criterion.upper()}:")
    print(table.head(5).to_string(index=False))

    return SearchResult(ranking=table, models=ranked, failures=failures, criterion=criterion)


def select_best(result: SearchResult) -> FittedModel:
    """Return the top-ranked model of a search."""
    best = result.best
    print(f"\nBest model: {best.label} with {result.criterion.upper()}={best.criterion(result.criterion):.3f}")
    return best
