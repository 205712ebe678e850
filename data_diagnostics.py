"""
French CPI SARIMA Analysis - Residual Diagnostics
-------------------------------------------------
Post-estimation checks on the selected SARIMA model: innovation residuals,
Ljung-Box test for remaining autocorrelation and a distributional summary
(mean, skewness, kurtosis, Jarque-Bera). Only the Ljung-Box verdict is a
pass/fail signal; the distribution checks are reported for inspection.
"""

from dataclasses import dataclass

import numpy as np
import pandas as pd
from scipy import stats
from statsmodels.stats.diagnostic import acorr_ljungbox

from arima_model import FittedModel


@dataclass(frozen=True)
class LjungBoxResult:
    statistic: float
    pvalue: float
    lags: int
    model_df: int
    alpha: float

    @property
    def degrees_of_freedom(self) -> int:
        return self.lags - self.model_df

    @property
    def no_autocorrelation(self) -> bool:
        return self.pvalue > self.alpha

    @property
    def verdict(self) -> str:
        if self.no_autocorrelation:
            return 'no significant residual autocorrelation'
        return 'significant residual autocorrelation'


@dataclass(frozen=True)
class ResidualDistribution:
    nobs: int
    mean: float
    std: float
    skewness: float
    excess_kurtosis: float
    jarque_bera: float
    jarque_bera_pvalue: float
    alpha: float = 0.05

    @property
    def mean_near_zero(self) -> bool:
        """Mean within two standard errors of zero."""
        if self.nobs < 2 or self.std == 0:
            return abs(self.mean) == 0
        return abs(self.mean) <= 2 * self.std / np.sqrt(self.nobs)

    @property
    def approximately_normal(self) -> bool:
        return self.jarque_bera_pvalue > self.alpha


@dataclass(frozen=True)
class DiagnosticsReport:
    model_label: str
    residuals: pd.Series
    ljung_box: LjungBoxResult
    distribution: ResidualDistribution

    @property
    def passed(self) -> bool:
        return self.ljung_box.no_autocorrelation


def extract_residuals(fitted: FittedModel) -> pd.Series:
    """
    One-step-ahead innovation residuals on the fitted series' index.

    The first d + D*s residuals come from the diffuse start of the
    differencing states and are set to NaN.
    """
    if fitted.results is None:
        raise ValueError(f"{fitted.label} carries no estimation results to extract residuals from")

    source_index = fitted.source.index
    first_valid = fitted.source.values.first_valid_index()
    start = source_index.get_loc(first_valid) if first_valid is not None else len(source_index)

    resid = fitted.results.resid
    if not isinstance(resid, pd.Series):
        resid = pd.Series(np.asarray(resid, dtype=float), index=source_index[start:start + len(resid)])
    residuals = resid.astype(float).reindex(source_index)

    burn_in_end = min(start + fitted.spec.burn_in, len(residuals))
    residuals.iloc[:burn_in_end] = np.nan
    residuals.name = 'residual'
    return residuals


def ljung_box_test(residuals: pd.Series, lags: int = 24, model_df: int = 0, alpha: float = 0.05) -> LjungBoxResult:
    """
    Ljung-Box portmanteau test at a single lag.

    Parameters:
    -----------
    residuals : pd.Series
        Residuals, missing values are dropped
    lags : int
        Number of autocorrelation lags in the statistic
    model_df : int
        Estimated ARMA parameters, subtracted from the chi-squared degrees of freedom
    alpha : float
        Significance level

    Returns:
    --------
    LjungBoxResult
    """
    values = pd.Series(residuals).dropna()
    if lags - model_df <= 0:
        raise ValueError(f"Ljung-Box needs lags > model_df, got lags={lags}, model_df={model_df}")
    if len(values) <= lags:
        raise ValueError(f"Ljung-Box with {lags} lags needs more than {lags} residuals, got {len(values)}")

    lb_test = acorr_ljungbox(values, lags=[lags], model_df=model_df, return_df=True)
    return LjungBoxResult(
        statistic=float(lb_test['lb_stat'].iloc[0]),
        pvalue=float(lb_test['lb_pvalue'].iloc[0]),
        lags=lags,
        model_df=model_df,
        alpha=alpha,
    )


def residual_distribution(residuals: pd.Series, alpha: float = 0.05) -> ResidualDistribution:
    """Mean, spread, shape and Jarque-Bera normality test of the residuals."""
    values = pd.Series(residuals).dropna().to_numpy(dtype=float)
    if len(values) < 3:
        raise ValueError(f"Need at least 3 residuals for a distribution summary, got {len(values)}")

    jb_stat, jb_pvalue = stats.jarque_bera(values)
    return ResidualDistribution(
        nobs=len(values),
        mean=float(np.mean(values)),
        std=float(np.std(values, ddof=1)),
        skewness=float(stats.skew(values)),
        excess_kurtosis=float(stats.kurtosis(values)),
        jarque_bera=float(jb_stat),
        jarque_bera_pvalue=float(jb_pvalue),
        alpha=alpha,
    )


def run_diagnostics(fitted: FittedModel, lags: int = 24, alpha: float = 0.05) -> DiagnosticsReport:
    """
    Run the residual checks on a fitted model and print the findings.

    Parameters:
    -----------
    fitted : FittedModel
        Selected model
    lags : int
        Ljung-Box lags (24 covers two seasonal cycles of monthly data)
    alpha : float
        Significance level

    Returns:
    --------
    DiagnosticsReport
    """
    print(f"\n--- Residual Diagnostics for {fitted.label} ---")
    residuals = extract_residuals(fitted)

    lb = ljung_box_test(residuals, lags=lags, model_df=fitted.n_params, alpha=alpha)
    print(f"Ljung-Box (lags={lb.lags}, df={lb.degrees_of_freedom}): "
          f"Q={lb.statistic:.4f}, p-value={lb.pvalue:.4f}")
    print(f"Result: {lb.verdict}")
    if not lb.no_autocorrelation:
        print("ACTION: Consider higher AR/MA orders; residuals still carry structure.")

    distribution = residual_distribution(residuals, alpha=alpha)
    print(f"Residual mean: {distribution.mean:.6f} (std {distribution.std:.6f})"
          f"{'' if distribution.mean_near_zero else ' - mean differs from zero'}")
    print(f"Skewness: {distribution.skewness:.4f}, excess kurtosis: {distribution.excess_kurtosis:.4f}")
    print(f"Jarque-Bera test p-value: {distribution.jarque_bera_pvalue:.4f}")
    if distribution.approximately_normal:
        print("Indication: Residuals appear to be normally distributed.")
    else:
        print("Indication: Residuals may not be normally distributed.")
    print("--- Residual Diagnostics Complete ---")

    return DiagnosticsReport(
        model_label=fitted.label,
        residuals=residuals,
        ljung_box=lb,
        distribution=distribution,
    )
