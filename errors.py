"""
French CPI SARIMA Analysis - Errors
-----------------------------------
Exceptions raised by the analysis stages. Every error records the stage that
raised it and the parameters involved (specification, transform, column...)
so a failure can be traced back without re-running the pipeline.
"""

from typing import Dict, Optional, Tuple


class AnalysisError(Exception):
    """Base class for all analysis errors."""

    stage = 'analysis'

    def __init__(self, message: str, **details):
        self.message = message
        self.details: Dict[str, object] = details
        super().__init__(self._format())

    def _format(self) -> str:
        text = f"[{self.stage}] {self.message}"
        if self.details:
            params = ', '.join(f"{key}={value}" for key, value in self.details.items())
            text = f"{text} ({params})"
        return text


class DataLoadError(AnalysisError):
    """The raw CPI table could not be turned into a monthly series."""

    stage = 'data_loader'


class DomainError(AnalysisError):
    """A transform received values outside its domain (log of x <= 0)."""

    stage = 'transform'


class TransformError(AnalysisError):
    """A transformed series cannot be inverted the way it was asked to."""

    stage = 'transform'


class StationarityTestError(AnalysisError):
    """A unit-root or stationarity test could not be computed."""

    stage = 'stationarity'


class ConvergenceError(AnalysisError):
    """A single SARIMA specification failed to fit."""

    stage = 'model_search'

    def __init__(self, message: str, spec=None, **details):
        self.spec = spec
        if spec is not None:
            details = {'spec': getattr(spec, 'label', spec), **details}
        super().__init__(message, **details)


class FitExhaustedError(AnalysisError):
    """No specification of the candidate grid could be fitted."""

    stage = 'model_search'

    def __init__(self, message: str, failures: Optional[Tuple] = None, **details):
        self.failures = tuple(failures or ())
        details.setdefault('failed', len(self.failures))
        super().__init__(message, **details)
