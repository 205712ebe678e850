import pytest

from arima_model import ModelSpec
from errors import (AnalysisError, ConvergenceError, DataLoadError, DomainError, FitExhaustedError,
                    StationarityTestError, TransformError)


@pytest.mark.parametrize('error_class, stage', [
    (DataLoadError, 'data_loader'),
    (DomainError, 'transform'),
    (TransformError, 'transform'),
    (StationarityTestError, 'stationarity'),
    (ConvergenceError, 'model_search'),
    (FitExhaustedError, 'model_search'),
])
def test_errors_carry_stage(error_class, stage):
    error = error_class('boom')

    assert isinstance(error, AnalysisError)
    assert error.stage == stage
    assert str(error).startswith(f'[{stage}] boom')


def test_details_in_message():
    error = DataLoadError('Required columns not found', path='cpi.csv', missing=['cpi'])

    assert str(error) == "[data_loader] Required columns not found (path=cpi.csv, missing=['cpi'])"
    assert error.details['missing'] == ['cpi']


def test_convergence_error_names_spec():
    spec = ModelSpec(1, 1, 1, 0, 1, 1, 12)

    error = ConvergenceError('Optimizer did not converge', spec=spec)

    assert error.spec == spec
    assert 'SARIMA(1,1,1)(0,1,1)[12]' in str(error)


def test_fit_exhausted_counts_failures():
    error = FitExhaustedError('No candidate specification converged', failures=['a', 'b'])

    assert error.failures == ('a', 'b')
    assert error.details['failed'] == 2
