import pandas as pd
import pytest

from arima_model import ModelSpec
from backtesting import HoldoutEvaluation, evaluate_holdout, mean_absolute_percentage_error

AIRLINE = ModelSpec(0, 1, 1, 0, 1, 1, 12)


def test_mape():
    assert mean_absolute_percentage_error([100, 200], [110, 180]) == pytest.approx(10.0)
    assert mean_absolute_percentage_error([0, 100], [5, 90]) == pytest.approx(10.0)


def test_holdout_on_last_year(synthetic_cpi):
    evaluation = evaluate_holdout(synthetic_cpi, AIRLINE, test_size=12)

    assert evaluation.train_size == 84
    assert evaluation.test_size == 12
    pd.testing.assert_index_equal(evaluation.predictions.index, synthetic_cpi.index[-12:])
    assert evaluation.rmse >= 0 and evaluation.train_rmse > 0
    assert evaluation.mape < 5.0
    assert 0.0 <= evaluation.coverage_95 <= 1.0
    assert set(evaluation.to_dict()) == {'model_name', 'RMSE', 'MAE', 'MAPE', 'R2', 'Train_RMSE', 'Ratio',
                                         'Coverage_95'}


def test_overfitting_ratio():
    evaluation = HoldoutEvaluation(model_label='m', train_size=10, test_size=2, rmse=3.0, mae=2.0, mape=1.0,
                                   r2=0.5, train_rmse=1.0, coverage_95=1.0, predictions=pd.Series(dtype=float))

    assert evaluation.ratio == pytest.approx(3.0)
    assert evaluation.overfitting


@pytest.mark.parametrize('test_size', [0, 96, 120])
def test_invalid_test_size(synthetic_cpi, test_size):
    with pytest.raises(ValueError):
        evaluate_holdout(synthetic_cpi, AIRLINE, test_size=test_size)


def test_uses_supplied_fitting_primitive(synthetic_cpi, stub_fitter):
    fitter = stub_fitter({AIRLINE: (1.0, 1.0)})

    # Stub models carry no estimation results, so forecasting refuses them
    with pytest.raises(ValueError):
        evaluate_holdout(synthetic_cpi, AIRLINE, test_size=12, fit=fitter)
    assert fitter.calls == [AIRLINE]
