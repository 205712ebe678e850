import json
import os

import pandas as pd
import pytest

import pipeline
from arima_model import ModelSpec
from config import AnalysisConfig

AIRLINE = ModelSpec(0, 1, 1, 0, 1, 1, 12)
AR_AIRLINE = ModelSpec(1, 1, 0, 0, 1, 1, 12)
# More coefficients than the 96-month series can identify
OVERSIZED = ModelSpec(50, 1, 50)


@pytest.fixture
def config(tmp_path):
    return AnalysisConfig(
        data_path=str(tmp_path / 'cpi.csv'),
        output_dir=str(tmp_path / 'outputs'),
        visualization_dir=str(tmp_path / 'figures'),
    )


def test_end_to_end(synthetic_cpi, config):
    result = pipeline.run_analysis(config, specs=[AIRLINE, OVERSIZED, AR_AIRLINE], series=synthetic_cpi)

    assert result.best.spec in (AIRLINE, AR_AIRLINE)
    assert OVERSIZED in result.search.failed_specs
    assert result.best.source.provenance == 'log'
    assert result.forecast_original.scale == 'original'
    assert result.holdout is not None and result.holdout.test_size == 12
    assert set(result.stationarity) == {'log', 'first_difference', 'seasonal_difference'}

    for path in result.files.values():
        assert os.path.exists(path)

    table = pd.read_csv(result.files['forecast'], index_col='month')
    assert len(table) == 36
    assert list(table.columns) == ['forecast', 'lower_80', 'upper_80', 'lower_95', 'upper_95']
    assert table.index[0] == '2023-01'
    assert (table['lower_95'] < table['forecast']).all()

    ranking = pd.read_csv(result.files['ranking'])
    assert list(ranking['rank']) == list(range(1, len(result.search.models) + 1))
    assert OVERSIZED.label not in set(ranking['model'])

    with open(result.files['record']) as f:
        record = json.load(f)
    assert OVERSIZED.label in record['failed_specifications']
    assert record['selected_model'] == result.best.label

    with open(result.files['summary']) as f:
        summary = f.read()
    assert result.best.label in summary
    assert 'Ljung-Box' in summary


def test_reads_csv_without_plots_or_holdout(synthetic_cpi, config):
    frame = pd.DataFrame({'time': synthetic_cpi.index.strftime('%Y-%m'), 'cpi': synthetic_cpi.values})
    frame.to_csv(config.data_path, index=False)
    config = config.with_overrides(make_plots=False, holdout_months=0, horizon=12)

    result = pipeline.run_analysis(config, specs=[AIRLINE])

    assert result.holdout is None
    assert result.forecast.horizon == 12
    assert 'forecast_plot' not in result.files
    assert not os.path.exists(config.visualization_dir)


def test_main_passes_data_path(monkeypatch):
    seen = {}
    monkeypatch.setattr(pipeline, 'run_analysis', lambda config: seen.setdefault('config', config))

    assert pipeline.main(['custom.csv']) == 0
    assert seen['config'].data_path == 'custom.csv'


def test_main_rejects_extra_arguments(capsys):
    assert pipeline.main(['a.csv', 'b.csv']) == 2
    assert 'Usage' in capsys.readouterr().out
