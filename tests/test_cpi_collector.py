import pandas as pd
import pytest

from collectors.cpi_collector import load_cpi_series
from errors import DataLoadError


def test_loads_and_sorts_monthly_series(write_cpi_csv):
    path = write_cpi_csv([('2020-03-01', 101.2), ('2020-01-01', 100.0), ('2020-02-01', 100.5)])

    series = load_cpi_series(path)

    assert list(series.values) == [100.0, 100.5, 101.2]
    assert series.index[0] == pd.Timestamp('2020-01-01')
    assert series.index.freqstr == 'MS'
    assert series.index.is_monotonic_increasing


def test_dates_truncated_to_month_start(write_cpi_csv):
    path = write_cpi_csv([('2021-01-15', 100.0), ('2021-02-28', 100.4), ('2021-03', 100.9)])

    series = load_cpi_series(path)

    assert list(series.index) == list(pd.date_range('2021-01-01', periods=3, freq='MS'))


def test_semicolon_delimiter_is_sniffed(write_cpi_csv):
    rows = [(f'2019-{month:02d}', 100 + month) for month in range(1, 13)]
    path = write_cpi_csv(rows, header='time;cpi', sep=';')

    series = load_cpi_series(path)

    assert len(series) == 12
    assert series.iloc[-1] == 112


def test_french_decimal_comma(write_cpi_csv):
    path = write_cpi_csv([('2019-01', '100,5'), ('2019-02', '100,75')], header='time;cpi', sep=';')

    series = load_cpi_series(path, sep=';', decimal=',')

    assert series.tolist() == [100.5, 100.75]


def test_custom_column_names(write_cpi_csv):
    path = write_cpi_csv([('2019-01', 100.0), ('2019-02', 101.0)], header='date,index_value')

    series = load_cpi_series(path, time_col='date', value_col='index_value')

    assert series.name == 'index_value'
    assert len(series) == 2


def test_missing_file(tmp_path):
    with pytest.raises(DataLoadError, match='not found'):
        load_cpi_series(str(tmp_path / 'absent.csv'))


def test_missing_column(write_cpi_csv):
    path = write_cpi_csv([('2019-01', 100.0)], header='time,value')

    with pytest.raises(DataLoadError) as excinfo:
        load_cpi_series(path)

    assert excinfo.value.details['missing'] == ['cpi']
    assert excinfo.value.stage == 'data_loader'


def test_duplicate_month(write_cpi_csv):
    path = write_cpi_csv([('2019-01-01', 100.0), ('2019-01-20', 100.1), ('2019-02-01', 100.2)])

    with pytest.raises(DataLoadError, match='Duplicate months'):
        load_cpi_series(path)


def test_gap_in_months(write_cpi_csv):
    path = write_cpi_csv([('2019-01', 100.0), ('2019-02', 100.1), ('2019-04', 100.3)])

    with pytest.raises(DataLoadError, match='Gaps') as excinfo:
        load_cpi_series(path)

    assert excinfo.value.details['months'] == ['2019-03']


def test_non_numeric_value(write_cpi_csv):
    path = write_cpi_csv([('2019-01', 100.0), ('2019-02', 'n/a')])

    with pytest.raises(DataLoadError, match='non-numeric'):
        load_cpi_series(path)


def test_unparseable_date(write_cpi_csv):
    path = write_cpi_csv([('2019-01', 100.0), ('not a date', 100.1)])

    with pytest.raises(DataLoadError, match='Unparseable dates'):
        load_cpi_series(path)


def test_single_column_header_reports_real_column(write_cpi_csv):
    path = write_cpi_csv([(100.0,), (100.2,)], header='cpi')

    with pytest.raises(DataLoadError) as excinfo:
        load_cpi_series(path)

    assert excinfo.value.details['missing'] == ['time']
    assert excinfo.value.details['columns'] == ['cpi']
