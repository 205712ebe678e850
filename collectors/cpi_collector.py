# collectors/cpi_collector.py

import os
import pandas as pd

from errors import DataLoadError

DELIMITERS = ',;\t'


def _detect_separator(file_path):
    """Pick the field delimiter from the header line, ',' when it holds none of ',;\\t'."""
    with open(file_path, newline='') as f:
        header = f.readline()
    found = [delimiter for delimiter in DELIMITERS if delimiter in header]
    if not found:
        return ','
    return max(found, key=header.count)


def load_cpi_series(file_path="data/cpi_france.csv", time_col='time', value_col='cpi',
                    sep=None, decimal='.'):
    """
    Loads the monthly French Consumer Price Index from a delimited text file.

    Parameters:
    -----------
    file_path : str
        Path to the CPI table
    time_col : str
        Column holding the observation date (parsed to month granularity)
    value_col : str
        Column holding the index value
    sep : str or None
        Field delimiter, read from the header line when None (covers both
        the "," and ";" exports; a single-column header falls back to ",")
    decimal : str
        Decimal separator of the value column

    Returns:
    --------
    pd.Series
        CPI values indexed by month start, freq='MS'
    """
    print(f"Loading CPI data from {file_path}...")

    if not os.path.exists(file_path):
        raise DataLoadError("CPI data file not found", path=file_path)

    try:
        if sep is None:
            sep = _detect_separator(file_path)
        cpi_df = pd.read_csv(file_path, sep=sep, decimal=decimal)
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
        raise DataLoadError(f"Could not parse CPI table: {e}", path=file_path) from e

    # Standardize column names
    cpi_df.columns = [str(col).strip() for col in cpi_df.columns]

    missing = [col for col in (time_col, value_col) if col not in cpi_df.columns]
    if missing:
        raise DataLoadError("Required columns not found", path=file_path,
                            missing=missing, columns=list(cpi_df.columns))

    if cpi_df.empty:
        raise DataLoadError("CPI table has no rows", path=file_path)

    # Parse dates and truncate to the month
    dates = pd.to_datetime(cpi_df[time_col].astype(str).str.strip(), errors='coerce', format='mixed')
    bad_dates = cpi_df.loc[dates.isna(), time_col]
    if not bad_dates.empty:
        raise DataLoadError("Unparseable dates in time column", path=file_path,
                            column=time_col, values=bad_dates.head(5).tolist())
    months = dates.dt.to_period('M').dt.to_timestamp()

    values = pd.to_numeric(cpi_df[value_col], errors='coerce')
    bad_values = cpi_df.loc[values.isna(), value_col]
    if not bad_values.empty:
        raise DataLoadError("Missing or non-numeric CPI values", path=file_path,
                            column=value_col, rows=bad_values.index[:5].tolist())

    series = pd.Series(values.to_numpy(dtype=float), index=pd.DatetimeIndex(months), name=value_col)
    series.index.name = time_col

    # Sort by date
    series = series.sort_index()

    duplicated = series.index[series.index.duplicated()]
    if len(duplicated) > 0:
        raise DataLoadError("Duplicate months in CPI table", path=file_path,
                            months=[d.strftime('%Y-%m') for d in duplicated.unique()[:5]])

    expected = pd.date_range(series.index.min(), series.index.max(), freq='MS')
    gaps = expected.difference(series.index)
    if len(gaps) > 0:
        raise DataLoadError("Gaps in monthly CPI series", path=file_path,
                            months=[d.strftime('%Y-%m') for d in gaps[:5]], missing_count=len(gaps))

    series.index = expected
    series.index.name = time_col

    print(f"Loaded {len(series)} monthly observations from "
          f"{series.index.min():%Y-%m} to {series.index.max():%Y-%m}")
    return series
