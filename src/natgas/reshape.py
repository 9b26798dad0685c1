"""
Reshape the canonical observation table into one monthly series per key.
"""

from __future__ import annotations

from typing import NamedTuple

import pandas as pd


class SeriesKey(NamedTuple):
    region_code: str
    process: str


def to_monthly_series(df: pd.DataFrame, ds_col: str = "period", y_col: str = "value") -> pd.Series:
    """
    Single-series object: float pd.Series on a complete month-start index.

    Months absent from the table become NaN so imputation can see them.
    """
    if ds_col not in df.columns or y_col not in df.columns:
        raise ValueError(f"Expected columns: {ds_col}, {y_col}")

    ds = pd.to_datetime(df[ds_col], errors="raise")
    series = pd.Series(pd.to_numeric(df[y_col], errors="coerce").to_numpy(dtype=float), index=ds)
    series = series.sort_index()

    if series.index.has_duplicates:
        dupes = series.index[series.index.duplicated()].unique().tolist()
        raise ValueError(f"Duplicate periods in series: {dupes[:5]}")

    full_index = pd.date_range(series.index.min(), series.index.max(), freq="MS")
    return series.reindex(full_index)


def build_series_map(
    df: pd.DataFrame,
    region_col: str = "region_code",
    process_col: str = "process",
) -> dict[SeriesKey, pd.Series]:
    """Group observations by (region_code, process), ordered by key."""
    missing = [c for c in (region_col, process_col, "period", "value") if c not in df.columns]
    if missing:
        raise ValueError(f"Missing required columns: {missing}")

    series_map: dict[SeriesKey, pd.Series] = {}
    for (region, process), group in df.groupby([region_col, process_col], sort=True):
        key = SeriesKey(str(region), str(process))
        try:
            series_map[key] = to_monthly_series(group).rename(f"{key.region_code}_{key.process}")
        except ValueError as e:
            raise ValueError(f"{key}: {e}") from e
    return series_map
