# file: src/natgas/features.py
"""
Per-series statistical features (tsfeatures-style) built on statsmodels.

Feature groups, frequency = 12 for monthly data:
- STL: trend/seasonal strength, spike, linearity, curvature, remainder ACF,
  seasonal peak/trough position
- ARCH: R^2 of the squared demeaned series regressed on its own lags
- ACF: autocorrelations of the series and its first/second differences
- Nonlinearity: Terasvirta neural-network test statistic
- PACF: partial autocorrelations of the series and its differences

FEATURE_COLUMNS is the declared schema; downstream stages select by these
names, never by position.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Dict, List, Mapping, Tuple

import numpy as np
import pandas as pd
import statsmodels.api as sm
from statsmodels.tsa.seasonal import STL
from statsmodels.tsa.stattools import acf, pacf

from src.natgas.imputation import impute_series, passes_missing_gate
from src.natgas.reshape import SeriesKey

logger = logging.getLogger(__name__)

STL_COLUMNS = [
    "trend",
    "spike",
    "linearity",
    "curvature",
    "e_acf1",
    "e_acf10",
    "seasonal_strength",
    "peak",
    "trough",
]
ARCH_COLUMNS = ["arch_lm"]
ACF_COLUMNS = [
    "x_acf1",
    "x_acf10",
    "diff1_acf1",
    "diff1_acf10",
    "diff2_acf1",
    "diff2_acf10",
    "seas_acf1",
]
NONLINEARITY_COLUMNS = ["nonlinearity"]
PACF_COLUMNS = ["x_pacf5", "diff1x_pacf5", "diff2x_pacf5", "seas_pacf"]

FEATURE_COLUMNS: List[str] = (
    STL_COLUMNS + ARCH_COLUMNS + ACF_COLUMNS + NONLINEARITY_COLUMNS + PACF_COLUMNS
)
METADATA_COLUMNS = ["nperiods", "frequency", "seasonal_period"]
ID_COLUMNS = ["region", "process"]

# Relative tolerance under which a variance or residual sum is treated as zero.
_EPS = 1e-12


def min_length(freq: int) -> int:
    """Shortest series the feature set supports (two full seasons + 2)."""
    return 2 * freq + 2


def _is_constant(x: np.ndarray) -> bool:
    if len(x) == 0:
        return True
    return float(np.ptp(x)) <= 1e-10 * max(1.0, float(np.abs(x).max()))


def _acf(x: np.ndarray, nlags: int) -> np.ndarray:
    """Sample ACF; a constant sequence has no correlation structure (zeros)."""
    if _is_constant(x):
        return np.r_[1.0, np.zeros(nlags)]
    return acf(x, nlags=nlags, fft=False)


def _pacf(x: np.ndarray, nlags: int) -> np.ndarray:
    if _is_constant(x):
        return np.r_[1.0, np.zeros(nlags)]
    return pacf(x, nlags=nlags, method="ldb")


def _embed(x: np.ndarray, dimension: int) -> np.ndarray:
    """Column j holds x lagged by j periods (R's embed)."""
    n = len(x)
    return np.column_stack([x[dimension - 1 - j: n - j] for j in range(dimension)])


def _orthogonal_poly(t: np.ndarray, degree: int) -> np.ndarray:
    """Orthonormal polynomial basis without the constant column (R's poly)."""
    tc = t - t.mean()
    vander = np.vander(tc, degree + 1, increasing=True)
    q, r = np.linalg.qr(vander)
    z = q * np.diag(r)
    z = z / np.sqrt((z ** 2).sum(axis=0))
    return z[:, 1:]


def _strength(remainder: np.ndarray, component_plus_remainder: np.ndarray, scale: float) -> float:
    denom = np.var(component_plus_remainder, ddof=1)
    if denom <= _EPS * scale:
        return 0.0
    return float(max(0.0, 1.0 - np.var(remainder, ddof=1) / denom))


def _cycle_position(index: int, freq: int, start_month: int) -> int:
    return (start_month - 1 + index) % freq + 1


def stl_features(x: np.ndarray, freq: int = 12, start_month: int = 1) -> Dict[str, float]:
    """STL strengths, trend shape and remainder ACF; peak/trough are calendar months (1..freq)."""
    n = len(x)
    fit = STL(x, period=freq).fit()
    trend = np.asarray(fit.trend)
    seasonal = np.asarray(fit.seasonal)
    remainder = np.asarray(fit.resid)

    scale = max(float(np.var(x, ddof=1)), 1.0)
    trend_strength = _strength(remainder, trend + remainder, scale)
    seasonal_strength = _strength(remainder, seasonal + remainder, scale)

    vare = np.var(remainder, ddof=1)
    d = (remainder - remainder.mean()) ** 2
    varloo = (vare * (n - 1) - d) / (n - 2)
    spike = float(np.var(varloo, ddof=1))

    basis = sm.add_constant(_orthogonal_poly(np.arange(1, n + 1, dtype=float), 2), has_constant="add")
    coef, *_ = np.linalg.lstsq(basis, trend, rcond=None)

    acf_rem = _acf(remainder, 10)

    return {
        "nperiods": 1,
        "seasonal_period": freq,
        "trend": trend_strength,
        "spike": spike,
        "linearity": float(coef[1]),
        "curvature": float(coef[2]),
        "e_acf1": float(acf_rem[1]),
        "e_acf10": float(np.sum(acf_rem[1:11] ** 2)),
        "seasonal_strength": seasonal_strength,
        "peak": _cycle_position(int(np.argmax(seasonal)), freq, start_month),
        "trough": _cycle_position(int(np.argmin(seasonal)), freq, start_month),
    }


def arch_stat(x: np.ndarray, lags: int = 12) -> Dict[str, float]:
    if len(x) <= lags + 1:
        return {"arch_lm": np.nan}

    mat = _embed((x - x.mean()) ** 2, lags + 1)
    y = mat[:, 0]
    if _is_constant(y):
        return {"arch_lm": 0.0}

    fit = sm.OLS(y, sm.add_constant(mat[:, 1:], has_constant="add")).fit()
    return {"arch_lm": float(fit.rsquared)}


def acf_features(x: np.ndarray, freq: int = 12) -> Dict[str, float]:
    nlags = max(freq, 10)
    acfx = _acf(x, nlags)
    acfdiff1 = _acf(np.diff(x, n=1), 10)
    acfdiff2 = _acf(np.diff(x, n=2), 10)

    return {
        "x_acf1": float(acfx[1]),
        "x_acf10": float(np.sum(acfx[1:11] ** 2)),
        "diff1_acf1": float(acfdiff1[1]),
        "diff1_acf10": float(np.sum(acfdiff1[1:11] ** 2)),
        "diff2_acf1": float(acfdiff2[1]),
        "diff2_acf10": float(np.sum(acfdiff2[1:11] ** 2)),
        "seas_acf1": float(acfx[freq]) if freq > 1 else np.nan,
    }


def terasvirta_statistic(x: np.ndarray) -> float:
    """Chi-square form of the Terasvirta test with one lag on the scaled series."""
    z = (x - x.mean()) / np.std(x, ddof=1)
    mat = _embed(z, 2)
    y = mat[:, 0]
    lagged = mat[:, 1]

    X = sm.add_constant(lagged, has_constant="add")
    u = sm.OLS(y, X).fit().resid
    ssr0 = float(np.sum(u ** 2))
    # A perfect linear fit leaves nothing for the nonlinear terms to explain.
    if ssr0 <= _EPS * float(np.sum((y - y.mean()) ** 2)):
        return 0.0

    X_nn = np.column_stack([X, lagged ** 2, lagged ** 3])
    v = sm.OLS(u, X_nn).fit().resid
    ssr = float(np.sum(v ** 2))
    if ssr <= 0:
        return 0.0
    return len(x) * float(np.log(ssr0 / ssr))


def nonlinearity(x: np.ndarray) -> Dict[str, float]:
    return {"nonlinearity": 10 * terasvirta_statistic(x) / len(x)}


def pacf_features(x: np.ndarray, freq: int = 12) -> Dict[str, float]:
    nlags = max(freq, 5)
    pacfx = _pacf(x, nlags)
    pacfdiff1 = _pacf(np.diff(x, n=1), 5)
    pacfdiff2 = _pacf(np.diff(x, n=2), 5)

    return {
        "x_pacf5": float(np.sum(pacfx[1:6] ** 2)),
        "diff1x_pacf5": float(np.sum(pacfdiff1[1:6] ** 2)),
        "diff2x_pacf5": float(np.sum(pacfdiff2[1:6] ** 2)),
        "seas_pacf": float(pacfx[freq]) if freq > 1 else np.nan,
    }


def compute_features(values: np.ndarray, freq: int = 12, start_month: int = 1) -> Dict[str, float]:
    """
    Full feature vector for one complete (no NaN) series, in schema order.

    start_month is the cycle position (1..freq) of the first observation, so
    peak and trough line up across series that start in different months.

    Raises:
        ValueError: series contains NaN, is too short, or is constant
    """
    x = np.asarray(values, dtype=float)
    if np.isnan(x).any():
        raise ValueError("compute_features requires a series without missing values")
    if len(x) < min_length(freq):
        raise ValueError(f"Series too short: {len(x)} < {min_length(freq)} observations")
    if _is_constant(x):
        raise ValueError("Series is constant")

    combined: Dict[str, float] = {}
    combined.update(stl_features(x, freq, start_month))
    combined.update(arch_stat(x))
    combined.update(acf_features(x, freq))
    combined.update(nonlinearity(x))
    combined.update(pacf_features(x, freq))

    for col in METADATA_COLUMNS:
        combined.pop(col, None)
    return {col: combined[col] for col in FEATURE_COLUMNS}


def _start_month(series: pd.Series, freq: int) -> int:
    if freq == 12 and isinstance(series.index, pd.DatetimeIndex) and len(series.index):
        return int(series.index[0].month)
    return 1


def extract_series_features(
    key: SeriesKey,
    series: pd.Series,
    freq: int = 12,
    max_missing_ratio: float = 0.10,
) -> Dict[str, object]:
    """
    Gate -> impute -> compute for one series.

    Failures never raise: the row carries success=False and no feature values.
    """
    row: Dict[str, object] = {"region": key.region_code, "process": key.process}
    values = series.to_numpy(dtype=float)

    if not passes_missing_gate(values, max_missing_ratio):
        logger.warning(
            "[features][GATE] %s_%s failed missing-value gate (missing=%d zeros=%d n=%d)",
            key.region_code, key.process,
            int(np.isnan(values).sum()), int((values == 0).sum()), len(values),
        )
        row["success"] = False
        return row

    try:
        filled = impute_series(values, season=freq)
        features = compute_features(filled, freq, start_month=_start_month(series, freq))
    except ValueError as e:
        logger.warning("[features][FAIL] %s_%s: %s", key.region_code, key.process, e)
        row["success"] = False
        return row

    row.update(features)
    row["success"] = True
    return row


def extract_features(
    series_map: Mapping[SeriesKey, pd.Series],
    freq: int = 12,
    max_missing_ratio: float = 0.10,
    max_workers: int = 1,
) -> pd.DataFrame:
    """One feature row per series key, in key iteration order."""
    items = list(series_map.items())

    def _run_one(item: Tuple[SeriesKey, pd.Series]) -> Dict[str, object]:
        key, series = item
        return extract_series_features(key, series, freq=freq, max_missing_ratio=max_missing_ratio)

    if max_workers > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            rows = list(executor.map(_run_one, items))
    else:
        rows = [_run_one(item) for item in items]

    df = pd.DataFrame(rows, columns=ID_COLUMNS + FEATURE_COLUMNS + ["success"])
    df["success"] = df["success"].astype(bool)

    n_ok = int(df["success"].sum())
    logger.info("[features] series=%d success=%d failed=%d", len(df), n_ok, len(df) - n_ok)
    return df


@dataclass(frozen=True)
class CleaningSummary:
    n_input: int
    n_after_dropna: int
    n_output: int

    @property
    def n_dropped(self) -> int:
        return self.n_input - self.n_output


def clean_features(df: pd.DataFrame) -> Tuple[pd.DataFrame, CleaningSummary]:
    """Drop rows with any null, then failed rows, then the success column."""
    n_input = len(df)
    no_nulls = df.dropna(how="any")
    n_after_dropna = len(no_nulls)

    cleaned = no_nulls[no_nulls["success"].astype(bool)]
    cleaned = cleaned.drop(columns=["success"]).reset_index(drop=True)

    summary = CleaningSummary(n_input=n_input, n_after_dropna=n_after_dropna, n_output=len(cleaned))
    logger.info(
        "[features][CLEAN] rows before=%d after_dropna=%d after=%d",
        summary.n_input, summary.n_after_dropna, summary.n_output,
    )
    return cleaned, summary
