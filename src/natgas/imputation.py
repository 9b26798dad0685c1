"""
Missing-value gate and imputation for monthly series.

Imputation order matters:
1. The first position of every run of consecutive missing values is filled
   with the mean of the values 12, 24 and 36 periods earlier (prior-year
   seasonal analogues). If any lookback index falls before the start of the
   series, or lands on a missing value, the run start is left for step 2.
2. Remaining gaps are filled left to right: interior positions take the
   mean of their neighbors, the last position takes the mean of the values
   12 and 24 periods earlier.

Anything still unfillable raises ImputationError.
"""

from __future__ import annotations

from typing import List

import numpy as np

SEASONAL_LAGS = (1, 2, 3)
TAIL_LAGS = (1, 2)


class ImputationError(ValueError):
    """Raised when a missing position cannot be filled from the series history."""


def missing_positions(values: np.ndarray) -> np.ndarray:
    return np.flatnonzero(np.isnan(values))


def zero_positions(values: np.ndarray) -> np.ndarray:
    return np.flatnonzero(values == 0)


def missing_runs(positions: np.ndarray) -> List[np.ndarray]:
    """Split sorted positions into runs of adjacent indices."""
    if len(positions) == 0:
        return []
    breaks = np.flatnonzero(np.diff(positions) != 1) + 1
    return np.split(np.asarray(positions), breaks)


def passes_missing_gate(values: np.ndarray, max_missing_ratio: float = 0.10) -> bool:
    """
    True when the series may proceed to feature computation.

    Complete series always pass. Series with gaps pass only when the gaps are
    fewer than ``max_missing_ratio`` of the length and no value is zero.
    """
    n_missing = len(missing_positions(values))
    if n_missing == 0:
        return True
    if n_missing >= max_missing_ratio * len(values):
        return False
    return len(zero_positions(values)) == 0


def _lookback_mean(x: np.ndarray, i: int, season: int, multiples: tuple[int, ...]) -> float:
    idx = [i - season * m for m in multiples]
    if min(idx) < 0:
        return np.nan
    window = x[idx]
    if np.isnan(window).any():
        return np.nan
    return float(window.mean())


def impute_series(values: np.ndarray, season: int = 12) -> np.ndarray:
    """Return a copy of ``values`` with every NaN filled (see module docstring)."""
    x = np.asarray(values, dtype=float).copy()
    positions = missing_positions(x)
    if len(positions) == 0:
        return x

    for run in missing_runs(positions):
        start = int(run[0])
        x[start] = _lookback_mean(x, start, season, SEASONAL_LAGS)

    n = len(x)
    for i in missing_positions(x):
        i = int(i)
        if i == n - 1:
            filled = _lookback_mean(x, i, season, TAIL_LAGS)
            if np.isnan(filled):
                raise ImputationError(
                    f"Cannot fill last position {i}: needs observed values {season} and {2 * season} periods earlier"
                )
        elif i == 0:
            raise ImputationError("Cannot fill position 0: no left neighbor and no seasonal history")
        else:
            filled = (x[i - 1] + x[i + 1]) / 2
            if np.isnan(filled):
                raise ImputationError(
                    f"Cannot fill position {i}: right neighbor {i + 1} is also missing"
                )
        x[i] = filled

    return x
