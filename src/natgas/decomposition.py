"""
Principal component analysis over the cleaned feature table.

Centering and unit-variance scaling are fit on the feature block, PCA keeps
the full component set for variance reporting, and only the first
``n_keep`` component scores are appended to the table.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np
import pandas as pd
from sklearn.decomposition import PCA
from sklearn.preprocessing import StandardScaler

from src.natgas.features import FEATURE_COLUMNS

logger = logging.getLogger(__name__)


@dataclass
class PCAResult:
    feature_columns: List[str]
    scores: pd.DataFrame          # all component scores, PC1..PCn
    variance: pd.DataFrame        # component, std_dev, proportion, cumulative
    center: pd.Series
    scale: pd.Series
    components: np.ndarray        # (n_components, n_features)
    pca_mean: np.ndarray
    augmented: pd.DataFrame       # input table + PC1..PC{n_keep}


def select_feature_block(df: pd.DataFrame, feature_columns: Optional[Sequence[str]] = None) -> pd.DataFrame:
    """Select the numeric feature block by name; missing names fail loud."""
    cols = list(feature_columns) if feature_columns is not None else list(FEATURE_COLUMNS)
    missing = [c for c in cols if c not in df.columns]
    if missing:
        raise ValueError(f"Missing feature columns: {missing}")
    return df[cols].astype(float)


def run_pca(
    df: pd.DataFrame,
    feature_columns: Optional[Sequence[str]] = None,
    n_keep: int = 3,
) -> PCAResult:
    X = select_feature_block(df, feature_columns)
    if X.isna().any().any():
        raise ValueError("PCA input contains nulls; run clean_features first")

    n_components = min(X.shape)
    if n_components < n_keep:
        raise ValueError(
            f"Need at least {n_keep} rows and features for PCA, got shape {X.shape}"
        )

    scaler = StandardScaler()
    X_scaled = scaler.fit_transform(X.to_numpy())

    pca = PCA(n_components=n_components)
    scores = pca.fit_transform(X_scaled)

    pc_names = [f"PC{i + 1}" for i in range(n_components)]
    scores_df = pd.DataFrame(scores, columns=pc_names, index=df.index)

    variance = pd.DataFrame(
        {
            "component": pc_names,
            "std_dev": np.sqrt(pca.explained_variance_),
            "proportion": pca.explained_variance_ratio_,
            "cumulative": np.cumsum(pca.explained_variance_ratio_),
        }
    )

    augmented = df.copy()
    for name in pc_names[:n_keep]:
        augmented[name] = scores_df[name]

    logger.info(
        "[pca] rows=%d features=%d kept=%d cumulative_variance=%.3f",
        X.shape[0], X.shape[1], n_keep, float(variance["cumulative"].iloc[n_keep - 1]),
    )

    return PCAResult(
        feature_columns=list(X.columns),
        scores=scores_df,
        variance=variance,
        center=pd.Series(scaler.mean_, index=X.columns),
        scale=pd.Series(scaler.scale_, index=X.columns),
        components=pca.components_,
        pca_mean=pca.mean_,
        augmented=augmented,
    )


def reconstruct_scaled(result: PCAResult) -> np.ndarray:
    """Scaled feature matrix rebuilt from every retained component."""
    return result.scores.to_numpy() @ result.components + result.pca_mean


def reconstruct_features(result: PCAResult) -> pd.DataFrame:
    """Original-unit feature matrix rebuilt from scores, scale and center."""
    scaled = reconstruct_scaled(result)
    original = scaled * result.scale.to_numpy() + result.center.to_numpy()
    return pd.DataFrame(original, columns=result.feature_columns, index=result.scores.index)
