"""
K-means sweep over a range of cluster counts (elbow method).

The scaling input is the named feature block only; PCA columns and
identifiers never enter the distance computation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

import pandas as pd
from sklearn.cluster import KMeans
from sklearn.preprocessing import StandardScaler

from src.natgas.decomposition import select_feature_block

logger = logging.getLogger(__name__)


@dataclass
class ClusteringResult:
    augmented: pd.DataFrame   # input table + one label column per k
    elbow: pd.DataFrame       # k, tot_withinss


def cluster_column(k: int) -> str:
    return f"cluster_{k}"


def run_kmeans_sweep(
    df: pd.DataFrame,
    feature_columns: Optional[Sequence[str]] = None,
    k_values: Iterable[int] = range(1, 16),
    n_init: int = 25,
    random_state: int = 42,
) -> ClusteringResult:
    X = select_feature_block(df, feature_columns)
    if X.isna().any().any():
        raise ValueError("Clustering input contains nulls; run clean_features first")

    k_values = list(k_values)
    too_large = [k for k in k_values if k > len(X)]
    if too_large:
        raise ValueError(f"Cluster counts {too_large} exceed the number of rows ({len(X)})")

    X_scaled = StandardScaler().fit_transform(X.to_numpy())

    augmented = df.copy()
    elbow_rows = []
    for k in k_values:
        km = KMeans(n_clusters=k, n_init=n_init, random_state=random_state)
        labels = km.fit_predict(X_scaled)
        augmented[cluster_column(k)] = labels.astype(int)
        elbow_rows.append({"k": k, "tot_withinss": float(km.inertia_)})
        logger.info("[cluster] k=%d tot_withinss=%.3f", k, km.inertia_)

    return ClusteringResult(augmented=augmented, elbow=pd.DataFrame(elbow_rows, columns=["k", "tot_withinss"]))
