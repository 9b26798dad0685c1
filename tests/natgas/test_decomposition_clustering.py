"""Tests for PCA and the k-means elbow sweep."""

import numpy as np
import pandas as pd
import pytest
from sklearn.datasets import make_blobs
from sklearn.preprocessing import StandardScaler

from src.natgas.clustering import cluster_column, run_kmeans_sweep
from src.natgas.decomposition import (
    reconstruct_features,
    reconstruct_scaled,
    run_pca,
    select_feature_block,
)
from src.natgas.features import FEATURE_COLUMNS


def _feature_table(n_rows=40, seed=0, centers=None):
    if centers:
        X, _ = make_blobs(n_samples=n_rows, centers=centers, n_features=len(FEATURE_COLUMNS), random_state=seed)
    else:
        X = np.random.default_rng(seed).normal(size=(n_rows, len(FEATURE_COLUMNS)))
    df = pd.DataFrame(X, columns=FEATURE_COLUMNS)
    df.insert(0, "process", "VRS")
    df.insert(0, "region", [f"R{i:03d}" for i in range(n_rows)])
    return df


@pytest.fixture(scope="module")
def sweep():
    df = _feature_table(n_rows=150, centers=5)
    augmented = run_pca(df).augmented
    return augmented, run_kmeans_sweep(augmented, k_values=range(1, 16), n_init=25, random_state=42)

class TestSelectFeatureBlock:
    """Named selection of the feature block."""

    def test_selects_by_name_regardless_of_order(self):
        df = _feature_table()
        shuffled = df[["region", "process"] + FEATURE_COLUMNS[::-1]]
        block = select_feature_block(shuffled)
        assert list(block.columns) == FEATURE_COLUMNS

    @pytest.mark.fail_loud
    def test_missing_feature_raises(self):
        df = _feature_table().drop(columns=["trend"])
        with pytest.raises(ValueError, match="trend"):
            select_feature_block(df)


class TestPCA:
    """PCA over the scaled feature block."""

    def test_appends_first_three_components(self):
        df = _feature_table()
        result = run_pca(df)
        assert [c for c in result.augmented.columns if c.startswith("PC")] == ["PC1", "PC2", "PC3"]
        assert len(result.augmented) == len(df)
        assert list(result.augmented.columns[: len(df.columns)]) == list(df.columns)

    def test_variance_table(self):
        result = run_pca(_feature_table())
        variance = result.variance
        assert list(variance.columns) == ["component", "std_dev", "proportion", "cumulative"]
        assert len(variance) == len(FEATURE_COLUMNS)
        assert variance["cumulative"].iloc[-1] == pytest.approx(1.0)
        assert variance["proportion"].is_monotonic_decreasing

    def test_round_trip_reproduces_scaled_matrix(self):
        df = _feature_table()
        result = run_pca(df)
        expected = StandardScaler().fit_transform(df[FEATURE_COLUMNS].to_numpy())
        np.testing.assert_allclose(reconstruct_scaled(result), expected, atol=1e-10)

    def test_round_trip_with_fewer_rows_than_features(self):
        df = _feature_table(n_rows=8)
        result = run_pca(df)
        expected = StandardScaler().fit_transform(df[FEATURE_COLUMNS].to_numpy())
        np.testing.assert_allclose(reconstruct_scaled(result), expected, atol=1e-10)

    def test_reconstruct_original_units(self):
        df = _feature_table()
        result = run_pca(df)
        np.testing.assert_allclose(reconstruct_features(result).to_numpy(), df[FEATURE_COLUMNS].to_numpy(), atol=1e-8)

    @pytest.mark.fail_loud
    def test_nulls_raise(self):
        df = _feature_table()
        df.loc[0, "trend"] = np.nan
        with pytest.raises(ValueError, match="nulls"):
            run_pca(df)

    @pytest.mark.fail_loud
    def test_too_few_rows_raise(self):
        with pytest.raises(ValueError):
            run_pca(_feature_table(n_rows=2))


class TestKMeansSweep:
    """Elbow sweep over k = 1..15."""

    def test_one_label_column_per_k(self, sweep):
        _, result = sweep
        for k in range(1, 16):
            col = cluster_column(k)
            assert col in result.augmented.columns
            assert result.augmented[col].nunique() == k

    def test_k1_is_single_cluster(self, sweep):
        _, result = sweep
        assert (result.augmented["cluster_1"] == 0).all()

    def test_elbow_table(self, sweep):
        _, result = sweep
        assert result.elbow["k"].tolist() == list(range(1, 16))

    def test_withinss_non_increasing(self, sweep):
        _, result = sweep
        withinss = result.elbow["tot_withinss"].to_numpy()
        assert np.all(np.diff(withinss) <= 1e-8)

    def test_pca_columns_do_not_affect_labels(self, sweep):
        augmented, result = sweep
        shifted = augmented.copy()
        shifted[["PC1", "PC2", "PC3"]] = 1e6
        again = run_kmeans_sweep(shifted, k_values=[5], n_init=25, random_state=42)
        assert (again.augmented["cluster_5"] == result.augmented["cluster_5"]).all()

    def test_deterministic_for_seed(self, sweep):
        augmented, result = sweep
        again = run_kmeans_sweep(augmented, k_values=[3], n_init=25, random_state=42)
        assert (again.augmented["cluster_3"] == result.augmented["cluster_3"]).all()

    @pytest.mark.fail_loud
    def test_k_above_rows_raises(self):
        with pytest.raises(ValueError, match="exceed"):
            run_kmeans_sweep(_feature_table(n_rows=5), k_values=range(1, 7))
