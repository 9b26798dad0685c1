"""
NatGas Segmentation Test Suite

Tests organized by stage (tests/natgas/):
- test_eia_natgas.py — ingestion with faked HTTP, fail-fast policy
- test_normalize.py / test_validation.py — region labels and rule checks
- test_reshape.py / test_imputation.py / test_features.py — per-series stage
- test_decomposition_clustering.py — PCA round trip, k-means elbow
- test_smoke.py — end-to-end on synthetic data
"""
