"""
NatGas Segmentation - monthly natural-gas consumption features and clusters

Modules:
- natgas: EIA ingestion, region normalization, validation, per-series
  features, PCA and k-means (Typer CLI in natgas.cli)
"""
