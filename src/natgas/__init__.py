"""
Natural-gas consumption segmentation pipeline

Step-by-step modules:
1. config - Load API key and pipeline settings
2. eia_natgas - Metadata facets + paged monthly pulls from EIA
3. normalize / validation - Canonical region labels and rule checks
4. reshape / imputation / features - Per-series gap filling and features
5. decomposition / clustering - PCA and k-means elbow sweep
6. tasks / cli - Idempotent stages and the Typer CLI
"""

from .config import PipelineConfig, Settings, load_settings
from .features import FEATURE_COLUMNS, clean_features, compute_features, extract_features
from .imputation import ImputationError, impute_series, passes_missing_gate
from .reshape import SeriesKey, build_series_map

__all__ = [
    "PipelineConfig",
    "Settings",
    "load_settings",
    "FEATURE_COLUMNS",
    "clean_features",
    "compute_features",
    "extract_features",
    "ImputationError",
    "impute_series",
    "passes_missing_gate",
    "SeriesKey",
    "build_series_map",
]
