# file: src/natgas/config.py
"""
Configuration + Secrets

Keep EIA_API_KEY in env (prod) / .env (local).
Settings carries the secret, PipelineConfig carries everything else so every
run logs the same config.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from dotenv import find_dotenv, load_dotenv

API_KEY_ENV = "EIA_API_KEY"


@dataclass(frozen=True)
class Settings:
    """Secrets for the EIA API."""
    api_key: str

    def masked_key(self) -> str:
        if len(self.api_key) >= 8:
            return self.api_key[:4] + "..." + self.api_key[-4:]
        return "***"


def load_settings() -> Settings:
    """
    Load settings from environment.

    Reads EIA_API_KEY from a .env file (searched upward from the CWD) or the
    process environment. Fails before any request is made when the key is
    missing or blank.
    """
    dotenv_path = find_dotenv(usecwd=True)
    if dotenv_path:
        load_dotenv(dotenv_path, override=False)

    api_key = (os.getenv(API_KEY_ENV) or "").strip()
    if not api_key:
        raise EnvironmentError(
            f"{API_KEY_ENV} is missing. Add it to your environment or .env file."
        )
    return Settings(api_key=api_key)


@dataclass(frozen=True)
class PipelineConfig:
    # Data parameters
    route: str = "natural-gas/cons/sum"
    facet: str = "duoarea"
    freq: int = 12

    # IO
    data_dir: str = "data/natgas"
    overwrite: bool = False

    # Validation
    strict_validation: bool = False

    # Feature stage
    max_missing_ratio: float = 0.10
    max_workers: int = 1

    # PCA / clustering
    n_components_kept: int = 3
    k_min: int = 1
    k_max: int = 15
    n_init: int = 25
    random_state: int = 42

    def run_id(self) -> str:
        return datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")

    def k_values(self) -> range:
        return range(self.k_min, self.k_max + 1)

    def data_path(self) -> Path:
        return Path(self.data_dir)

    def raw_path(self) -> Path:
        return self.data_path() / "raw.parquet"

    def raw_csv_path(self) -> Path:
        return self.data_path() / "raw.csv"

    def observations_path(self) -> Path:
        return self.data_path() / "observations.parquet"

    def observations_csv_path(self) -> Path:
        return self.data_path() / "observations.csv"

    def features_all_path(self) -> Path:
        return self.data_path() / "features_all.parquet"

    def features_path(self) -> Path:
        return self.data_path() / "features.parquet"

    def features_csv_path(self) -> Path:
        return self.data_path() / "features.csv"

    def clusters_path(self) -> Path:
        return self.data_path() / "clusters.parquet"

    def clusters_csv_path(self) -> Path:
        return self.data_path() / "clusters.csv"

    def elbow_csv_path(self) -> Path:
        return self.data_path() / "elbow.csv"

    def pca_variance_csv_path(self) -> Path:
        return self.data_path() / "pca_variance.csv"

    def metadata_path(self) -> Path:
        return self.data_path() / "metadata.json"
