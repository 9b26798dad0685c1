# file: src/natgas/tasks.py
"""
Idempotent Pipeline Tasks

Each task reads the previous stage's Parquet snapshot and writes its own
Parquet + CSV pair, so stages can be rerun independently:

    ingest_raw -> prepare_observations -> build_features -> cluster_features

Writes are atomic; an existing output is reused unless config.overwrite.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

import pandas as pd

from src.natgas.clustering import run_kmeans_sweep
from src.natgas.config import PipelineConfig, Settings, load_settings
from src.natgas.decomposition import run_pca
from src.natgas.eia_natgas import RAW_COLUMNS, EIANaturalGasFetcher
from src.natgas.features import FEATURE_COLUMNS, ID_COLUMNS, clean_features, extract_features
from src.natgas.io_utils import atomic_write_csv, atomic_write_parquet, ensure_dir, update_json
from src.natgas.normalize import canonicalize_regions
from src.natgas.reshape import build_series_map
from src.natgas.validation import (CANONICAL_RULES, RAW_RULES, ValidationReport, all_passed,
                                   log_validation_reports, run_rules)

logger = logging.getLogger(__name__)

OBSERVATION_CSV_COLUMNS = [
    "region_code",
    "region_name",
    "process",
    "process_name",
    "period",
    "value",
    "units",
]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _check_reports(reports: List[ValidationReport], *, stage: str, config: PipelineConfig) -> None:
    log_validation_reports(reports, stage=stage)
    if config.strict_validation and not all_passed(reports):
        failed = [r.message for r in reports if not r.ok]
        raise ValueError(f"[{stage}] validation failed (strict mode): {failed}")


def _reports_payload(reports: List[ValidationReport]) -> List[Dict]:
    return [{**r.details, "rule": r.message, "ok": r.ok} for r in reports]


def ingest_raw(
    config: PipelineConfig,
    settings: Optional[Settings] = None,
    fetcher: Optional[EIANaturalGasFetcher] = None,
) -> str:
    """
    Task 1: Pull every area from EIA and save data/raw.parquet (+ raw.csv)
    """
    raw_path = config.raw_path()
    ensure_dir(raw_path.parent)

    if raw_path.exists() and not config.overwrite:
        logger.info("[ingest] raw exists, skipping: %s", raw_path)
        return str(raw_path)

    if fetcher is None:
        settings = settings or load_settings()
        fetcher = EIANaturalGasFetcher(settings.api_key, route=config.route, facet=config.facet)

    df_raw = fetcher.fetch_all_areas(max_workers=config.max_workers)

    reports = run_rules(df_raw, RAW_RULES)
    _check_reports(reports, stage="raw", config=config)

    atomic_write_parquet(df_raw, raw_path)
    atomic_write_csv(df_raw, config.raw_csv_path(), columns=RAW_COLUMNS)
    update_json(
        {
            "ingest_timestamp": _now(),
            "route": config.route,
            "raw_rows": int(len(df_raw)),
            "raw_validation": _reports_payload(reports),
        },
        config.metadata_path(),
    )
    logger.info("[ingest] wrote raw: %s (%d rows)", raw_path, len(df_raw))
    return str(raw_path)


def prepare_observations(raw_path: str, config: PipelineConfig) -> str:
    """
    Task 2: Canonicalize region labels, validate, save data/observations.parquet
    """
    obs_path = config.observations_path()
    ensure_dir(obs_path.parent)

    if obs_path.exists() and not config.overwrite:
        logger.info("[prepare] observations exist, skipping: %s", obs_path)
        return str(obs_path)

    df_raw = pd.read_parquet(raw_path)
    df_obs = canonicalize_regions(df_raw)

    reports = run_rules(df_obs, CANONICAL_RULES)
    _check_reports(reports, stage="canonical", config=config)

    atomic_write_parquet(df_obs, obs_path)
    atomic_write_csv(df_obs, config.observations_csv_path(), columns=OBSERVATION_CSV_COLUMNS)
    update_json(
        {
            "prepare_timestamp": _now(),
            "observation_rows": int(len(df_obs)),
            "unresolved_region_rows": int(df_obs["region_code"].isna().sum()),
            "canonical_validation": _reports_payload(reports),
        },
        config.metadata_path(),
    )
    logger.info("[prepare] wrote observations: %s (%d rows)", obs_path, len(df_obs))
    return str(obs_path)


def build_features(observations_path: str, config: PipelineConfig) -> str:
    """
    Task 3: Per-series imputation + features, clean, save data/features.parquet
    """
    features_path = config.features_path()
    ensure_dir(features_path.parent)

    if features_path.exists() and not config.overwrite:
        logger.info("[features] features exist, skipping: %s", features_path)
        return str(features_path)

    df_obs = pd.read_parquet(observations_path)
    unresolved = int(df_obs["region_code"].isna().sum())
    if unresolved:
        logger.warning("[features] %d observations without region_code are excluded from series", unresolved)

    series_map = build_series_map(df_obs)
    df_all = extract_features(
        series_map,
        freq=config.freq,
        max_missing_ratio=config.max_missing_ratio,
        max_workers=config.max_workers,
    )
    df_clean, summary = clean_features(df_all)

    atomic_write_parquet(df_all, config.features_all_path())
    atomic_write_parquet(df_clean, features_path)
    atomic_write_csv(df_clean, config.features_csv_path())
    update_json(
        {
            "features_timestamp": _now(),
            "series": len(series_map),
            "feature_rows_before_clean": summary.n_input,
            "feature_rows_after_dropna": summary.n_after_dropna,
            "feature_rows_after_clean": summary.n_output,
        },
        config.metadata_path(),
    )
    logger.info("[features] wrote features: %s (%d rows)", features_path, len(df_clean))
    return str(features_path)


def cluster_features(features_path: str, config: PipelineConfig) -> str:
    """
    Task 4: PCA + k-means sweep, save data/clusters.parquet, elbow.csv, pca_variance.csv
    """
    clusters_path = config.clusters_path()
    ensure_dir(clusters_path.parent)

    if clusters_path.exists() and not config.overwrite:
        logger.info("[cluster] clusters exist, skipping: %s", clusters_path)
        return str(clusters_path)

    df_features = pd.read_parquet(features_path)

    pca_result = run_pca(df_features, FEATURE_COLUMNS, n_keep=config.n_components_kept)
    clustering = run_kmeans_sweep(
        pca_result.augmented,
        FEATURE_COLUMNS,
        k_values=config.k_values(),
        n_init=config.n_init,
        random_state=config.random_state,
    )
    df_clusters = clustering.augmented

    pc_cols = [f"PC{i + 1}" for i in range(config.n_components_kept)]
    label_cols = [c for c in df_clusters.columns if c.startswith("cluster_")]

    atomic_write_parquet(df_clusters, clusters_path)
    atomic_write_csv(df_clusters, config.clusters_csv_path(), columns=ID_COLUMNS + pc_cols + label_cols)
    atomic_write_csv(clustering.elbow, config.elbow_csv_path())
    atomic_write_csv(pca_result.variance, config.pca_variance_csv_path())
    update_json(
        {
            "cluster_timestamp": _now(),
            "cluster_rows": int(len(df_clusters)),
            "k_values": list(config.k_values()),
            "pca_cumulative_variance_kept": float(
                pca_result.variance["cumulative"].iloc[config.n_components_kept - 1]
            ),
        },
        config.metadata_path(),
    )
    logger.info("[cluster] wrote clusters: %s (%d rows)", clusters_path, len(df_clusters))
    return str(clusters_path)


def run_full_pipeline(
    config: PipelineConfig,
    settings: Optional[Settings] = None,
    fetcher: Optional[EIANaturalGasFetcher] = None,
) -> Dict[str, str]:
    run_id = config.run_id()
    logger.info("[pipeline] run_id=%s config=%s", run_id, config)

    raw_path = ingest_raw(config, settings=settings, fetcher=fetcher)
    obs_path = prepare_observations(raw_path, config)
    features_path = build_features(obs_path, config)
    clusters_path = cluster_features(features_path, config)

    return {
        "run_id": run_id,
        "raw_path": raw_path,
        "observations_path": obs_path,
        "features_path": features_path,
        "clusters_path": clusters_path,
        "elbow_path": str(config.elbow_csv_path()),
        "metadata_path": str(config.metadata_path()),
    }
