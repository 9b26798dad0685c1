# file: src/natgas/cli.py
from __future__ import annotations

import logging
import sys

import pandas as pd
import typer
from rich.console import Console
from rich.table import Table

from src.natgas.config import PipelineConfig, load_settings
from src.natgas.regions import get_region_info, list_regions
from src.natgas.tasks import (build_features, cluster_features, ingest_raw,
                              prepare_observations, run_full_pipeline)

logging.basicConfig(level=logging.INFO, format="%(asctime)s | %(levelname)s | %(message)s")
app = typer.Typer(add_completion=False)
console = Console()


def _strip_ipykernel_args(argv: list[str]) -> list[str]:
    """Jupyter/ipykernel injects `-f <connection_file>` into sys.argv."""
    out = [argv[0]]
    i = 1
    while i < len(argv):
        a = argv[i]
        if a in ("-f", "--f"):
            i += 2  # skip flag + value
            continue
        if a.startswith("--f="):
            i += 1
            continue
        out.append(a)
        i += 1
    return out


def _print_results(title: str, results: dict) -> None:
    table = Table(title=title)
    table.add_column("Key", style="cyan")
    table.add_column("Value", style="green")
    for k, v in results.items():
        table.add_row(str(k), str(v))
    console.print(table)


@app.command()
def run(
    data_dir: str = "data/natgas",
    route: str = "natural-gas/cons/sum",
    k_max: int = 15,
    max_workers: int = 1,
    strict_validation: bool = False,
    overwrite: bool = False,
):
    """Run ingest -> prepare -> features -> cluster."""
    settings = load_settings()
    cfg = PipelineConfig(
        data_dir=data_dir,
        route=route,
        k_max=k_max,
        max_workers=max_workers,
        strict_validation=strict_validation,
        overwrite=overwrite,
    )
    results = run_full_pipeline(cfg, settings=settings)
    _print_results("Pipeline Results", results)

    elbow = pd.read_csv(cfg.elbow_csv_path())
    _print_results("Elbow (tot_withinss)", dict(zip(elbow["k"], elbow["tot_withinss"].round(3))))


@app.command()
def ingest(
    data_dir: str = "data/natgas",
    route: str = "natural-gas/cons/sum",
    max_workers: int = 1,
    overwrite: bool = False,
):
    """Pull raw observations from EIA."""
    settings = load_settings()
    cfg = PipelineConfig(data_dir=data_dir, route=route, max_workers=max_workers, overwrite=overwrite)
    _print_results("Ingest", {"raw_path": ingest_raw(cfg, settings=settings)})


@app.command()
def prepare(data_dir: str = "data/natgas", strict_validation: bool = False, overwrite: bool = False):
    """Canonicalize region labels and validate the raw snapshot."""
    cfg = PipelineConfig(data_dir=data_dir, strict_validation=strict_validation, overwrite=overwrite)
    _print_results("Prepare", {"observations_path": prepare_observations(str(cfg.raw_path()), cfg)})


@app.command()
def features(data_dir: str = "data/natgas", max_workers: int = 1, overwrite: bool = False):
    """Impute and compute per-series features."""
    cfg = PipelineConfig(data_dir=data_dir, max_workers=max_workers, overwrite=overwrite)
    _print_results("Features", {"features_path": build_features(str(cfg.observations_path()), cfg)})


@app.command()
def cluster(data_dir: str = "data/natgas", k_max: int = 15, overwrite: bool = False):
    """PCA + k-means sweep over the cleaned features."""
    cfg = PipelineConfig(data_dir=data_dir, k_max=k_max, overwrite=overwrite)
    _print_results("Cluster", {"clusters_path": cluster_features(str(cfg.features_path()), cfg)})


@app.command()
def regions():
    """List the canonical region table."""
    _print_results("Regions", {code: get_region_info(code).name for code in list_regions()})


if __name__ == "__main__":
    sys.argv = _strip_ipykernel_args(sys.argv)
    app(standalone_mode=False)  # <-- prevents SystemExit in Jupyter
