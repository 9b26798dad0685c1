# file: src/natgas/io_utils.py
from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

import pandas as pd


def ensure_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def atomic_write_parquet(df: pd.DataFrame, path: Path) -> None:
    """
    Atomic parquet write: write to temp in same directory, then replace.
    """
    ensure_dir(path.parent)
    tmp = path.with_suffix(path.suffix + ".tmp")
    df.to_parquet(tmp, index=False)
    os.replace(tmp, path)


def atomic_write_csv(df: pd.DataFrame, path: Path, columns: Optional[Sequence[str]] = None) -> None:
    """Flattened CSV snapshot, optionally restricted to a column subset."""
    ensure_dir(path.parent)
    out = df if columns is None else df[list(columns)]
    tmp = path.with_suffix(path.suffix + ".tmp")
    out.to_csv(tmp, index=False)
    os.replace(tmp, path)


def atomic_write_json(payload: Dict[str, Any], path: Path) -> None:
    ensure_dir(path.parent)
    tmp = path.with_suffix(path.suffix + ".tmp")
    with open(tmp, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, default=str)
    os.replace(tmp, path)


def read_json(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def update_json(updates: Dict[str, Any], path: Path) -> Dict[str, Any]:
    """Merge ``updates`` into the JSON document at ``path`` (atomic)."""
    payload = read_json(path)
    payload.update(updates)
    atomic_write_json(payload, path)
    return payload
