"""
Label normalization: EIA area labels -> canonical (region_name, region_code).

EIA mixes label styles for the same dimension ("USA-AL", "ALABAMA", "U.S."),
so resolution tries, in order:
1. explicit aliases ("U.S." -> US)
2. a trailing two-letter code after a hyphen ("USA-AL" -> AL)
3. a lowercase full-name join against the region table
"""

from __future__ import annotations

import logging
import re
from typing import Optional

import pandas as pd

from src.natgas.regions import LABEL_ALIASES, code_for_name, name_for_code

logger = logging.getLogger(__name__)

_TRAILING_CODE = re.compile(r"-([A-Za-z]{2})$")


def resolve_code(label: Optional[str]) -> Optional[str]:
    """Resolve one raw area label to a two-letter region code (or None)."""
    if label is None or pd.isna(label):
        return None

    raw = str(label).strip()
    lowered = raw.lower()

    if lowered in LABEL_ALIASES:
        return LABEL_ALIASES[lowered]

    match = _TRAILING_CODE.search(raw)
    if match:
        return match.group(1).upper()

    return code_for_name(lowered)


def canonicalize_regions(df: pd.DataFrame, label_col: str = "area_name") -> pd.DataFrame:
    """
    Attach region_code and region_name to every observation.

    Rows that cannot be resolved keep nulls and are logged; they are never
    dropped here so the canonical validation checkpoint can report them.
    """
    if label_col not in df.columns:
        raise ValueError(f"Missing label column: {label_col}")

    out = df.copy()
    labels = out[label_col].drop_duplicates()
    code_map = {label: resolve_code(label) for label in labels}

    out["region_code"] = out[label_col].map(code_map)
    out["region_name"] = out["region_code"].map(
        lambda code: name_for_code(code) if isinstance(code, str) else None
    )

    unresolved_code = sorted(str(label) for label, code in code_map.items() if code is None)
    if unresolved_code:
        logger.warning(
            "[normalize][UNRESOLVED] %d labels without a region code: %s",
            len(unresolved_code), unresolved_code[:20],
        )

    unnamed = sorted(out.loc[out["region_code"].notna() & out["region_name"].isna(), "region_code"].unique())
    if unnamed:
        logger.warning("[normalize][UNRESOLVED] codes without a region name: %s", unnamed)

    logger.info(
        "[normalize] rows=%d regions=%d unresolved_rows=%d",
        len(out),
        out["region_code"].nunique(),
        int(out["region_code"].isna().sum()),
    )
    return out
