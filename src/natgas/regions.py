# src/natgas/regions.py
from __future__ import annotations

from typing import NamedTuple, Optional


class RegionInfo(NamedTuple):
    """Canonical region metadata used to resolve EIA area labels."""
    name: str
    name_lower: str


def _info(name: str) -> RegionInfo:
    return RegionInfo(name=name, name_lower=name.lower())


REGIONS: dict[str, RegionInfo] = {
    "AL": _info("Alabama"),
    "AK": _info("Alaska"),
    "AZ": _info("Arizona"),
    "AR": _info("Arkansas"),
    "CA": _info("California"),
    "CO": _info("Colorado"),
    "CT": _info("Connecticut"),
    "DE": _info("Delaware"),
    "FL": _info("Florida"),
    "GA": _info("Georgia"),
    "HI": _info("Hawaii"),
    "ID": _info("Idaho"),
    "IL": _info("Illinois"),
    "IN": _info("Indiana"),
    "IA": _info("Iowa"),
    "KS": _info("Kansas"),
    "KY": _info("Kentucky"),
    "LA": _info("Louisiana"),
    "ME": _info("Maine"),
    "MD": _info("Maryland"),
    "MA": _info("Massachusetts"),
    "MI": _info("Michigan"),
    "MN": _info("Minnesota"),
    "MS": _info("Mississippi"),
    "MO": _info("Missouri"),
    "MT": _info("Montana"),
    "NE": _info("Nebraska"),
    "NV": _info("Nevada"),
    "NH": _info("New Hampshire"),
    "NJ": _info("New Jersey"),
    "NM": _info("New Mexico"),
    "NY": _info("New York"),
    "NC": _info("North Carolina"),
    "ND": _info("North Dakota"),
    "OH": _info("Ohio"),
    "OK": _info("Oklahoma"),
    "OR": _info("Oregon"),
    "PA": _info("Pennsylvania"),
    "RI": _info("Rhode Island"),
    "SC": _info("South Carolina"),
    "SD": _info("South Dakota"),
    "TN": _info("Tennessee"),
    "TX": _info("Texas"),
    "UT": _info("Utah"),
    "VT": _info("Vermont"),
    "VA": _info("Virginia"),
    "WA": _info("Washington"),
    "WV": _info("West Virginia"),
    "WI": _info("Wisconsin"),
    "WY": _info("Wyoming"),
}

# Codes EIA reports that the state table leaves without a name.
NAME_OVERRIDES: dict[str, str] = {
    "US": "USA",
    "DC": "Washington, D.C.",
}

# Labels that map to a code outside the lowercase-name join.
LABEL_ALIASES: dict[str, str] = {
    "u.s.": "US",
    "district of columbia": "DC",
}

NAME_TO_CODE: dict[str, str] = {info.name_lower: code for code, info in REGIONS.items()}


def list_regions() -> list[str]:
    return sorted(REGIONS.keys())


def get_region_info(region_code: str) -> RegionInfo:
    return REGIONS[region_code]


def code_for_name(name: str) -> Optional[str]:
    """Return the two-letter code for a full region name (case-insensitive)."""
    key = name.strip().lower()
    return LABEL_ALIASES.get(key) or NAME_TO_CODE.get(key)


def name_for_code(region_code: str) -> Optional[str]:
    """Return the canonical name for a code, applying the US/DC overrides."""
    info = REGIONS.get(region_code)
    if info is not None:
        return info.name
    return NAME_OVERRIDES.get(region_code)


def validate_region(region_code: str) -> bool:
    return region_code in REGIONS or region_code in NAME_OVERRIDES
