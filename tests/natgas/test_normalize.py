"""Tests for the region table and label normalization."""

import logging

import pandas as pd
import pytest

from src.natgas.normalize import canonicalize_regions, resolve_code
from src.natgas.regions import (
    REGIONS,
    code_for_name,
    get_region_info,
    list_regions,
    name_for_code,
    validate_region,
)


class TestRegions:
    """Tests for the static region table."""

    def test_fifty_states(self):
        assert len(REGIONS) == 50

    def test_lowercase_names(self):
        for info in REGIONS.values():
            assert info.name_lower == info.name.lower()

    def test_list_regions_sorted(self):
        regions = list_regions()
        assert regions == sorted(regions)

    def test_get_region_info(self):
        assert get_region_info("TX").name == "Texas"

    def test_get_region_info_invalid(self):
        with pytest.raises(KeyError):
            get_region_info("ZZ")

    def test_code_for_name_case_insensitive(self):
        assert code_for_name("NEW MEXICO") == "NM"
        assert code_for_name("  new mexico ") == "NM"

    def test_name_overrides(self):
        assert name_for_code("US") == "USA"
        assert name_for_code("DC") == "Washington, D.C."
        assert name_for_code("ZZ") is None

    def test_validate_region(self):
        assert validate_region("CA") is True
        assert validate_region("US") is True
        assert validate_region("ZZ") is False


class TestResolveCode:
    """Label -> code resolution order."""

    @pytest.mark.parametrize(
        "label, expected",
        [
            ("USA-AL", "AL"),
            ("USA-dc", "DC"),
            ("ALABAMA", "AL"),
            ("North Dakota", "ND"),
            ("U.S.", "US"),
            ("District of Columbia", "DC"),
            ("Atlantis", None),
            (None, None),
        ],
    )
    def test_resolution(self, label, expected):
        assert resolve_code(label) == expected


class TestCanonicalizeRegions:
    """Table-level normalization."""

    def test_adds_code_and_name(self):
        df = pd.DataFrame({"area_name": ["USA-AL", "TEXAS", "U.S.", "USA-DC"], "value": [1.0, 2.0, 3.0, 4.0]})
        out = canonicalize_regions(df)
        assert out["region_code"].tolist() == ["AL", "TX", "US", "DC"]
        assert out["region_name"].tolist() == ["Alabama", "Texas", "USA", "Washington, D.C."]

    def test_input_not_mutated(self):
        df = pd.DataFrame({"area_name": ["USA-AL"], "value": [1.0]})
        canonicalize_regions(df)
        assert "region_code" not in df.columns

    def test_unresolved_rows_kept_and_logged(self, caplog):
        df = pd.DataFrame({"area_name": ["USA-AL", "Atlantis", "USA-ZZ"], "value": [1.0, 2.0, 3.0]})
        with caplog.at_level(logging.WARNING):
            out = canonicalize_regions(df)

        assert len(out) == 3
        assert out["region_code"].isna().sum() == 1
        assert out["region_name"].isna().sum() == 2
        assert "Atlantis" in caplog.text
        assert "ZZ" in caplog.text

    @pytest.mark.fail_loud
    def test_missing_label_column_raises(self):
        with pytest.raises(ValueError):
            canonicalize_regions(pd.DataFrame({"value": [1.0]}))
