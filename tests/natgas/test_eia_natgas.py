"""Tests for the EIA natural-gas client (HTTP is faked, no network).

Run with:
    pytest tests/natgas/test_eia_natgas.py -v
"""

from urllib.parse import parse_qs, urlsplit

import pandas as pd
import pytest
import requests

from src.natgas.eia_natgas import (
    RAW_COLUMNS,
    EIANaturalGasFetcher,
    IngestionError,
    _sanitize_url,
    standardize_columns,
)


class FakeResponse:
    def __init__(self, payload, status_code=200, url=""):
        self._payload = payload
        self.status_code = status_code
        self.url = url

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error", response=self)

    def json(self):
        return self._payload


def _record(area, period, value, process="VRS"):
    return {
        "period": period,
        "duoarea": f"S{area[-2:]}",
        "area-name": area,
        "product": "EPG0",
        "product-name": "Natural Gas",
        "process": process,
        "process-name": "Residential Consumption",
        "series": f"N3010{area[-2:]}2",
        "series-description": f"{area} Natural Gas Residential Consumption (MMcf)",
        "value": value,
        "units": "MMCF",
    }


AREA_DATA = {
    "SAL": [_record("USA-AL", "2020-01", "100"), _record("USA-AL", "2020-02", None)],
    "STX": [_record("TEXAS", "2020-01", "250.5")],
    "SAK": [],
}


def _fake_send(calls):
    def send(prepared, timeout=None):
        calls.append(prepared.url)
        parts = urlsplit(prepared.url)
        query = parse_qs(parts.query)
        if parts.path.endswith("/facet/duoarea/"):
            payload = {"response": {"totalFacets": 3, "facets": [{"id": c, "name": c} for c in AREA_DATA]}}
            return FakeResponse(payload, url=prepared.url)
        code = query["facets[duoarea][]"][0]
        records = AREA_DATA[code]
        return FakeResponse({"response": {"total": len(records), "data": records}}, url=prepared.url)

    return send


@pytest.fixture
def fetcher(monkeypatch):
    f = EIANaturalGasFetcher("test-key-123456")
    calls = []
    monkeypatch.setattr(f.session, "send", _fake_send(calls))
    f.calls = calls
    return f


class TestHelpers:
    """URL sanitizing and column standardization."""

    def test_sanitize_url_strips_api_key(self):
        url = "https://api.eia.gov/v2/x/data/?api_key=SECRET&frequency=monthly"
        safe = _sanitize_url(url)
        assert "SECRET" not in safe
        assert "frequency=monthly" in safe

    def test_standardize_columns(self):
        df = standardize_columns(AREA_DATA["SAL"])
        assert list(df.columns) == RAW_COLUMNS
        assert pd.api.types.is_datetime64_any_dtype(df["period"])
        assert df["period"].iloc[0] == pd.Timestamp("2020-01-01")
        assert df["value"].iloc[0] == 100.0
        assert pd.isna(df["value"].iloc[1])

    def test_standardize_empty(self):
        df = standardize_columns([])
        assert df.empty
        assert list(df.columns) == RAW_COLUMNS

    @pytest.mark.fail_loud
    def test_standardize_missing_keys_raises(self):
        with pytest.raises(ValueError, match="missing expected keys"):
            standardize_columns([{"period": "2020-01", "value": "1"}])

    @pytest.mark.fail_loud
    def test_standardize_bad_period_raises(self):
        record = _record("USA-AL", "not-a-month", "1")
        with pytest.raises(ValueError):
            standardize_columns([record])


class TestFetcher:
    """Metadata and data endpoints."""

    def test_requires_api_key(self):
        with pytest.raises(ValueError):
            EIANaturalGasFetcher("")

    def test_urls(self):
        f = EIANaturalGasFetcher("k" * 10, route="/natural-gas/cons/sum/")
        assert f.data_url == "https://api.eia.gov/v2/natural-gas/cons/sum/data/"
        assert f.facet_url == "https://api.eia.gov/v2/natural-gas/cons/sum/facet/duoarea/"

    def test_fetch_area_codes(self, fetcher):
        assert fetcher.fetch_area_codes() == ["SAL", "STX", "SAK"]

    def test_fetch_area_request_params(self, fetcher):
        df = fetcher.fetch_area("SAL")
        assert len(df) == 2
        query = parse_qs(urlsplit(fetcher.calls[-1]).query)
        assert query["frequency"] == ["monthly"]
        assert query["data[0]"] == ["value"]
        assert query["facets[duoarea][]"] == ["SAL"]
        assert query["api_key"] == ["test-key-123456"]

    def test_fetch_all_areas_concatenates_in_order(self, fetcher):
        df = fetcher.fetch_all_areas()
        assert len(df) == 3
        assert df["area_name"].tolist() == ["USA-AL", "USA-AL", "TEXAS"]

    def test_fetch_all_areas_explicit_codes(self, fetcher):
        df = fetcher.fetch_all_areas(codes=["STX"])
        assert df["area_name"].tolist() == ["TEXAS"]
        assert not any("/facet/" in url for url in fetcher.calls)

    def test_pagination_follows_offset(self, monkeypatch):
        f = EIANaturalGasFetcher("test-key-123456")
        monkeypatch.setattr(EIANaturalGasFetcher, "MAX_RECORDS_PER_REQUEST", 2)
        monkeypatch.setattr(EIANaturalGasFetcher, "RATE_LIMIT_DELAY", 0)
        pages = {
            "0": [_record("USA-AL", "2020-01", "1"), _record("USA-AL", "2020-02", "2")],
            "2": [_record("USA-AL", "2020-03", "3")],
        }

        def send(prepared, timeout=None):
            offset = parse_qs(urlsplit(prepared.url).query)["offset"][0]
            return FakeResponse({"response": {"data": pages[offset]}})

        monkeypatch.setattr(f.session, "send", send)
        df = f.fetch_area("SAL")
        assert df["value"].tolist() == [1.0, 2.0, 3.0]


@pytest.mark.fail_loud
class TestFailFast:
    """A single failed area aborts the whole ingestion."""

    def test_http_error_raises_ingestion_error(self, monkeypatch):
        f = EIANaturalGasFetcher("test-key-123456")
        ok_send = _fake_send([])

        def send(prepared, timeout=None):
            if "STX" in prepared.url:
                return FakeResponse({}, status_code=500)
            return ok_send(prepared, timeout)

        monkeypatch.setattr(f.session, "send", send)
        with pytest.raises(IngestionError, match="STX"):
            f.fetch_all_areas(codes=["SAL", "STX"])

    def test_connection_error_raises_ingestion_error(self, monkeypatch):
        f = EIANaturalGasFetcher("test-key-123456")

        def send(prepared, timeout=None):
            raise requests.ConnectionError("boom")

        monkeypatch.setattr(f.session, "send", send)
        with pytest.raises(IngestionError):
            f.fetch_all_areas(codes=["SAL"])

    def test_error_payload_raises_ingestion_error(self, monkeypatch):
        f = EIANaturalGasFetcher("test-key-123456")
        monkeypatch.setattr(
            f.session, "send", lambda prepared, timeout=None: FakeResponse({"error": "invalid api_key"})
        )
        with pytest.raises(IngestionError, match="invalid api_key"):
            f.fetch_all_areas(codes=["SAL"])

    def test_all_empty_raises(self, fetcher):
        with pytest.raises(IngestionError, match="No rows"):
            fetcher.fetch_all_areas(codes=["SAK"])

    def test_worker_pool_propagates_failure(self, monkeypatch):
        f = EIANaturalGasFetcher("test-key-123456")
        monkeypatch.setattr(
            f.session, "send", lambda prepared, timeout=None: FakeResponse({}, status_code=503)
        )
        with pytest.raises(IngestionError):
            f.fetch_all_areas(codes=["SAL", "STX"], max_workers=2)
