# src/natgas/eia_natgas.py
from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import pandas as pd
import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

logger = logging.getLogger(__name__)

# EIA field name -> standardized column name
COLUMN_MAP = {
    "area-name": "area_name",
    "duoarea": "duoarea",
    "process": "process",
    "process-name": "process_name",
    "period": "period",
    "series-description": "series_description",
    "value": "value",
    "units": "units",
}
RAW_COLUMNS = list(COLUMN_MAP.values())


class IngestionError(RuntimeError):
    """Raised when any per-area request fails; ingestion is fail-fast."""


def _sanitize_url(url: str) -> str:
    parts = urlsplit(url)
    q = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k.lower() != "api_key"]
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(q), parts.fragment))


def standardize_columns(records: list[dict]) -> pd.DataFrame:
    """
    Convert raw EIA data records into the standardized observation table.

    - Renames hyphenated EIA fields to snake_case
    - Parses period ("YYYY-MM") to a first-of-month datetime (fail loud)
    - Converts value to numeric; upstream nulls stay NaN
    """
    if not records:
        return pd.DataFrame({col: pd.Series(dtype="object") for col in RAW_COLUMNS}).astype(
            {"period": "datetime64[ns]", "value": "float64"}
        )

    df = pd.DataFrame(records)
    missing_cols = [c for c in COLUMN_MAP if c not in df.columns]
    if missing_cols:
        raise ValueError(
            f"EIA records missing expected keys {missing_cols}. columns={df.columns.tolist()}"
        )

    df = df.rename(columns=COLUMN_MAP)[RAW_COLUMNS].copy()
    df["period"] = pd.to_datetime(df["period"], format="%Y-%m", errors="raise")
    df["value"] = pd.to_numeric(df["value"], errors="coerce")
    return df


class EIANaturalGasFetcher:
    BASE_URL = "https://api.eia.gov/v2"
    MAX_RECORDS_PER_REQUEST = 5000
    RATE_LIMIT_DELAY = 0.2  # 5 requests/second max

    def __init__(
        self,
        api_key: str,
        *,
        route: str = "natural-gas/cons/sum",
        facet: str = "duoarea",
        timeout: int = 60,
        max_retries: int = 3,
        backoff_factor: float = 1.0,
        retry_statuses: Optional[tuple[int, ...]] = None,
    ):
        """
        Args:
            api_key: EIA API key (injected, see config.load_settings)
            route: API route below /v2 (e.g. natural-gas/cons/sum)
            facet: Facet used to scope each data request
            timeout: Request timeout in seconds
        """
        if not api_key:
            raise ValueError("EIA API key required; load it with config.load_settings().")

        self.api_key = api_key
        self.route = route.strip("/")
        self.facet = facet
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff_factor = backoff_factor
        self.retry_statuses = retry_statuses or (429, 500, 502, 503, 504)
        self.session = self._create_session()

    def _create_session(self) -> requests.Session:
        """Create requests Session with retry logic for transient errors."""
        session = requests.Session()
        retries = Retry(
            total=self.max_retries,
            backoff_factor=self.backoff_factor,
            status_forcelist=self.retry_statuses,
            allowed_methods=frozenset(["GET"]),
            connect=self.max_retries,
            read=self.max_retries,
        )
        session.mount("https://", HTTPAdapter(max_retries=retries))
        return session

    @property
    def data_url(self) -> str:
        return f"{self.BASE_URL}/{self.route}/data/"

    @property
    def facet_url(self) -> str:
        return f"{self.BASE_URL}/{self.route}/facet/{self.facet}/"

    def _get_json(self, url: str, params: dict) -> tuple[dict, str]:
        req = requests.Request("GET", url, params={"api_key": self.api_key, **params})
        prepared = self.session.prepare_request(req)
        safe_url = _sanitize_url(prepared.url)

        start_ts = time.monotonic()
        try:
            resp = self.session.send(prepared, timeout=self.timeout)
            resp.raise_for_status()
            payload = resp.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning(
                "[eia][REQUEST_FAIL] elapsed=%.2fs error=%s url=%s",
                time.monotonic() - start_ts, e, safe_url,
            )
            raise

        logger.debug(
            "[eia][REQUEST_OK] status=%s elapsed=%.2fs url=%s",
            resp.status_code, time.monotonic() - start_ts, safe_url,
        )
        return payload, safe_url

    @staticmethod
    def _response_body(payload: dict, *, request_url: Optional[str] = None) -> dict:
        if not isinstance(payload, dict):
            raise TypeError(f"EIA payload is not a dict. type={type(payload)} url={request_url}")

        if "error" in payload and payload.get("response") is None:
            raise ValueError(f"EIA returned error payload. url={request_url} error={payload.get('error')}")

        response = payload.get("response")
        if not isinstance(response, dict):
            raise ValueError(
                f"EIA payload missing 'response'. url={request_url} keys={list(payload.keys())[:25]}"
            )
        return response

    @classmethod
    def _extract_records(cls, payload: dict, *, request_url: Optional[str] = None) -> tuple[list[dict], Optional[int]]:
        response = cls._response_body(payload, request_url=request_url)
        if "data" not in response:
            raise ValueError(
                f"EIA response missing 'data'. url={request_url} response_keys={list(response.keys())[:25]}"
            )

        records = response.get("data") or []
        if not isinstance(records, list):
            raise TypeError(f"EIA response['data'] is not a list. type={type(records)} url={request_url}")

        total = response.get("total")
        try:
            total = int(total) if total is not None else None
        except (TypeError, ValueError):
            total = None
        return records, total

    def fetch_area_codes(self) -> list[str]:
        """Enumerate facet ids (area codes) from the metadata endpoint."""
        payload, safe_url = self._get_json(self.facet_url, {})
        response = self._response_body(payload, request_url=safe_url)

        facets = response.get("facets")
        if not isinstance(facets, list):
            raise ValueError(f"EIA facet response missing 'facets' list. url={safe_url}")

        codes = [str(f["id"]) for f in facets if isinstance(f, dict) and f.get("id")]
        if not codes:
            raise ValueError(f"EIA facet endpoint returned no {self.facet} codes. url={safe_url}")

        logger.info("[ingest] %d %s codes from metadata endpoint", len(codes), self.facet)
        return codes

    def fetch_area(self, code: str) -> pd.DataFrame:
        """Fetch every monthly row for one facet value, following pagination."""
        all_records: list[dict] = []
        offset = 0
        page_count = 0

        while True:
            params = {
                "frequency": "monthly",
                "data[0]": "value",
                f"facets[{self.facet}][]": code,
                "length": self.MAX_RECORDS_PER_REQUEST,
                "offset": offset,
                "sort[0][column]": "period",
                "sort[0][direction]": "asc",
            }
            payload, safe_url = self._get_json(self.data_url, params)
            records, total = self._extract_records(payload, request_url=safe_url)
            page_count += 1

            logger.debug(
                "[ingest][PAGE] %s=%s returned=%d offset=%d total=%s",
                self.facet, code, len(records), offset, total,
            )

            if not records:
                break

            all_records.extend(records)

            if len(records) < self.MAX_RECORDS_PER_REQUEST:
                break

            offset += self.MAX_RECORDS_PER_REQUEST
            time.sleep(self.RATE_LIMIT_DELAY)

        df = standardize_columns(all_records)
        logger.info("[ingest] %s=%s rows=%d pages=%d", self.facet, code, len(df), page_count)
        return df

    def fetch_all_areas(
        self,
        codes: Optional[list[str]] = None,
        max_workers: int = 1,
    ) -> pd.DataFrame:
        """Fetch all areas and concatenate once.

        Args:
            codes: Facet codes to fetch (defaults to the metadata endpoint listing)
            max_workers: Number of parallel workers (1 = sequential)

        Returns:
            Standardized observation table, areas in ``codes`` order

        Raises:
            IngestionError: If any single area request fails (fail-fast)
        """
        if codes is None:
            codes = self.fetch_area_codes()

        def _run_one(code: str) -> pd.DataFrame:
            try:
                return self.fetch_area(code)
            except (requests.RequestException, ValueError, TypeError) as e:
                raise IngestionError(f"[EIA][FETCH] {self.facet}={code} failed: {e}") from e

        if max_workers > 1:
            with ThreadPoolExecutor(max_workers=max_workers) as executor:
                frames = list(executor.map(_run_one, codes))
        else:
            frames = [_run_one(code) for code in codes]

        empty = [code for code, df in zip(codes, frames) if df.empty]
        if empty:
            logger.warning("[ingest] %d areas returned no rows: %s", len(empty), empty)

        non_empty = [df for df in frames if not df.empty]
        if not non_empty:
            raise IngestionError(f"[EIA][FETCH] No rows returned for any of {len(codes)} areas.")

        combined = pd.concat(non_empty, ignore_index=True)
        logger.info(
            "[ingest] SUMMARY areas=%d rows=%d processes=%d",
            len(codes) - len(empty), len(combined), combined["process"].nunique(),
        )
        return combined
