from __future__ import annotations

from typing import Any, Dict, List, Optional
import logging

import requests
from pydantic import ValidationError as ModelValidationError

from labconnect.config import settings
from labconnect.services.errors import DatabaseError
from labconnect.services.types import LabRecord

logger = logging.getLogger(__name__)


class LabStore:
    # Read-only client for the hosted lab table (Supabase REST interface).
    def __init__(
        self,
        url: Optional[str] = None,
        key: Optional[str] = None,
        table: Optional[str] = None,
        timeout: Optional[int] = None,
    ):
        self.base = (url if url is not None else (settings.SUPABASE_URL or "")).rstrip("/")
        self.key = key if key is not None else (settings.SUPABASE_KEY or "")
        self.table = table or settings.SUPABASE_TABLE
        self.timeout = timeout or settings.SUPABASE_TIMEOUT

    # Standard auth headers for the REST endpoint.
    def _headers(self) -> Dict[str, str]:
        return {
            "apikey": self.key,
            "Authorization": f"Bearer {self.key}",
            "Accept": "application/json",
        }

    # True if endpoint and key are present and reads can be attempted.
    def is_configured(self) -> bool:
        return bool(self.base and self.key)

    @property
    def table_url(self) -> str:
        return f"{self.base}/rest/v1/{self.table}"

    # Fetch every row and column of the table, unfiltered and unordered.
    def fetch_rows(self) -> List[Dict[str, Any]]:
        if not self.is_configured():
            raise DatabaseError("Lab database is not configured (SUPABASE_URL / SUPABASE_KEY)")
        try:
            r = requests.get(self.table_url, params={"select": "*"}, headers=self._headers(), timeout=self.timeout)
        except requests.RequestException as e:
            logger.error("Lab table request failed: %s", e)
            raise DatabaseError(f"Failed to fetch labs: {e}") from e
        if not r.ok:
            detail = _error_detail(r)
            logger.error("Lab table read returned %s: %s", r.status_code, detail)
            raise DatabaseError(f"Failed to fetch labs: {detail}")
        try:
            rows = r.json()
        except ValueError as e:
            raise DatabaseError("Failed to fetch labs: response was not JSON") from e
        if not isinstance(rows, list):
            raise DatabaseError("Failed to fetch labs: unexpected response shape")
        return rows

    def fetch_all(self) -> List[LabRecord]:
        rows = self.fetch_rows()
        try:
            labs = [LabRecord.model_validate(row) for row in rows]
        except ModelValidationError as e:
            raise DatabaseError(f"Lab table returned a malformed row: {e.errors()[0].get('msg')}") from e
        logger.info("Fetched %d lab(s) from %s", len(labs), self.table)
        return labs


# The REST layer reports errors as {"message": ..., "details": ..., "hint": ...}.
def _error_detail(resp: requests.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text[:200] or f"HTTP {resp.status_code}"
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return resp.text[:200] or f"HTTP {resp.status_code}"


# Check the lab table with a single-row read.
def database_health(store: Optional[LabStore] = None) -> Dict[str, object]:
    store = store or LabStore()
    info: Dict[str, object] = {
        "ok": False,
        "table": store.table,
        "configured": store.is_configured(),
    }
    if not store.is_configured():
        info["error"] = "SUPABASE_URL / SUPABASE_KEY not set"
        return info
    try:
        r = requests.get(
            store.table_url,
            params={"select": "id", "limit": "1"},
            headers=store._headers(),
            timeout=min(store.timeout, 10),
        )
        r.raise_for_status()
        info["ok"] = True
    except requests.RequestException as e:
        info["error"] = str(e)
    return info
