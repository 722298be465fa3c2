"""Elasticsearch-backed store for SAR records, spoken over the REST API with httpx."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, List
from urllib.parse import quote

import httpx

from sardocs.settings import Settings, get_settings

LOGGER = logging.getLogger(__name__)

SORT_ORDER = (
    {"@timestamp": {"order": "desc"}},
    {"report_date": {"order": "desc"}},
)


class RecordStoreError(RuntimeError):
    """Raised when the search index cannot serve a request."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RecordNotFoundError(RecordStoreError):
    """Raised when a record id does not exist in the index."""


class RecordStoreAuthError(RecordStoreError):
    """Raised when the index rejects the configured credentials."""


class RecordIndexMissingError(RecordStoreError):
    """Raised when the configured index does not exist."""


@dataclass(slots=True)
class RecordPage:
    """One page of search results."""

    reports: List[Dict[str, Any]]
    total: int
    page: int
    size: int

    @property
    def total_pages(self) -> int:
        if self.size <= 0:
            return 0
        return math.ceil(self.total / self.size)


class ElasticsearchRecordStore:
    """Read SAR records from an Elasticsearch index.

    Args:
        settings: Resolved settings; defaults to :func:`sardocs.settings.get_settings`.
        client: Pre-configured ``httpx.Client`` (tests pass one with a mock
            transport). When omitted the store builds and owns its client.
    """

    def __init__(self, settings: Settings | None = None, client: httpx.Client | None = None) -> None:
        self.settings = settings or get_settings()
        config = self.settings.search
        self.index = config.index
        self._owns_client = client is None
        if client is None:
            auth = (config.username, config.password or "") if config.username else None
            client = httpx.Client(
                base_url=config.url.rstrip("/"),
                auth=auth,
                verify=config.verify_tls,
                timeout=config.timeout_seconds,
            )
        self._client = client

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, record_id: str) -> Dict[str, Any]:
        """Return the stored document body for ``record_id``.

        Raises:
            RecordNotFoundError: The id is unknown (or the index is absent).
            RecordStoreError: The index could not be reached.
        """

        path = f"/{self.index}/_doc/{quote(record_id, safe='')}"
        response = self._request("GET", path, allow_not_found=True)
        if response.status_code == 404:
            raise RecordNotFoundError(f"SAR report {record_id} not found", status_code=404)
        body = response.json()
        if not body.get("found", True):
            raise RecordNotFoundError(f"SAR report {record_id} not found", status_code=404)
        return dict(body.get("_source") or {})

    def search(self, text: str | None = None, page: int = 1, size: int | None = None) -> RecordPage:
        """Return a page of records, newest first, optionally filtered by free text."""

        config = self.settings.search
        page = max(1, int(page))
        size = config.default_page_size if size is None else int(size)
        size = max(1, min(size, config.max_page_size))

        query: Dict[str, Any] = {"match_all": {}}
        if text and text.strip():
            query = {"multi_match": {"query": text.strip(), "fields": list(config.search_fields)}}

        payload = {
            "query": query,
            "from": (page - 1) * size,
            "size": size,
            "sort": list(SORT_ORDER),
        }
        response = self._request("POST", f"/{self.index}/_search", json=payload, allow_not_found=True)
        if response.status_code == 404:
            raise RecordIndexMissingError(f"Index {self.index} does not exist", status_code=404)

        hits = response.json().get("hits") or {}
        reports = [{"id": hit.get("_id"), **(hit.get("_source") or {})} for hit in hits.get("hits") or []]
        return RecordPage(reports=reports, total=_hit_total(hits.get("total")), page=page, size=size)

    def health(self) -> Dict[str, Any]:
        """Return the cluster health document."""

        return self._request("GET", "/_cluster/health").json()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "ElasticsearchRecordStore":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _request(self, method: str, path: str, *, allow_not_found: bool = False, **kwargs: Any) -> httpx.Response:
        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            LOGGER.error("Search index request %s %s failed: %s", method, path, exc)
            raise RecordStoreError(f"Cannot reach search index: {exc}") from exc

        if response.status_code == 401:
            raise RecordStoreAuthError("Authentication failed - check Elasticsearch credentials", status_code=401)
        if response.status_code == 404 and allow_not_found:
            return response
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            LOGGER.error("Search index returned %s for %s %s", response.status_code, method, path)
            raise RecordStoreError(
                f"Search index error {response.status_code}", status_code=response.status_code
            ) from exc
        return response


def _hit_total(raw: Any) -> int:
    # Newer clusters report {"value": n, "relation": ...}; older ones a bare int.
    if isinstance(raw, dict):
        raw = raw.get("value")
    try:
        return int(raw or 0)
    except (TypeError, ValueError):
        return 0


__all__ = [
    "ElasticsearchRecordStore",
    "RecordIndexMissingError",
    "RecordNotFoundError",
    "RecordPage",
    "RecordStoreAuthError",
    "RecordStoreError",
]
