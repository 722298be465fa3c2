"""Tests for the SAR report HTTP routes."""

from __future__ import annotations

from fastapi.testclient import TestClient
from lxml import etree

from sardocs.api.app import create_app
from sardocs.api.reports import get_document_service, get_record_store
from sardocs.services import SarDocumentService
from sardocs.settings import Settings
from sardocs.store import (
    RecordIndexMissingError,
    RecordNotFoundError,
    RecordPage,
    RecordStoreAuthError,
    RecordStoreError,
)


class _StubStore:
    def __init__(self, records=None, error: Exception | None = None, health_error: Exception | None = None) -> None:
        self.records = records or {}
        self.error = error
        self.health_error = health_error
        self.searches: list[dict] = []

    def get(self, record_id: str) -> dict:
        if self.error is not None:
            raise self.error
        if record_id not in self.records:
            raise RecordNotFoundError(f"SAR report {record_id} not found", status_code=404)
        return self.records[record_id]

    def search(self, text=None, page=1, size=None) -> RecordPage:
        self.searches.append({"text": text, "page": page, "size": size})
        if self.error is not None:
            raise self.error
        reports = [{"id": key, **value} for key, value in self.records.items()]
        return RecordPage(reports=reports, total=len(reports), page=page, size=size or 10)

    def health(self) -> dict:
        if self.health_error is not None:
            raise self.health_error
        return {"status": "green", "number_of_nodes": 1}


def _client(store: _StubStore, fixed_now, tmp_path, **runtime) -> TestClient:
    settings = Settings(
        runtime=runtime,
        documents={"template_path": tmp_path / "missing-template.pdf"},
        api={"rate_limit_requests": 0},
    )
    app = create_app(settings)
    app.dependency_overrides[get_record_store] = lambda: store
    app.dependency_overrides[get_document_service] = lambda: SarDocumentService(
        store=store, settings=settings, clock=lambda: fixed_now
    )
    return TestClient(app)


def test_list_reports(sample_raw, fixed_now, tmp_path):
    store = _StubStore({"R1": sample_raw})
    client = _client(store, fixed_now, tmp_path)

    response = client.get("/api/sar-reports", params={"page": 1, "size": 5, "search": "Smith"})

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 1
    assert body["page"] == 1
    assert body["totalPages"] == 1
    assert body["reports"][0]["id"] == "R1"
    assert store.searches == [{"text": "Smith", "page": 1, "size": 5}]


def test_list_reports_error_mapping(fixed_now, tmp_path):
    auth = _client(_StubStore(error=RecordStoreAuthError("denied", status_code=401)), fixed_now, tmp_path)
    assert auth.get("/api/sar-reports").status_code == 401

    missing = _client(_StubStore(error=RecordIndexMissingError("gone", status_code=404)), fixed_now, tmp_path)
    response = missing.get("/api/sar-reports")
    assert response.status_code == 404
    assert response.json()["error"] == "SAR reports index not found"

    broken = _client(_StubStore(error=RecordStoreError("boom", status_code=500)), fixed_now, tmp_path)
    response = broken.get("/api/sar-reports")
    assert response.status_code == 500
    assert response.json()["details"] == "Internal server error"


def test_error_details_exposed_in_debug(fixed_now, tmp_path):
    client = _client(_StubStore(error=RecordStoreError("boom", status_code=500)), fixed_now, tmp_path, debug=True)

    response = client.get("/api/sar-reports/R1")

    assert response.status_code == 500
    assert response.json() == {"error": "Failed to fetch SAR report", "details": "boom"}


def test_get_report(sample_raw, fixed_now, tmp_path):
    client = _client(_StubStore({"R1": sample_raw}), fixed_now, tmp_path)

    response = client.get("/api/sar-reports/R1")

    assert response.status_code == 200
    assert response.json()["id"] == "R1"
    assert response.json()["suspect_last_name"] == "Smith"

    response = client.get("/api/sar-reports/nope")
    assert response.status_code == 404
    assert response.json() == {"error": "SAR report not found"}


def test_download_fincen_8300(sample_raw, fixed_now, tmp_path):
    client = _client(_StubStore({"R1": sample_raw}), fixed_now, tmp_path)

    response = client.get("/api/sar-reports/R1/fincen8300")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("application/xml")
    assert response.headers["content-disposition"] == 'attachment; filename="FinCEN-8300-R1-2024-05-01.xml"'
    assert etree.fromstring(response.content).get("PartyCount") == "4"


def test_download_pdf(sample_raw, fixed_now, tmp_path):
    client = _client(_StubStore({"R1": sample_raw}), fixed_now, tmp_path)

    response = client.get("/api/sar-reports/R1/pdf")

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.headers["content-disposition"] == 'attachment; filename="SAR-Report-R1-2024-05-01.pdf"'
    assert response.content.startswith(b"%PDF")


def test_downloads_for_missing_record_return_404(fixed_now, tmp_path):
    client = _client(_StubStore(), fixed_now, tmp_path)

    for suffix in ("fincen8300", "pdf"):
        response = client.get(f"/api/sar-reports/missing/{suffix}")
        assert response.status_code == 404
        assert response.json() == {"error": "SAR report not found"}


def test_health(fixed_now, tmp_path):
    healthy = _client(_StubStore(), fixed_now, tmp_path).get("/api/health")
    assert healthy.status_code == 200
    assert healthy.json()["status"] == "healthy"
    assert healthy.json()["elasticsearch"] == {"cluster_status": "green", "number_of_nodes": 1}

    store = _StubStore(health_error=RecordStoreError("Cannot reach search index: refused"))
    unhealthy = _client(store, fixed_now, tmp_path).get("/api/health")
    assert unhealthy.status_code == 503
    assert unhealthy.json()["status"] == "unhealthy"
