"""SAR report routes: listing, lookup and document downloads."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterator

from fastapi import APIRouter, Depends, Query, Response, status
from fastapi.responses import JSONResponse

from sardocs.documents import DocumentGenerationError
from sardocs.services import RenderedDocument, SarDocumentService
from sardocs.settings import Settings, get_settings
from sardocs.store import (
    ElasticsearchRecordStore,
    RecordIndexMissingError,
    RecordNotFoundError,
    RecordStoreAuthError,
    RecordStoreError,
)

router = APIRouter(prefix="/api/sar-reports", tags=["sar-reports"])
LOGGER = logging.getLogger(__name__)

_NOT_FOUND_BODY = {"error": "SAR report not found"}


def get_record_store(settings: Settings = Depends(get_settings)) -> Iterator[ElasticsearchRecordStore]:
    """Dependency provider yielding a record store for the current request."""

    store = ElasticsearchRecordStore(settings=settings)
    try:
        yield store
    finally:
        store.close()


def get_document_service(
    store: ElasticsearchRecordStore = Depends(get_record_store),
    settings: Settings = Depends(get_settings),
) -> SarDocumentService:
    """Dependency provider for the document service bound to the request's store."""

    return SarDocumentService(store=store, settings=settings)


def error_response(
    status_code: int, error: str, exc: Exception, settings: Settings, **extra: Any
) -> JSONResponse:
    """Build an error body; exception text is only exposed in debug mode."""

    body: Dict[str, Any] = {"error": error}
    body["details"] = str(exc) if settings.debug else "Internal server error"
    body.update(extra)
    return JSONResponse(status_code=status_code, content=body)


@router.get("", summary="List SAR reports, newest first")
def list_reports(
    page: int = Query(1, ge=1),
    size: int | None = Query(None, ge=1),
    search: str | None = Query(None),
    store: ElasticsearchRecordStore = Depends(get_record_store),
    settings: Settings = Depends(get_settings),
):
    try:
        result = store.search(text=search, page=page, size=size)
    except RecordStoreAuthError:
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={
                "error": "Authentication failed - check Elasticsearch credentials",
                "details": "The user does not have permission to search the SAR reports index",
            },
        )
    except RecordIndexMissingError:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={
                "error": "SAR reports index not found",
                "details": f"The {settings.search.index} index does not exist in Elasticsearch",
            },
        )
    except RecordStoreError as exc:
        LOGGER.error("Failed to fetch SAR reports: %s", exc)
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to fetch SAR reports", exc, settings)

    return {
        "reports": result.reports,
        "total": result.total,
        "page": result.page,
        "totalPages": result.total_pages,
    }


@router.get("/{record_id}", summary="Fetch a single SAR report")
def get_report(
    record_id: str,
    store: ElasticsearchRecordStore = Depends(get_record_store),
    settings: Settings = Depends(get_settings),
):
    try:
        source = store.get(record_id)
    except RecordNotFoundError:
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content=_NOT_FOUND_BODY)
    except RecordStoreError as exc:
        LOGGER.error("Failed to fetch SAR report %s: %s", record_id, exc)
        return error_response(_store_status(exc), "Failed to fetch SAR report", exc, settings)
    return {"id": record_id, **source}


@router.get("/{record_id}/fincen8300", summary="Download FinCEN Form 8300 XML")
def download_fincen_8300(
    record_id: str,
    service: SarDocumentService = Depends(get_document_service),
    settings: Settings = Depends(get_settings),
):
    try:
        document = service.render_fincen_8300(record_id)
    except RecordNotFoundError:
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content=_NOT_FOUND_BODY)
    except (RecordStoreError, DocumentGenerationError) as exc:
        return error_response(_store_status(exc), "Failed to generate FinCEN 8300 XML", exc, settings)
    return _attachment(document)


@router.get("/{record_id}/pdf", summary="Download the SAR PDF")
def download_pdf(
    record_id: str,
    service: SarDocumentService = Depends(get_document_service),
    settings: Settings = Depends(get_settings),
):
    try:
        document = service.render_pdf(record_id)
    except RecordNotFoundError:
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content=_NOT_FOUND_BODY)
    except (RecordStoreError, DocumentGenerationError) as exc:
        return error_response(_store_status(exc), "Failed to generate PDF", exc, settings)
    return _attachment(document)


def _attachment(document: RenderedDocument) -> Response:
    return Response(
        content=document.content,
        media_type=document.media_type,
        headers={"Content-Disposition": document.content_disposition},
    )


def _store_status(exc: Exception) -> int:
    if isinstance(exc, RecordStoreAuthError):
        return status.HTTP_401_UNAUTHORIZED
    return status.HTTP_500_INTERNAL_SERVER_ERROR


__all__ = ["router", "get_record_store", "get_document_service", "error_response"]
