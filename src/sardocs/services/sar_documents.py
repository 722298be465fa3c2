"""Service tying the record store to the SAR document builders."""

from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Mapping

from sardocs.documents import build_fincen_8300, build_sar_pdf, normalize
from sardocs.observability import Observability, get_observability
from sardocs.settings import Settings, get_settings
from sardocs.store import ElasticsearchRecordStore, RecordNotFoundError, RecordStoreError

LOGGER = logging.getLogger(__name__)

XML_MEDIA_TYPE = "application/xml"
PDF_MEDIA_TYPE = "application/pdf"

# Record id characters replaced with "_" in download filenames.
_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _filename_token(record_id: str) -> str:
    return _UNSAFE_FILENAME_CHARS.sub("_", record_id) or "record"


@dataclass(frozen=True)
class RenderedDocument:
    """A finished document ready to be written or served as an attachment."""

    filename: str
    media_type: str
    content: bytes

    @property
    def content_disposition(self) -> str:
        return f'attachment; filename="{self.filename}"'


class SarDocumentService:
    """Produce Form 8300 XML and SAR PDFs for stored records.

    The PDF template is read from ``documents.template_path`` on first use and
    kept for the life of the service. Builds share no mutable state, so one
    service instance may serve concurrent requests.
    """

    def __init__(
        self,
        store: ElasticsearchRecordStore | None = None,
        settings: Settings | None = None,
        clock: Callable[[], datetime] | None = None,
        observability: Observability | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._store = store
        self._clock = clock or _utcnow
        self._observability = observability or get_observability(component="documents", settings=self.settings)
        self._template_lock = threading.Lock()
        self._template_loaded = False
        self._template: bytes | None = None

    @property
    def store(self) -> ElasticsearchRecordStore:
        if self._store is None:
            self._store = ElasticsearchRecordStore(settings=self.settings)
        return self._store

    # ------------------------------------------------------------------
    # Store-backed rendering
    # ------------------------------------------------------------------

    def render_fincen_8300(self, record_id: str) -> RenderedDocument:
        """Fetch ``record_id`` and build its Form 8300 XML attachment."""

        return self.fincen_8300_document(self._fetch(record_id), record_id)

    def render_pdf(self, record_id: str) -> RenderedDocument:
        """Fetch ``record_id`` and build its SAR PDF attachment."""

        return self.pdf_document(self._fetch(record_id), record_id)

    # ------------------------------------------------------------------
    # Rendering from a raw record
    # ------------------------------------------------------------------

    def fincen_8300_document(self, raw: Mapping[str, Any], record_id: str) -> RenderedDocument:
        now = self._clock()
        record = normalize(raw, record_id=record_id, now=now)
        content = build_fincen_8300(record, record_id)
        self._observability.emit_event("fincen8300.generated", record_id=record_id, size_bytes=len(content))
        self._observability.increment("documents.fincen8300.generated")
        return RenderedDocument(
            filename=f"FinCEN-8300-{_filename_token(record_id)}-{now:%Y-%m-%d}.xml",
            media_type=XML_MEDIA_TYPE,
            content=content,
        )

    def pdf_document(self, raw: Mapping[str, Any], record_id: str) -> RenderedDocument:
        now = self._clock()
        record = normalize(raw, record_id=record_id, now=now)
        pdf = build_sar_pdf(record, self.load_template())
        if pdf.fallback_reason:
            self._observability.emit_event("sar_pdf.fallback", record_id=record_id, reason=pdf.fallback_reason)
        self._observability.emit_event(
            "sar_pdf.generated",
            record_id=record_id,
            strategy=pdf.strategy,
            filled_fields=len(pdf.assignments),
        )
        self._observability.increment("documents.sar_pdf.generated", tags={"strategy": pdf.strategy})
        return RenderedDocument(
            filename=f"SAR-Report-{_filename_token(record_id)}-{now:%Y-%m-%d}.pdf",
            media_type=PDF_MEDIA_TYPE,
            content=pdf.content,
        )

    def load_template(self) -> bytes | None:
        """Return the template bytes, or ``None`` when the file is missing or unreadable."""

        with self._template_lock:
            if not self._template_loaded:
                self._template = _read_template(self.settings.documents.template_path)
                self._template_loaded = True
            return self._template

    def _fetch(self, record_id: str) -> Mapping[str, Any]:
        try:
            return self.store.get(record_id)
        except RecordNotFoundError:
            raise
        except RecordStoreError as exc:
            self._observability.emit_event(
                "record_store.error", record_id=record_id, status_code=exc.status_code, error=str(exc)
            )
            self._observability.increment("record_store.errors")
            raise


def _read_template(path: Path) -> bytes | None:
    if not path.exists():
        LOGGER.warning("SAR template %s not found; PDFs will use the data summary layout", path)
        return None
    try:
        return path.read_bytes()
    except OSError as exc:
        LOGGER.warning("SAR template %s could not be read: %s", path, exc)
        return None


__all__ = ["PDF_MEDIA_TYPE", "XML_MEDIA_TYPE", "RenderedDocument", "SarDocumentService"]
