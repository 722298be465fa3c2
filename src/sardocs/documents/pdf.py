"""SAR PDF generation: template fill first, rendered summary as the fallback."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal, Mapping

from .errors import DocumentGenerationError
from .normalizer import NormalizedRecord, normalize
from .pdf_fill import FallbackNeeded, FieldAssignment, Filled, LoadFailed, fill_template
from .pdf_summary import render_summary

LOGGER = logging.getLogger(__name__)

TEMPLATE_STRATEGY = "template"
SUMMARY_STRATEGY = "summary"


@dataclass(frozen=True)
class SarPdf:
    """A generated SAR PDF and how it was produced."""

    content: bytes
    strategy: Literal["template", "summary"]
    fallback_reason: str | None = None
    assignments: tuple[FieldAssignment, ...] = field(default_factory=tuple)


def build_sar_pdf(record: NormalizedRecord, template_bytes: bytes | None = None) -> SarPdf:
    """Produce the SAR PDF for a normalized record.

    Template problems never reach the caller: any outcome other than
    :class:`~sardocs.documents.pdf_fill.Filled` is answered with the summary
    layout.

    Raises:
        DocumentGenerationError: Only if the summary renderer itself fails.
    """

    outcome = fill_template(record, template_bytes)
    if isinstance(outcome, Filled):
        return SarPdf(content=outcome.pdf_bytes, strategy=TEMPLATE_STRATEGY, assignments=outcome.assignments)

    if isinstance(outcome, LoadFailed):
        LOGGER.info("SAR template unavailable (%s); rendering data summary", outcome.reason)
    elif isinstance(outcome, FallbackNeeded):
        LOGGER.info("SAR template not fillable (%s); rendering data summary", outcome.reason)

    try:
        content = render_summary(record)
    except Exception as exc:
        LOGGER.exception("Failed to render SAR data summary for record %s", record.record_id)
        raise DocumentGenerationError(f"Failed to generate SAR PDF: {exc}") from exc
    return SarPdf(content=content, strategy=SUMMARY_STRATEGY, fallback_reason=outcome.reason)


def generate_sar_pdf(
    raw: Mapping[str, Any],
    template_bytes: bytes | None = None,
    *,
    record_id: str = "",
    now: datetime | None = None,
) -> bytes:
    """Normalize a raw SAR record and return the PDF bytes."""

    return build_sar_pdf(normalize(raw, record_id=record_id, now=now), template_bytes).content


__all__ = ["SUMMARY_STRATEGY", "TEMPLATE_STRATEGY", "SarPdf", "build_sar_pdf", "generate_sar_pdf"]
