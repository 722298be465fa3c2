"""Tests for the SAR PDF strategy dispatcher."""

from __future__ import annotations

from io import BytesIO

import pytest
from pypdf import PdfReader

from sardocs.documents import DocumentGenerationError, build_sar_pdf, generate_sar_pdf, normalize
from sardocs.documents import pdf as pdf_module


def test_fillable_template_is_used(sample_raw, fixed_now, sample_template):
    result = build_sar_pdf(normalize(sample_raw, now=fixed_now), sample_template)

    assert result.strategy == "template"
    assert result.fallback_reason is None
    assert result.assignments
    assert PdfReader(BytesIO(result.content)).get_fields()["city"]["/V"] == "Springfield"


def test_missing_template_falls_back_to_summary(sample_raw, fixed_now):
    result = build_sar_pdf(normalize(sample_raw, now=fixed_now), None)

    assert result.strategy == "summary"
    assert result.fallback_reason == "no template available"
    assert "DATA SUMMARY" in PdfReader(BytesIO(result.content)).pages[0].extract_text()


@pytest.mark.parametrize("template", [b"garbage bytes", None])
def test_unusable_templates_never_raise(sample_raw, fixed_now, template):
    result = build_sar_pdf(normalize(sample_raw, now=fixed_now), template)
    assert result.strategy == "summary"
    assert result.content.startswith(b"%PDF")


def test_template_without_fields_falls_back(sample_raw, fixed_now, make_template):
    result = build_sar_pdf(normalize(sample_raw, now=fixed_now), make_template())

    assert result.strategy == "summary"
    assert result.fallback_reason == "template has no form fields"
    assert PdfReader(BytesIO(result.content)).get_fields() is None


def test_summary_failure_is_a_generation_error(sample_raw, fixed_now, monkeypatch):
    def _boom(record):
        raise RuntimeError("canvas unavailable")

    monkeypatch.setattr(pdf_module, "render_summary", _boom)
    with pytest.raises(DocumentGenerationError, match="canvas unavailable"):
        build_sar_pdf(normalize(sample_raw, now=fixed_now), None)


def test_generate_sar_pdf_is_idempotent(sample_raw, fixed_now):
    first = generate_sar_pdf(sample_raw, None, record_id="R1", now=fixed_now)
    second = generate_sar_pdf(sample_raw, None, record_id="R1", now=fixed_now)

    assert first.startswith(b"%PDF")
    assert first == second


def test_generate_sar_pdf_from_template_is_idempotent(sample_raw, fixed_now, sample_template):
    first = generate_sar_pdf(sample_raw, sample_template, record_id="R1", now=fixed_now)
    second = generate_sar_pdf(sample_raw, sample_template, record_id="R1", now=fixed_now)

    assert PdfReader(BytesIO(first)).get_fields()["city"]["/V"] == "Springfield"
    assert first == second
