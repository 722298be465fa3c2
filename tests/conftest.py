"""Shared fixtures: sample SAR records and reportlab-built form templates."""

from __future__ import annotations

from datetime import datetime, timezone
from io import BytesIO
from typing import Callable, Sequence

import pytest
from reportlab.lib.pagesizes import LETTER
from reportlab.pdfgen import canvas

from sardocs.observability import reset_observability_cache

FIXED_NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

SAMPLE_FIELDS = (
    "institution_name",
    "ein",
    "institution_address",
    "city",
    "state",
    "zip",
    "account_number",
    "suspect_last_name",
    "first_name",
    "phone",
    "amount",
    "activity_date",
    "description",
)


@pytest.fixture(autouse=True)
def _reset_observability():
    reset_observability_cache()
    yield
    reset_observability_cache()


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def sample_raw() -> dict:
    return {
        "financial_institution_name": "First National Bank",
        "financial_institution_ein": "12-3456789",
        "financial_institution_address": "100 Main Street",
        "financial_institution_city": "Springfield",
        "financial_institution_state": "IL",
        "financial_institution_zip": "62701",
        "account_number": "ACCT-0042",
        "suspect_last_name": "Smith",
        "suspect_first_name": "John",
        "suspect_address": "42 Elm Road",
        "suspect_city": "Shelbyville",
        "suspect_state": "IL",
        "suspect_zip": "62565",
        "suspect_phone": "555-123-4567",
        "total_dollar_amount": 15000,
        "suspicious_activity_date": "2024-01-10",
        "activity_type": "Structuring",
        "activity_description": "Multiple cash deposits just under the reporting threshold",
    }


def build_form_pdf(text_fields: Sequence[str] = (), checkboxes: Sequence[str] = ()) -> bytes:
    """Return a one-page PDF whose AcroForm holds the named fields."""

    buffer = BytesIO()
    c = canvas.Canvas(buffer, pagesize=LETTER, invariant=True)
    c.drawString(50, 760, "SAR TEMPLATE")
    y = 720
    for name in text_fields:
        c.drawString(50, y + 5, name)
        c.acroForm.textfield(name=name, x=200, y=y, width=300, height=18, borderStyle="inset", forceBorder=True)
        y -= 28
    for name in checkboxes:
        c.acroForm.checkbox(name=name, x=200, y=y, buttonStyle="check")
        y -= 28
    c.showPage()
    c.save()
    return buffer.getvalue()


@pytest.fixture
def make_template() -> Callable[..., bytes]:
    return build_form_pdf


@pytest.fixture
def sample_template() -> bytes:
    return build_form_pdf(SAMPLE_FIELDS)
