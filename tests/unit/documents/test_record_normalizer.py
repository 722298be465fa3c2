"""Tests for raw SAR record normalization."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from sardocs.documents.normalizer import (
    FORM_8300_DEFAULT_AMOUNT,
    compose_address,
    format_amount_text,
    format_currency,
    format_date_range,
    normalize,
    parse_amount,
    parse_date,
    resolve_display_name,
)


def test_normalize_resolves_fields_and_derived_values(sample_raw, fixed_now):
    record = normalize(sample_raw, record_id="R1", now=fixed_now)

    assert record.record_id == "R1"
    assert record.institution_name == "First National Bank"
    assert record.display_name == "John Smith"
    assert record.institution_address_line == "100 Main Street, Springfield, IL, 62701"
    assert record.branch_address_line == "N/A"
    assert record.amount == Decimal("15000")
    assert record.total_amount_text == "15000"
    assert record.filing_date_stamp == "20240501"
    assert record.transaction_date_stamp == "20240110"
    assert record.activity_date_display == "01/10/2024"
    assert record.generated_on == date(2024, 5, 1)


def test_normalize_defaults_everything_for_empty_record(fixed_now):
    record = normalize({}, now=fixed_now)

    assert record.institution_name == ""
    assert record.display_name == "Unknown"
    assert record.suspect_surname == ""
    assert record.amount is None
    assert record.total_amount == FORM_8300_DEFAULT_AMOUNT
    assert record.total_amount_text == "10001"
    assert record.transaction_date_stamp == "20240501"
    assert record.activity_date_display == ""
    assert record.activity_date_range == "N/A"


def test_normalize_accepts_none_and_blank_values(fixed_now):
    record = normalize(
        {"suspect_last_name": None, "suspect_entity_name": "  Acme Holdings  ", "suspicious_activity_date": "  "},
        now=fixed_now,
    )

    assert record.suspect_surname == "Acme Holdings"
    assert record.display_name == "Acme Holdings"
    assert record.transaction_date_stamp == "20240501"


def test_zero_amount_is_kept(fixed_now):
    record = normalize({"total_dollar_amount": 0}, now=fixed_now)

    assert record.amount == Decimal("0")
    assert record.total_amount_text == "0"


def test_unparsable_activity_date_passes_through(fixed_now):
    record = normalize({"suspicious_activity_date": "last spring"}, now=fixed_now)

    assert record.transaction_date_stamp == "last spring"
    assert record.activity_date_display == "last spring"


def test_activity_date_range_uses_start_and_end(fixed_now):
    record = normalize(
        {"suspicious_activity_date_start": "2024-01-02", "suspicious_activity_date_end": "2024-01-09"},
        now=fixed_now,
    )

    assert record.activity_date_range == "01/02/2024 to 01/09/2024"
    assert format_date_range("2024-01-02", "2024-01-02") == "01/02/2024"


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("$15,000.50", Decimal("15000.50")),
        ("12500", Decimal("12500")),
        (9999.99, Decimal("9999.99")),
        ("", None),
        ("n/a", None),
        ("NaN", None),
        (None, None),
        (True, None),
    ],
)
def test_parse_amount(raw, expected):
    assert parse_amount(raw) == expected


def test_amount_formatting():
    assert format_amount_text(Decimal("15000.00")) == "15000"
    assert format_amount_text(Decimal("15000.50")) == "15000.5"
    assert format_amount_text(Decimal("1.5E+4")) == "15000"
    assert format_currency(Decimal("15000")) == "15000.00"
    assert format_currency(None) == ""


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("2024-03-15", date(2024, 3, 15)),
        ("2024-03-15T10:30:00Z", date(2024, 3, 15)),
        ("03/15/2024", date(2024, 3, 15)),
        ("20240315", date(2024, 3, 15)),
        ("2024/03/15", date(2024, 3, 15)),
        (1710460800000, date(2024, 3, 15)),
        ("not a date", None),
        (None, None),
    ],
)
def test_parse_date(raw, expected):
    assert parse_date(raw) == expected


def test_display_name_and_address_helpers():
    assert resolve_display_name({"suspect_first_name": "Jane"}) == "Jane"
    assert resolve_display_name({"suspect_entity_name": "Acme", "suspect_last_name": "Doe"}) == "Acme"
    assert compose_address("1 Way", None, "", "TX") == "1 Way, TX"
    assert compose_address(None, "  ") == "N/A"
