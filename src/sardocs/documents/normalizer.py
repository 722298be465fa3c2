"""Normalization of raw SAR records into typed, defaulted document inputs.

Records come straight from the search index, so any field may be missing,
``None``, blank, numeric where text is expected, or a date in one of several
formats. :func:`normalize` turns such a mapping into a :class:`NormalizedRecord`
whose every field has a defined fallback, which lets the builders read values
without special-casing missing data.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping

# Form 8300 applies to cash over $10,000; a record without an amount still has
# to produce a filing above the threshold.
FORM_8300_DEFAULT_AMOUNT = Decimal("10001")

UNKNOWN_NAME = "Unknown"
NOT_AVAILABLE = "N/A"

_DATE_FORMATS = ("%Y-%m-%d", "%m/%d/%Y", "%Y%m%d", "%Y/%m/%d")


@dataclass(frozen=True, slots=True)
class NormalizedRecord:
    """Typed view over a SAR record with every derived field resolved."""

    record_id: str
    institution_name: str
    institution_ein: str
    institution_address: str
    institution_city: str
    institution_state: str
    institution_zip: str
    branch_address: str
    branch_city: str
    branch_state: str
    branch_zip: str
    account_number: str
    suspect_last_name: str
    suspect_first_name: str
    suspect_entity_name: str
    suspect_address: str
    suspect_city: str
    suspect_state: str
    suspect_zip: str
    suspect_phone: str
    activity_date: str
    activity_type: str
    activity_description: str
    amount: Decimal | None
    display_name: str
    institution_address_line: str
    branch_address_line: str
    suspect_address_line: str
    total_amount: Decimal
    filing_date_stamp: str
    transaction_date_stamp: str
    activity_date_display: str
    activity_date_range: str
    generated_on: date

    @property
    def suspect_surname(self) -> str:
        """str: Last name, falling back to the entity name (may be empty)."""

        return self.suspect_last_name or self.suspect_entity_name

    @property
    def total_amount_text(self) -> str:
        """str: Form 8300 amount rendered without a currency symbol."""

        return format_amount_text(self.total_amount)


def normalize(raw: Mapping[str, Any] | None, *, record_id: str = "", now: datetime | None = None) -> NormalizedRecord:
    """Build a :class:`NormalizedRecord` from a raw index document.

    Args:
        raw: Mapping of field name to scalar value; any key may be absent.
        record_id: Opaque identifier assigned by the record store.
        now: Clock reading used for filing dates and the default transaction
            date. Defaults to the current UTC time.

    Returns:
        Fully defaulted record. This function does not raise for bad data.
    """

    source: Mapping[str, Any] = raw or {}
    current = now or datetime.now(timezone.utc)

    def field(name: str) -> str:
        return _text(source.get(name))

    institution_address = field("financial_institution_address")
    institution_city = field("financial_institution_city")
    institution_state = field("financial_institution_state")
    institution_zip = field("financial_institution_zip")
    branch_address = field("branch_address")
    branch_city = field("branch_city")
    branch_state = field("branch_state")
    branch_zip = field("branch_zip")
    suspect_address = field("suspect_address")
    suspect_city = field("suspect_city")
    suspect_state = field("suspect_state")
    suspect_zip = field("suspect_zip")

    raw_activity_date = source.get("suspicious_activity_date")
    amount = parse_amount(source.get("total_dollar_amount"))

    if _is_absent(raw_activity_date):
        transaction_date_stamp = current.strftime("%Y%m%d")
    else:
        transaction_date_stamp = format_fincen_date(raw_activity_date)

    return NormalizedRecord(
        record_id=_text(record_id),
        institution_name=field("financial_institution_name"),
        institution_ein=field("financial_institution_ein"),
        institution_address=institution_address,
        institution_city=institution_city,
        institution_state=institution_state,
        institution_zip=institution_zip,
        branch_address=branch_address,
        branch_city=branch_city,
        branch_state=branch_state,
        branch_zip=branch_zip,
        account_number=field("account_number"),
        suspect_last_name=field("suspect_last_name"),
        suspect_first_name=field("suspect_first_name"),
        suspect_entity_name=field("suspect_entity_name"),
        suspect_address=suspect_address,
        suspect_city=suspect_city,
        suspect_state=suspect_state,
        suspect_zip=suspect_zip,
        suspect_phone=field("suspect_phone"),
        activity_date=field("suspicious_activity_date"),
        activity_type=field("activity_type"),
        activity_description=field("activity_description"),
        amount=amount,
        display_name=resolve_display_name(source),
        institution_address_line=compose_address(
            institution_address, institution_city, institution_state, institution_zip
        ),
        branch_address_line=compose_address(branch_address, branch_city, branch_state, branch_zip),
        suspect_address_line=compose_address(suspect_address, suspect_city, suspect_state, suspect_zip),
        total_amount=amount if amount is not None else FORM_8300_DEFAULT_AMOUNT,
        filing_date_stamp=current.strftime("%Y%m%d"),
        transaction_date_stamp=transaction_date_stamp,
        activity_date_display=format_display_date(raw_activity_date),
        activity_date_range=format_date_range(
            source.get("suspicious_activity_date_start") or raw_activity_date,
            source.get("suspicious_activity_date_end"),
        ),
        generated_on=current.date(),
    )


def resolve_display_name(raw: Mapping[str, Any]) -> str:
    """Return the entity name, else ``"first last"``, else ``"Unknown"``."""

    entity = _text(raw.get("suspect_entity_name"))
    if entity:
        return entity
    full_name = " ".join(
        part for part in (_text(raw.get("suspect_first_name")), _text(raw.get("suspect_last_name"))) if part
    )
    return full_name or UNKNOWN_NAME


def compose_address(*parts: Any) -> str:
    """Join the non-empty address components with ``", "`` (``"N/A"`` if none)."""

    present = [text for text in (_text(part) for part in parts) if text]
    return ", ".join(present) if present else NOT_AVAILABLE


def parse_amount(value: Any) -> Decimal | None:
    """Coerce a number or currency string (``"$15,000.00"``) to ``Decimal``."""

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, (int, float)):
        amount = Decimal(str(value))
    else:
        text = str(value).replace("$", "").replace(",", "").strip()
        if not text:
            return None
        try:
            amount = Decimal(text)
        except InvalidOperation:
            return None
    if not amount.is_finite():
        return None
    return amount


def format_amount_text(amount: Decimal) -> str:
    """Render an amount the way the batch file expects (``15000``, ``15000.5``)."""

    if amount == amount.to_integral_value():
        return format(amount.to_integral_value(), "f")
    return format(amount.normalize(), "f")


def format_currency(amount: Decimal | None) -> str:
    """Two-decimal amount for PDF output; empty string when absent."""

    if amount is None:
        return ""
    return f"{amount:.2f}"


def parse_date(value: Any) -> date | None:
    """Parse ISO dates/datetimes, ``MM/DD/YYYY``, ``YYYYMMDD`` or epoch millis."""

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc).date()
        except (OverflowError, OSError, ValueError):
            return None
    text = str(value).strip()
    if not text:
        return None
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def format_fincen_date(value: Any) -> str:
    """Return ``YYYYMMDD``; blank input gives ``""`` and unparsable input is returned as-is."""

    return _format_date(value, "%Y%m%d")


def format_display_date(value: Any) -> str:
    """Return ``MM/DD/YYYY``; blank input gives ``""`` and unparsable input is returned as-is."""

    return _format_date(value, "%m/%d/%Y")


def format_date_range(start: Any, end: Any) -> str:
    """Describe an activity window such as ``01/02/2024 to 01/09/2024``."""

    first = format_display_date(start)
    last = format_display_date(end)
    if first and last and first != last:
        return f"{first} to {last}"
    return first or last or NOT_AVAILABLE


def _format_date(value: Any, fmt: str) -> str:
    if _is_absent(value):
        return ""
    parsed = parse_date(value)
    if parsed is None:
        return _text(value)
    return parsed.strftime(fmt)


def _is_absent(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value).strip()


__all__ = [
    "FORM_8300_DEFAULT_AMOUNT",
    "NOT_AVAILABLE",
    "NormalizedRecord",
    "compose_address",
    "format_amount_text",
    "format_currency",
    "format_date_range",
    "format_display_date",
    "format_fincen_date",
    "normalize",
    "parse_amount",
    "parse_date",
    "resolve_display_name",
]
