"""Fill the named fields of a fillable SAR PDF template.

Template field names are not under our control, so values are placed by
substring matching: each target carries a few patterns, tried in order against
the template's text fields in document order. Filling never raises; the caller
receives one of :class:`Filled`, :class:`FallbackNeeded` or :class:`LoadFailed`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from io import BytesIO
from typing import Iterable, Sequence, Union

from pypdf import PasswordType, PdfReader, PdfWriter
from pypdf.generic import NameObject, NumberObject

from .normalizer import NormalizedRecord, format_currency
from .text import clean_pdf_text

LOGGER = logging.getLogger(__name__)

_TEXT_FIELD_TYPE = "/Tx"
_READ_ONLY_FLAG = 1


@dataclass(frozen=True)
class FieldTarget:
    """A record value together with the field-name patterns that accept it."""

    label: str
    patterns: tuple[str, ...]
    value: str


@dataclass(frozen=True)
class TemplateField:
    """A form field discovered in the template."""

    name: str
    is_text: bool


@dataclass(frozen=True)
class FieldAssignment:
    """A value written into one template field."""

    label: str
    field_name: str
    value: str


@dataclass(frozen=True)
class Filled:
    """The template was filled; ``pdf_bytes`` is the finished document."""

    pdf_bytes: bytes
    assignments: tuple[FieldAssignment, ...]


@dataclass(frozen=True)
class FallbackNeeded:
    """The template loaded but offered nothing to fill."""

    reason: str


@dataclass(frozen=True)
class LoadFailed:
    """The template was absent, unreadable or failed while filling."""

    reason: str


FillOutcome = Union[Filled, FallbackNeeded, LoadFailed]


def field_targets(record: NormalizedRecord) -> tuple[FieldTarget, ...]:
    """Return the ordered (target, patterns, value) list for a record."""

    return (
        FieldTarget("Institution Name", ("name", "institution", "bank"), record.institution_name),
        FieldTarget("EIN", ("ein", "tax"), record.institution_ein),
        FieldTarget("Address", ("address", "addr"), record.institution_address),
        FieldTarget("City", ("city",), record.institution_city),
        FieldTarget("State", ("state",), record.institution_state),
        FieldTarget("ZIP", ("zip", "postal"), record.institution_zip),
        FieldTarget("Account Number", ("account", "acct"), record.account_number),
        FieldTarget("Suspect Name", ("suspect", "subject", "last"), record.suspect_surname),
        FieldTarget("First Name", ("first",), record.suspect_first_name),
        FieldTarget("Phone", ("phone", "tel"), record.suspect_phone),
        FieldTarget("Dollar Amount", ("amount", "dollar", "money"), format_currency(record.amount)),
        FieldTarget("Activity Date", ("date", "activity"), record.activity_date_display),
        FieldTarget("Description", ("description", "narrative"), record.activity_description),
    )


def name_matches(pattern: str, field_name: str) -> bool:
    """True when the lower-cased field name contains, or is contained by, ``pattern``."""

    lowered = field_name.lower()
    if not lowered:
        return False
    return pattern in lowered or lowered in pattern


def match_fields(targets: Iterable[FieldTarget], fields: Sequence[TemplateField]) -> list[FieldAssignment]:
    """Assign each target with a value to the first matching text field.

    Patterns are tried in declared order and, for each pattern, fields in
    document order. When two targets land on the same field the later one wins.
    """

    assignments: list[FieldAssignment] = []
    for target in targets:
        value = clean_pdf_text(target.value)
        if not value:
            continue
        match = _first_match(target.patterns, fields)
        if match is None:
            continue
        assignments.append(FieldAssignment(label=target.label, field_name=match.name, value=value))
    return assignments


def read_template_fields(reader: PdfReader) -> list[TemplateField]:
    """List the template's form fields in document order."""

    fields = reader.get_fields() or {}
    return [TemplateField(name=name, is_text=field.get("/FT") == _TEXT_FIELD_TYPE) for name, field in fields.items()]


def fill_template(record: NormalizedRecord, template_bytes: bytes | None) -> FillOutcome:
    """Attempt to fill ``template_bytes`` with the record's values."""

    if not template_bytes:
        return LoadFailed("no template available")

    try:
        reader = PdfReader(BytesIO(template_bytes))
        if reader.is_encrypted and reader.decrypt("") == PasswordType.NOT_DECRYPTED:
            return LoadFailed("template is encrypted")
        fields = read_template_fields(reader)
    except Exception as exc:  # pypdf raises a wide range of errors for malformed input
        LOGGER.warning("SAR template could not be loaded: %s", exc)
        return LoadFailed(f"template could not be loaded: {exc}")

    if not fields:
        return FallbackNeeded("template has no form fields")
    if not any(field.is_text for field in fields):
        return FallbackNeeded("template has no text fields")

    LOGGER.debug("Template offers %d form fields: %s", len(fields), [field.name for field in fields[:10]])
    assignments = match_fields(field_targets(record), fields)
    if not assignments:
        return FallbackNeeded("no template fields matched the record")

    try:
        writer = PdfWriter(clone_from=reader)
        values = {assignment.field_name: assignment.value for assignment in assignments}
        for page in writer.pages:
            writer.update_page_form_field_values(page, values, auto_regenerate=False)
        _flatten(writer, values)
        buffer = BytesIO()
        writer.write(buffer)
    except Exception as exc:
        LOGGER.warning("Filling SAR template failed: %s", exc)
        return LoadFailed(f"template fill failed: {exc}")

    for assignment in assignments:
        LOGGER.debug("Filled %s into template field %s", assignment.label, assignment.field_name)
    LOGGER.info("Filled %d SAR template fields", len(assignments))
    return Filled(pdf_bytes=buffer.getvalue(), assignments=tuple(assignments))


def _first_match(patterns: Sequence[str], fields: Sequence[TemplateField]) -> TemplateField | None:
    for pattern in patterns:
        for field in fields:
            if field.is_text and name_matches(pattern, field.name):
                return field
    return None


def _flatten(writer: PdfWriter, values: dict[str, str]) -> None:
    """Draw the filled values into the page content and lock every field.

    Failures are logged and leave the form editable.
    """

    try:
        for page in writer.pages:
            writer.update_page_form_field_values(page, values, auto_regenerate=False, flatten=True)
        for page in writer.pages:
            for annotation in page.get("/Annots") or []:
                widget = annotation.get_object()
                if widget.get("/Subtype") != "/Widget":
                    continue
                field = widget if "/T" in widget else widget["/Parent"].get_object()
                flags = int(field.get("/Ff", 0))
                field[NameObject("/Ff")] = NumberObject(flags | _READ_ONLY_FLAG)
    except Exception as exc:
        LOGGER.warning("Could not flatten SAR template form (PDF may remain editable): %s", exc)


__all__ = [
    "FallbackNeeded",
    "FieldAssignment",
    "FieldTarget",
    "FillOutcome",
    "Filled",
    "LoadFailed",
    "TemplateField",
    "field_targets",
    "fill_template",
    "match_fields",
    "name_matches",
    "read_template_fields",
]
