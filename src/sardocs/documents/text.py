"""Text cleaners applied to every value written into a generated document."""

from __future__ import annotations

import re
from typing import Any

XML_DEFAULT_MAX_LENGTH = 150
PDF_FIELD_MAX_LENGTH = 500

_XML_ENTITIES = {
    "<": "&lt;",
    ">": "&gt;",
    "&": "&amp;",
    '"': "&quot;",
    "'": "&apos;",
}
_XML_SPECIAL_RE = re.compile(r"[<>&\"']")
_NON_PRINTABLE_ASCII_RE = re.compile(r"[^\x20-\x7E]")
_NON_ASCII_RE = re.compile(r"[^\x00-\x7F]")

_PUNCTUATION_REPLACEMENTS = (
    ("\N{LEFT SINGLE QUOTATION MARK}", "'"),
    ("\N{RIGHT SINGLE QUOTATION MARK}", "'"),
    ("\N{LEFT DOUBLE QUOTATION MARK}", '"'),
    ("\N{RIGHT DOUBLE QUOTATION MARK}", '"'),
    ("\N{EN DASH}", "-"),
    ("\N{EM DASH}", "-"),
    ("\N{HORIZONTAL ELLIPSIS}", "..."),
    ("\N{NO-BREAK SPACE}", " "),
)


def clean_xml_text(value: Any, max_length: int = XML_DEFAULT_MAX_LENGTH) -> str:
    """Escape, strip and truncate a value for a Form 8300 text element.

    The steps always run in the same order: entity-escape ``< > & " '``, drop
    anything outside printable ASCII, trim, then cut to ``max_length``. The cut
    happens on the escaped string, so a long value can end in a partial entity
    such as ``&am``; the XML serializer escapes that ``&`` again and the
    document stays well-formed.
    """

    if value is None:
        return ""
    text = str(value)
    if not text:
        return ""
    escaped = _XML_SPECIAL_RE.sub(lambda match: _XML_ENTITIES[match.group(0)], text)
    printable = _NON_PRINTABLE_ASCII_RE.sub("", escaped)
    return printable.strip()[:max_length]


def normalize_punctuation(value: Any) -> str:
    """Replace smart quotes, dashes, ellipses and non-breaking spaces with ASCII."""

    if value is None:
        return ""
    text = str(value)
    for source, replacement in _PUNCTUATION_REPLACEMENTS:
        text = text.replace(source, replacement)
    return text


def clean_pdf_text(value: Any, max_length: int = PDF_FIELD_MAX_LENGTH) -> str:
    """Return an ASCII-only, trimmed and length-capped value for a PDF form field."""

    text = normalize_punctuation(value)
    text = _NON_ASCII_RE.sub("", text)
    return text.strip()[:max_length]


__all__ = [
    "PDF_FIELD_MAX_LENGTH",
    "XML_DEFAULT_MAX_LENGTH",
    "clean_pdf_text",
    "clean_xml_text",
    "normalize_punctuation",
]
