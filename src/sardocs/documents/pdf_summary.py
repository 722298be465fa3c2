"""Render a SAR data summary PDF when no fillable template can be used."""

from __future__ import annotations

from dataclasses import dataclass
from io import BytesIO
from typing import Iterable

from reportlab.lib.pagesizes import LETTER
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas

from .normalizer import NOT_AVAILABLE, NormalizedRecord, format_currency
from .text import normalize_punctuation

PAGE_WIDTH, PAGE_HEIGHT = LETTER
LEFT_MARGIN = 50
RIGHT_MARGIN = PAGE_WIDTH - 50
TOP_MARGIN = 50
LABEL_OFFSET = 10
VALUE_OFFSET = 150
VALUE_WIDTH = RIGHT_MARGIN - LEFT_MARGIN - VALUE_OFFSET
ROW_HEIGHT = 18
WRAP_LINE_HEIGHT = 12
SECTION_GAP = 15
FOOTER_Y = 50
# Rows may not be drawn below this line; the footer lives underneath.
CONTENT_FLOOR = FOOTER_Y + 30

FONT = "Helvetica"
BOLD_FONT = "Helvetica-Bold"
BODY_SIZE = 10

TITLE = "SUSPICIOUS ACTIVITY REPORT (SAR)"
SUBTITLE = "DATA SUMMARY"
FOOTER_LINES = (
    "This document contains SAR data for official use only.",
    "Please transfer this information to the official SAR form for submission.",
)

INSTITUTION_SECTION = "PART I - FINANCIAL INSTITUTION INFORMATION"
BRANCH_SECTION = "BRANCH OFFICE INFORMATION"
ACCOUNT_SECTION = "ACCOUNT INFORMATION"
SUSPECT_SECTION = "PART II - SUSPECT INFORMATION"
ACTIVITY_SECTION = "PART III - SUSPICIOUS ACTIVITY INFORMATION"


@dataclass(frozen=True)
class SummaryRow:
    label: str
    value: str
    field_number: str = ""

    @property
    def caption(self) -> str:
        if self.field_number:
            return f"{self.label} (Field {self.field_number}):"
        return f"{self.label}:"


@dataclass(frozen=True)
class SummarySection:
    title: str
    rows: tuple[SummaryRow, ...]


def build_summary_sections(record: NormalizedRecord) -> list[SummarySection]:
    """Lay out the summary content; rows without a value are left out."""

    sections = [
        _section(
            INSTITUTION_SECTION,
            ("Name", record.institution_name, "2"),
            ("EIN", record.institution_ein, "3"),
            ("Address", record.institution_address, "4"),
            ("City", record.institution_city, "6"),
            ("State", record.institution_state, "7"),
            ("ZIP Code", record.institution_zip, "8"),
        )
    ]
    if record.branch_address:
        sections.append(
            _section(
                BRANCH_SECTION,
                ("Branch Address", record.branch_address, "9"),
                ("Branch City", record.branch_city, "10"),
                ("Branch State", record.branch_state, "11"),
                ("Branch ZIP", record.branch_zip, "12"),
            )
        )
    sections.append(_section(ACCOUNT_SECTION, ("Account Number(s)", record.account_number, "14")))
    sections.append(
        _section(
            SUSPECT_SECTION,
            ("Last Name/Entity Name", record.suspect_surname, "15"),
            ("First Name", record.suspect_first_name, "16"),
            ("Address", record.suspect_address, "18"),
            ("City", record.suspect_city, "20"),
            ("State", record.suspect_state, "21"),
            ("ZIP Code", record.suspect_zip, "22"),
            ("Phone Number", record.suspect_phone, "24"),
        )
    )
    # Unlike the 8300 batch, the summary never invents an amount.
    amount = f"${format_currency(record.amount)}" if record.amount is not None else NOT_AVAILABLE
    sections.append(
        _section(
            ACTIVITY_SECTION,
            ("Activity Date", record.activity_date_display, "33"),
            ("Total Dollar Amount", amount, "34"),
            ("Activity Type", record.activity_type, ""),
            ("Activity Description", record.activity_description, ""),
        )
    )
    return sections


def wrap_text(text: str, max_width: float, font_name: str = FONT, font_size: float = BODY_SIZE) -> list[str]:
    """Greedy word wrap using measured string widths.

    A single word wider than ``max_width`` is kept whole on its own line.
    """

    lines: list[str] = []
    for paragraph in text.splitlines() or [""]:
        current = ""
        for word in paragraph.split():
            candidate = f"{current} {word}" if current else word
            if current and stringWidth(candidate, font_name, font_size) > max_width:
                lines.append(current)
                current = word
            else:
                current = candidate
        lines.append(current)
    return lines


def render_summary(record: NormalizedRecord) -> bytes:
    """Draw the summary document and return the PDF bytes."""

    buffer = BytesIO()
    _SummaryDocument(buffer, record).render(build_summary_sections(record))
    return buffer.getvalue()


class _SummaryDocument:
    """Cursor-based drawing over a reportlab canvas, paginating as it goes."""

    def __init__(self, buffer: BytesIO, record: NormalizedRecord) -> None:
        self.record = record
        self.canvas = canvas.Canvas(buffer, pagesize=LETTER, invariant=True)
        self.canvas.setTitle("SAR Data Summary")
        self.y = PAGE_HEIGHT - TOP_MARGIN

    def render(self, sections: Iterable[SummarySection]) -> None:
        self._draw_header()
        for section in sections:
            self._draw_section(section)
        self._draw_footer()
        self.canvas.save()

    def _draw_header(self) -> None:
        c = self.canvas
        c.setFont(BOLD_FONT, 18)
        c.drawString(LEFT_MARGIN, self.y, TITLE)
        c.setFont(BOLD_FONT, 14)
        c.drawString(LEFT_MARGIN, self.y - 25, SUBTITLE)
        c.setFont(FONT, BODY_SIZE)
        c.drawString(RIGHT_MARGIN - 150, self.y - 25, f"Generated: {self.record.generated_on.strftime('%m/%d/%Y')}")
        self.y -= 60
        c.setLineWidth(1)
        c.line(LEFT_MARGIN, self.y, RIGHT_MARGIN, self.y)
        self.y -= 30

    def _draw_section(self, section: SummarySection) -> None:
        self._reserve(25 + ROW_HEIGHT)
        self.canvas.setFont(BOLD_FONT, 14)
        self.canvas.drawString(LEFT_MARGIN, self.y, section.title)
        self.y -= 25
        for row in section.rows:
            self._draw_row(row)
        self.y -= SECTION_GAP

    def _draw_row(self, row: SummaryRow) -> None:
        lines = wrap_text(normalize_punctuation(row.value), VALUE_WIDTH)
        self._reserve(ROW_HEIGHT)
        c = self.canvas
        c.setFont(BOLD_FONT, BODY_SIZE)
        c.drawString(LEFT_MARGIN + LABEL_OFFSET, self.y, row.caption)
        c.setFont(FONT, BODY_SIZE)
        for index, line in enumerate(lines):
            if index:
                self.y -= WRAP_LINE_HEIGHT
                self._reserve(WRAP_LINE_HEIGHT)
                c.setFont(FONT, BODY_SIZE)
            c.drawString(LEFT_MARGIN + VALUE_OFFSET, self.y, line)
        self.y -= ROW_HEIGHT

    def _reserve(self, height: float) -> None:
        if self.y - height >= CONTENT_FLOOR:
            return
        self._draw_footer()
        self.canvas.showPage()
        self.y = PAGE_HEIGHT - TOP_MARGIN

    def _draw_footer(self) -> None:
        self.canvas.setFont(FONT, 8)
        for offset, line in enumerate(FOOTER_LINES):
            self.canvas.drawString(LEFT_MARGIN, FOOTER_Y - offset * 12, line)


def _section(title: str, *rows: tuple[str, str, str]) -> SummarySection:
    return SummarySection(
        title=title,
        rows=tuple(SummaryRow(label, value, number) for label, value, number in rows if value),
    )


__all__ = [
    "ACTIVITY_SECTION",
    "BRANCH_SECTION",
    "SUSPECT_SECTION",
    "SummaryRow",
    "SummarySection",
    "build_summary_sections",
    "render_summary",
    "wrap_text",
]
