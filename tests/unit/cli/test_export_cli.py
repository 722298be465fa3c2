"""Tests for the sardocs-export command."""

from __future__ import annotations

import json
from io import BytesIO

import pytest
from lxml import etree
from pypdf import PdfReader

from sardocs.cli import export
from sardocs.settings import Settings
from sardocs.store import RecordNotFoundError


@pytest.fixture
def cli_settings(tmp_path, monkeypatch):
    settings = Settings(documents={"template_path": tmp_path / "no-template.pdf"})
    monkeypatch.setattr(export, "get_settings", lambda: settings)
    return settings


def test_exports_xml_from_json_file(tmp_path, sample_raw, cli_settings, capsys):
    record_file = tmp_path / "record.json"
    record_file.write_text(json.dumps({"_id": "R1", "_source": sample_raw}), encoding="utf-8")
    output = tmp_path / "out.xml"

    exit_code = export.main(["xml", "R1", "--input", str(record_file), "--output", str(output)])

    assert exit_code == 0
    assert capsys.readouterr().out.strip() == str(output)
    root = etree.fromstring(output.read_bytes())
    assert root.get("TotalAmount") == "15000"


def test_exports_pdf_with_template_into_directory(tmp_path, sample_raw, sample_template, cli_settings):
    record_file = tmp_path / "record.json"
    record_file.write_text(json.dumps(sample_raw), encoding="utf-8")
    template = tmp_path / "fillable.pdf"
    template.write_bytes(sample_template)
    out_dir = tmp_path / "exports"
    out_dir.mkdir()

    exit_code = export.main(
        ["pdf", "R1", "--input", str(record_file), "--template", str(template), "--output", str(out_dir)]
    )

    assert exit_code == 0
    written = list(out_dir.glob("SAR-Report-R1-*.pdf"))
    assert len(written) == 1
    fields = PdfReader(BytesIO(written[0].read_bytes())).get_fields()
    assert fields["suspect_last_name"]["/V"] == "Smith"


def test_missing_record_exits_with_error(tmp_path, cli_settings, monkeypatch, capsys):
    def _not_found(self, record_id):
        raise RecordNotFoundError(f"SAR report {record_id} not found", status_code=404)

    monkeypatch.setattr(export.SarDocumentService, "render_fincen_8300", _not_found)

    exit_code = export.main(["xml", "ghost", "--output", str(tmp_path / "ghost.xml")])

    assert exit_code == 1
    assert "SAR report not found: ghost" in capsys.readouterr().err
    assert not (tmp_path / "ghost.xml").exists()


def test_unreadable_input_exits_with_error(tmp_path, cli_settings, capsys):
    bad = tmp_path / "bad.json"
    bad.write_text("[1, 2, 3]", encoding="utf-8")

    assert export.main(["pdf", "R1", "--input", str(bad)]) == 1
    assert "Cannot read record input" in capsys.readouterr().err


def test_rejects_unknown_document_kind():
    with pytest.raises(SystemExit):
        export.parse_args(["docx", "R1"])
