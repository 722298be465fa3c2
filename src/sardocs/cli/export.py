"""Export Form 8300 XML or the SAR PDF for one record.

Usage:
    sardocs-export xml RECORD_ID [--output PATH]
    sardocs-export pdf RECORD_ID --input record.json [--template sar-template.pdf]

Records are fetched from the configured search index unless ``--input`` points
at a JSON file holding the record (either the bare source document or a raw
``{"_id": ..., "_source": {...}}`` hit).
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Mapping, Sequence

from sardocs.documents import DocumentGenerationError
from sardocs.observability import configure_logging
from sardocs.services import RenderedDocument, SarDocumentService
from sardocs.settings import Settings, get_settings
from sardocs.store import RecordNotFoundError, RecordStoreError


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments."""

    p = argparse.ArgumentParser(prog="sardocs-export", description="Generate a regulatory document for a SAR record")
    p.add_argument("kind", choices=("xml", "pdf"), help="Document to produce: FinCEN 8300 XML or SAR PDF")
    p.add_argument("record_id", help="Record identifier (quoted in the 8300 narrative and file name)")
    p.add_argument("--input", type=Path, help="Read the record from this JSON file instead of the index")
    p.add_argument("--template", type=Path, help="Fillable SAR PDF template (overrides SAR_TEMPLATE_PATH)")
    p.add_argument("--output", type=Path, help="Output file or directory (default: current directory)")
    return p.parse_args(argv)


def load_record(path: Path) -> Mapping[str, Any]:
    """Read a record from JSON, unwrapping an index hit when present."""

    with path.open("r", encoding="utf-8") as fh:
        payload = json.load(fh)
    if not isinstance(payload, dict):
        raise ValueError(f"{path} does not contain a JSON object")
    source = payload.get("_source")
    return source if isinstance(source, dict) else payload


def _with_template(settings: Settings, template: Path | None) -> Settings:
    if template is None:
        return settings
    documents = settings.documents.model_copy(update={"template_path": template.expanduser().resolve()})
    return settings.model_copy(update={"documents": documents})


def _render(service: SarDocumentService, args: argparse.Namespace) -> RenderedDocument:
    if args.input is not None:
        record = load_record(args.input)
        if args.kind == "xml":
            return service.fincen_8300_document(record, args.record_id)
        return service.pdf_document(record, args.record_id)
    if args.kind == "xml":
        return service.render_fincen_8300(args.record_id)
    return service.render_pdf(args.record_id)


def _destination(output: Path | None, filename: str) -> Path:
    if output is None:
        return Path.cwd() / filename
    if output.is_dir():
        return output / filename
    return output


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for CLI usage."""

    args = parse_args(argv)
    settings = _with_template(get_settings(), args.template)
    configure_logging(settings)
    service = SarDocumentService(settings=settings)

    try:
        document = _render(service, args)
    except RecordNotFoundError:
        print(f"SAR report not found: {args.record_id}", file=sys.stderr)
        return 1
    except (RecordStoreError, DocumentGenerationError) as exc:
        print(f"Failed to generate {args.kind.upper()} for {args.record_id}: {exc}", file=sys.stderr)
        return 1
    except (OSError, ValueError) as exc:
        print(f"Cannot read record input: {exc}", file=sys.stderr)
        return 1

    destination = _destination(args.output, document.filename)
    destination.parent.mkdir(parents=True, exist_ok=True)
    destination.write_bytes(document.content)
    print(destination)
    return 0


if __name__ == "__main__":
    sys.exit(main())
