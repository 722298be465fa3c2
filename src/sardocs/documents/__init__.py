"""Record normalization and regulatory document builders for SAR records."""

from .errors import DocumentGenerationError
from .fincen8300 import build_fincen_8300, generate_fincen_8300_xml
from .normalizer import NormalizedRecord, normalize
from .pdf import SarPdf, build_sar_pdf, generate_sar_pdf

__all__ = [
    "DocumentGenerationError",
    "NormalizedRecord",
    "SarPdf",
    "build_fincen_8300",
    "build_sar_pdf",
    "generate_fincen_8300_xml",
    "generate_sar_pdf",
    "normalize",
]
