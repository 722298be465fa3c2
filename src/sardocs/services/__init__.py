"""Service layer for SAR document generation."""

from sardocs.services.sar_documents import RenderedDocument, SarDocumentService

__all__ = ["RenderedDocument", "SarDocumentService"]
