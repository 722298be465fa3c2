"""Exceptions raised by the document builders."""

from __future__ import annotations


class DocumentGenerationError(RuntimeError):
    """Raised when a document cannot be assembled or serialized."""


__all__ = ["DocumentGenerationError"]
