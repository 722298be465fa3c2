"""sardocs: SAR record browsing and regulatory document export.

This package reads Suspicious Activity Report records from a search index and
turns each one into a FinCEN Form 8300 XML batch file or a filled SAR PDF.
"""
