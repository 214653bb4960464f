"""Tender spreadsheet ingestion: inbox workbook to remote registry."""

__version__ = "0.1.0"
