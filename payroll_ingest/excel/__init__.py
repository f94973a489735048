"""Workbook decoding, cell text extraction and header detection."""
