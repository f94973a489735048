"""Heuristic ingestion of spreadsheet payroll exports into normalized records."""

__version__ = "0.1.0"
