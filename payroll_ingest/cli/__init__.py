"""Command line interface for payroll-ingest (entry point: cli.__main__.main)."""
