"""Domain models for the payroll ingestion pipeline.

This package contains the dataclasses passed between the pipeline stages:
column mappings, normalized identifiers, parsed rows, upload outcomes and
batch results.
"""

from .column_mapping import ColumnMapping
from .config_models import DatabaseConfig, HeuristicLimits, IngestConfig
from .identifier import IdentifierKind, NormalizedIdentifier
from .parsed_row import DutyDays, LocalizedText, ParsedRow
from .processing_result import ProcessingResult
from .sheet_scan import SheetScan
from .transliteration import TransliterationResult
from .upload_outcome import FileStatus, UploadOutcome

__all__ = [
    # Configuration models
    "DatabaseConfig",
    "HeuristicLimits",
    "IngestConfig",
    # Pipeline models
    "ColumnMapping",
    "IdentifierKind",
    "NormalizedIdentifier",
    "DutyDays",
    "LocalizedText",
    "ParsedRow",
    "SheetScan",
    "TransliterationResult",
    # Result models
    "FileStatus",
    "UploadOutcome",
    "ProcessingResult",
]
