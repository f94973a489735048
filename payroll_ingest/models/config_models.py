from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date

"""Config dataclasses for the payroll ingestion tool.

The heuristic scanning bounds are kept here as named constants so that every
guess the pipeline makes (salary range, name length, header window, keyword
density) can be tuned from config/ingest.yml without touching the parser.
"""

# Header locator: number of leading rows searched for a header row
HEADER_SCAN_ROWS = 20

# Fallback amount scan: a plausible salary lies strictly between these bounds
SALARY_MIN = 100
SALARY_MAX = 10_000_000

# Fallback name scan: accepted text length (inclusive)
NAME_MIN_LENGTH = 3
NAME_MAX_LENGTH = 99

# Stray header / total row guard: matched keywords needed to skip a data row
HEADER_KEYWORD_DENSITY = 3

# Files without a personal id column: account numbers of this length become the identifier
ACCOUNT_IDENTIFIER_MIN_LENGTH = 10
ACCOUNT_IDENTIFIER_MAX_LENGTH = 20

# Parsed rows echoed back in an upload outcome
SAMPLE_LIMIT = 100

MODE_SNAPSHOT = "snapshot"
MODE_LEDGER = "ledger"


@dataclass(frozen=True)
class HeuristicLimits:
    """Tunable bounds for header detection and fallback cell scanning."""
    header_scan_rows: int = HEADER_SCAN_ROWS
    salary_min: float = SALARY_MIN
    salary_max: float = SALARY_MAX
    name_min_length: int = NAME_MIN_LENGTH
    name_max_length: int = NAME_MAX_LENGTH
    header_keyword_density: int = HEADER_KEYWORD_DENSITY
    account_identifier_min_length: int = ACCOUNT_IDENTIFIER_MIN_LENGTH
    account_identifier_max_length: int = ACCOUNT_IDENTIFIER_MAX_LENGTH


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection configuration.

    Used as fallback when environment variables are not set.
    Environment variables take precedence over these values.
    """
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class IngestConfig:
    """Root configuration object for an ingestion run."""
    source_directory: str  # Directory scanned for payroll exports
    mode: str = MODE_SNAPSHOT  # snapshot = upsert by identifier, ledger = append unique hashes
    effective_date: date | None = None  # Participates in the content hash
    sample_limit: int = SAMPLE_LIMIT
    heuristics: HeuristicLimits = field(default_factory=HeuristicLimits)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
