from __future__ import annotations

from dataclasses import dataclass
from typing import Any

"""ParsedRow model for the payroll ingestion pipeline.

A ParsedRow is built once per accepted data row and handed straight to the
upsert planner; it is never mutated after construction.
"""

__all__ = [
    "DutyDays",
    "LocalizedText",
    "ParsedRow",
]


@dataclass(frozen=True)
class LocalizedText:
    """A text field kept both as found in the sheet and in standard script."""
    original: str
    native: str  # transliterated (or unchanged) Devanagari form


@dataclass(frozen=True)
class DutyDays:
    period1: float | None = None
    period2: float | None = None
    period3: float | None = None
    total: float | None = None

    def to_dict(self) -> dict[str, float | None]:
        return {
            "period1": self.period1,
            "period2": self.period2,
            "period3": self.period3,
            "total": self.total,
        }


@dataclass(frozen=True)
class ParsedRow:
    """One normalized payroll row keyed by its numeric identifier."""
    identifier: str
    net_amount: float
    row_hash: str
    sheet_name: str = ""
    row_number: int = 0  # worksheet row number (1-based)
    name: LocalizedText | None = None
    position: LocalizedText | None = None
    department: LocalizedText | None = None
    account_number: str | None = None
    duty_days: DutyDays | None = None
    rate: float | None = None
    gross_amount: float | None = None
    tax_deduction: float | None = None

    def to_record(self) -> dict[str, Any]:
        """Plain dict used for the sampled rows of an upload outcome."""
        return {
            "identifier": self.identifier,
            "name": self.name.original if self.name else None,
            "name_native": self.name.native if self.name else None,
            "position": self.position.original if self.position else None,
            "position_native": self.position.native if self.position else None,
            "department": self.department.original if self.department else None,
            "department_native": self.department.native if self.department else None,
            "account_number": self.account_number,
            "duty_days": self.duty_days.to_dict() if self.duty_days else None,
            "rate": self.rate,
            "gross_amount": self.gross_amount,
            "tax_deduction": self.tax_deduction,
            "net_amount": self.net_amount,
        }
