from __future__ import annotations

from dataclasses import dataclass, fields

"""ColumnMapping model: which worksheet column carries which payroll field.

Column indexes are 1-based like worksheet columns. A field left as None was
not found in the header row; header_row == 0 marks the fallback mapping used
when no header row qualified (every row is then a data row candidate).
"""

__all__ = [
    "ColumnMapping",
]


@dataclass(frozen=True)
class ColumnMapping:
    header_row: int
    identifier: int | None = None
    name: int | None = None
    position: int | None = None
    department: int | None = None
    account: int | None = None
    duty1: int | None = None
    duty2: int | None = None
    duty3: int | None = None
    duty_total: int | None = None
    rate: int | None = None
    gross: int | None = None
    tax: int | None = None
    net: int | None = None

    @classmethod
    def fallback(cls) -> ColumnMapping:
        """Mapping used when no header row was found: scan every row."""
        return cls(header_row=0)

    @property
    def is_fallback(self) -> bool:
        return self.header_row == 0

    @property
    def has_identifier_column(self) -> bool:
        return self.identifier is not None or self.account is not None

    @property
    def has_amount_column(self) -> bool:
        return self.net is not None or self.gross is not None

    @property
    def is_valid(self) -> bool:
        """A mapping with neither identifier-capable nor amount-capable columns is unusable."""
        return self.has_identifier_column or self.has_amount_column

    def mapped_columns(self) -> dict[str, int]:
        """Field name -> column index for every field that was found."""
        result: dict[str, int] = {}
        for f in fields(self):
            if f.name == "header_row":
                continue
            value = getattr(self, f.name)
            if value is not None:
                result[f.name] = value
        return result
