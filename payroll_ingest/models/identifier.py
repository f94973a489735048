from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

__all__ = [
    "IdentifierKind",
    "NormalizedIdentifier",
]


class IdentifierKind(Enum):
    """Classification of a cleaned numeric identifier by its length.

    - TAX_ID: exactly 9 digits (after zero padding)
    - ACCOUNT_NUMBER: 13-17 digits (bank account)
    - UNKNOWN: anything else
    """
    TAX_ID = "tax_id"
    ACCOUNT_NUMBER = "account_number"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class NormalizedIdentifier:
    raw_digits: str  # digits left after cleaning, never empty
    value: str  # zero padded to 9 digits when the raw digits were 1-8 long
    kind: IdentifierKind
