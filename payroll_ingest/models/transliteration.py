from __future__ import annotations

from dataclasses import dataclass

__all__ = [
    "TransliterationResult",
]


@dataclass(frozen=True)
class TransliterationResult:
    """Outcome of running one text value through the legacy-font converter."""
    original: str
    converted: str  # equal to original when nothing was converted
    was_converted: bool = False
