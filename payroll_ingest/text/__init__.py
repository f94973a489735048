"""Preeti legacy-font detection and transliteration."""

from .transliterate import convert_legacy_text, is_legacy_encoded, transliterate

__all__ = [
    "convert_legacy_text",
    "is_legacy_encoded",
    "transliterate",
]
