from __future__ import annotations

import logging

from ..models.transliteration import TransliterationResult
from .preeti_tables import (
    CHARACTER_MAP,
    DETECTION_SIGNALS,
    DEVANAGARI_BLOCK,
    DEVANAGARI_CONSONANT,
    MIN_DETECTION_SIGNALS,
    REPH_SENTINEL,
    REPH_SEQUENCE,
    SEQUENCE_SUBSTITUTIONS,
    VOWEL_SIGN_RUN,
)

"""Preeti (legacy font) detection and conversion to Unicode Devanagari.

Conversion runs four fixed steps:

1. ordered literal sequence substitutions
2. reph repositioning: sentinel + consonant -> consonant + "र्"
3. greedy left-to-right table lookup (two characters before one)
4. collapse repeated vowel signs

Detection and conversion never raise; text that is not recognised as Preeti
comes back unchanged.
"""

__all__ = [
    "is_legacy_encoded",
    "convert_legacy_text",
    "transliterate",
]

logger = logging.getLogger(__name__)


def is_legacy_encoded(text: str | None) -> bool:
    """True when `text` looks like Preeti-font ASCII rather than English.

    Needs at least two independent legacy signals and no Devanagari
    character anywhere in the text.
    """
    if not text:
        return False
    if DEVANAGARI_BLOCK.search(text):
        return False
    signals = sum(1 for pattern in DETECTION_SIGNALS if pattern.search(text))
    return signals >= MIN_DETECTION_SIGNALS


def _apply_sequences(text: str) -> str:
    for legacy, native in SEQUENCE_SUBSTITUTIONS:
        if legacy in text:
            text = text.replace(legacy, native)
    return text


def _is_consonant(ch: str) -> bool:
    if DEVANAGARI_CONSONANT.fullmatch(ch):
        return True
    mapped = CHARACTER_MAP.get(ch)
    return bool(mapped) and DEVANAGARI_CONSONANT.match(mapped) is not None


def _reposition_reph(text: str) -> str:
    if REPH_SENTINEL not in text:
        return text
    out: list[str] = []
    i = 0
    while i < len(text):
        ch = text[i]
        if ch == REPH_SENTINEL and i + 1 < len(text) and _is_consonant(text[i + 1]):
            out.append(text[i + 1])
            out.append(REPH_SEQUENCE)
            i += 2
            continue
        out.append(ch)
        i += 1
    return "".join(out)


def _map_characters(text: str) -> str:
    out: list[str] = []
    i = 0
    while i < len(text):
        pair = text[i : i + 2]
        if len(pair) == 2 and pair in CHARACTER_MAP:
            out.append(CHARACTER_MAP[pair])
            i += 2
            continue
        ch = text[i]
        out.append(CHARACTER_MAP.get(ch, ch))
        i += 1
    return "".join(out)


def convert_legacy_text(text: str) -> str:
    """Run the conversion steps unconditionally (no detection)."""
    if not text:
        return text
    result = _apply_sequences(text)
    result = _reposition_reph(result)
    result = _map_characters(result)
    return VOWEL_SIGN_RUN.sub(r"\1", result)


def transliterate(text: str | None) -> TransliterationResult:
    """Convert `text` when it looks like Preeti, else pass it through."""
    original = text or ""
    if not is_legacy_encoded(original):
        return TransliterationResult(original=original, converted=original, was_converted=False)
    converted = convert_legacy_text(original)
    logger.debug("transliterated %r -> %r", original, converted)
    return TransliterationResult(original=original, converted=converted, was_converted=True)
