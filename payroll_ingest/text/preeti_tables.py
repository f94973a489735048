"""Constant tables for the Preeti legacy font.

Preeti maps ASCII (and a few Latin-1) code points to Devanagari glyphs.
Nothing here is mutated at runtime.

SEQUENCE_SUBSTITUTIONS is applied first, entry by entry, as literal
replace-all. Its order matters: a longer or more specific sequence must come
before any entry that would consume part of it ("cf}" before "cf" before "f").

CHARACTER_MAP is the greedy table for what is left: two-character keys are
tried before one-character keys at each position.
"""

from __future__ import annotations

import re

__all__ = [
    "REPH_SENTINEL",
    "REPH_SEQUENCE",
    "SEQUENCE_SUBSTITUTIONS",
    "CHARACTER_MAP",
    "DEVANAGARI_BLOCK",
    "DEVANAGARI_CONSONANT",
    "VOWEL_SIGN_RUN",
    "DETECTION_SIGNALS",
    "MIN_DETECTION_SIGNALS",
]

REPH_SENTINEL = "Ø"
REPH_SEQUENCE = "र्"

SEQUENCE_SUBSTITUTIONS: tuple[tuple[str, str], ...] = (
    # independent vowels
    ("cf}", "औ"),
    ("cf]", "ओ"),
    ("cf", "आ"),
    ("O{", "ई"),
    ("P]", "ऐ"),
    ("pm", "ऊ"),
    # vowel signs built on the aa stroke
    ("f}", "ौ"),
    ("f]", "ो"),
    ("f", "ा"),
    # conjuncts
    ("Qm", "क्म"),
    ("Qn", "क्ल"),
    ("Qj", "क्व"),
    ("Sb", "ख्य"),
    ("Ub", "घ्य"),
    ("ª\\", "ङ्"),
    ("ª्", "ङ्"),
    ("¨", "ङ्ग"),
    ("ª", "ङ"),
    ("~r", "ञ्च"),
    ("~h", "ञ्ज"),
    ("¬", "ञ्"),
    ("§", "ट्ठ"),
    ("¶", "ड्ढ"),
    ("·", "द्द"),
    ("¸", "द्ध"),
    ("Ab", "द्य"),
    ("Ad", "द्म"),
    ("Aj", "द्व"),
    ("Bb", "द्ध्य"),
    ("To", "थ्य"),
    ("¡", "ज्ञ"),
    ("1", "ज्ञ"),
    ("´", "झ्"),
    ("°", "क्त"),
    ("±", "क्र"),
    ("²", "क्ष"),
    ("µ", "द्र"),
    ("¹", "श्र"),
    ("º", "स्र"),
    ("»", "ह्य"),
    ("¼", "ह्र"),
    ("½", "ह्व"),
    ("¾", "ह्म"),
    ("{", "ै"),
    ("[", "ृ"),
    ("ß", "ट्ठ"),
    ("Î", "ड्ड"),
    ("Þ", "क्र"),
    ("Ý", "ट्ट"),
)

CHARACTER_MAP: dict[str, str] = {
    # two-character keys
    "if": "षा",
    "cf": "आ",
    "O{": "ई",
    "pm": "ऊ",
    "P]": "ऐ",
    "f]": "ो",
    "f}": "ौ",
    # consonants
    "S": "श",
    "I": "ष",
    "s": "स",
    "x": "ह",
    "Q": "क्ष",
    "q": "त्र",
    "k": "प",
    "K": "फ",
    "a": "ब",
    "e": "भ",
    "d": "म",
    "t": "त",
    "T": "थ",
    "b": "द",
    "w": "ध",
    "g": "न",
    "6": "ट",
    "7": "ठ",
    "8": "ड",
    "9": "ढ",
    "0": "ण",
    "r": "च",
    "R": "छ",
    "h": "ज",
    "H": "झ",
    "~": "ञ",
    "i": "य",
    "y": "य",
    "/": "र",
    "n": "ल",
    "j": "व",
    "v": "ख",
    "z": "श",
    "G": "घ",
    # half forms
    "V": "ख्",
    "Y": "य्",
    "Z": "श्",
    "N": "ण्",
    "W": "ध्",
    # independent vowels
    "c": "अ",
    "o": "अ",
    "O": "इ",
    "p": "उ",
    "C": "ऋ",
    "P": "ए",
    # signs
    "\\": "्",
    "+": "्",
    "'": "्",
    "f": "ा",
    "F": "ँ",
    "]": "े",
    "}": "ै",
    "[": "ृ",
    "l": "ि",
    "L": "ी",
    "u": "ु",
    "U": "ू",
    "m": "ू",
    "D": "ं",
    "M": "ः",
    # conjunct glyphs
    "é": "्र",
    "|": "्र",
    "«": "रु",
    "¿": "रू",
    "¤": "ह्र",
    "å": "द्व",
    "Ý": "ट्ट",
    "ß": "ट्ठ",
    "Î": "ड्ड",
    "Ï": "ड्ढ",
    "Þ": "क्र",
    "ª": "ङ",
    # reph left over when no consonant follows it
    REPH_SENTINEL: REPH_SEQUENCE,
    # numerals
    "!": "१",
    "@": "२",
    "#": "३",
    "$": "४",
    "%": "५",
    "^": "६",
    "&": "७",
    "*": "८",
    "(": "९",
    ")": "०",
    # punctuation
    "=": "।",
    ".": "।",
    "?": "रु",
    "_": ")",
    "–": "-",
}

DEVANAGARI_BLOCK = re.compile(r"[\u0900-\u097F]")
DEVANAGARI_CONSONANT = re.compile(r"[\u0915-\u0939]")
VOWEL_SIGN_RUN = re.compile(r"([\u093E-\u094C])\1+")

# Structural signals of Preeti text; at least MIN_DETECTION_SIGNALS must hold.
DETECTION_SIGNALS: tuple[re.Pattern[str], ...] = (
    re.compile(r"[cfgjdknetbwhrls]{2,}", re.IGNORECASE),  # consonant runs
    re.compile(r"[f\]}\[luU]"),  # vowel sign glyphs
    re.compile(r"[!@#$%^&*()]"),  # numerals
    re.compile(r"[QSIGTWPOKL]"),  # capitals only Preeti uses
    re.compile(r"/"),  # ra
)
MIN_DETECTION_SIGNALS = 2
