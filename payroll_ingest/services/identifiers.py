from __future__ import annotations

import re

from ..models.identifier import IdentifierKind, NormalizedIdentifier

"""Numeric identifier normalization: tax ids (PAN) and bank account numbers.

validate_strict() is the external-facing check (9 digits, or 13-17 digits);
validate_flexible() is the looser ingestion-time check (1-17 digits) that
admits short ids before normalize() pads them. They are separate predicates
on purpose and neither takes a mode flag.
"""

__all__ = [
    "TAX_ID_LENGTH",
    "ACCOUNT_MIN_LENGTH",
    "ACCOUNT_MAX_LENGTH",
    "FLEXIBLE_MAX_LENGTH",
    "SWAP_MIN_LENGTH",
    "clean",
    "normalize",
    "classify",
    "validate_strict",
    "validate_flexible",
    "disambiguate",
    "normalize_identifier",
]

TAX_ID_LENGTH = 9
ACCOUNT_MIN_LENGTH = 13
ACCOUNT_MAX_LENGTH = 17
FLEXIBLE_MAX_LENGTH = 17
# An identifier-column value at least this long is treated as an account number
SWAP_MIN_LENGTH = 13

_NON_DIGIT = re.compile(r"[^0-9]")
_STRICT = re.compile(r"^(?:[0-9]{%d}|[0-9]{%d,%d})$" % (TAX_ID_LENGTH, ACCOUNT_MIN_LENGTH, ACCOUNT_MAX_LENGTH))
_FLEXIBLE = re.compile(r"^[0-9]{1,%d}$" % FLEXIBLE_MAX_LENGTH)


def clean(value: object) -> str:
    """Strip every non-digit character."""
    if value is None:
        return ""
    return _NON_DIGIT.sub("", str(value))


def normalize(value: object) -> str:
    """Clean, then zero-pad 1-8 digit values to 9 digits. Idempotent."""
    digits = clean(value)
    if 0 < len(digits) < TAX_ID_LENGTH:
        return digits.zfill(TAX_ID_LENGTH)
    return digits


def classify(value: object) -> IdentifierKind:
    """Kind of identifier by digit count after cleaning.

    Args:
        value: Raw cell value or text

    Returns:
        TAX_ID for exactly 9 digits, ACCOUNT_NUMBER for account-length runs,
        UNKNOWN otherwise
    """
    digits = clean(value)
    if len(digits) == TAX_ID_LENGTH:
        return IdentifierKind.TAX_ID
    if ACCOUNT_MIN_LENGTH <= len(digits) <= ACCOUNT_MAX_LENGTH:
        return IdentifierKind.ACCOUNT_NUMBER
    return IdentifierKind.UNKNOWN


def validate_strict(value: str) -> bool:
    """Exactly 9 digits, or 13-17 digits."""
    return bool(_STRICT.match(value.strip()))


def validate_flexible(value: str) -> bool:
    """1-17 digits; used while ingesting, before padding."""
    return bool(_FLEXIBLE.match(value.strip()))


def disambiguate(identifier_digits: str, account_digits: str) -> tuple[str, str]:
    """Return (identifier, account) after fixing swapped identifier/account columns.

    A long identifier-column value paired with a shorter, non-empty account
    value means the columns were read the wrong way round. An empty identifier
    takes the account value.
    """
    id_len = len(identifier_digits)
    acct_len = len(account_digits)
    if id_len >= SWAP_MIN_LENGTH and 0 < acct_len <= SWAP_MIN_LENGTH and acct_len < id_len:
        return account_digits, identifier_digits
    if not identifier_digits and account_digits:
        return account_digits, account_digits
    return identifier_digits, account_digits


def normalize_identifier(value: object) -> NormalizedIdentifier | None:
    """Full NormalizedIdentifier for a raw value, or None if no digits remain."""
    digits = clean(value)
    if not digits:
        return None
    padded = normalize(digits)
    return NormalizedIdentifier(raw_digits=digits, value=padded, kind=classify(padded))
