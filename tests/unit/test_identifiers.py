from __future__ import annotations

import pytest

from payroll_ingest.models.identifier import IdentifierKind
from payroll_ingest.services import identifiers


def test_clean_strips_non_digits():
    assert identifiers.clean("PAN: 123-456-789") == "123456789"
    assert identifiers.clean(None) == ""
    assert identifiers.clean(12345) == "12345"


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("12345", "000012345"),
        ("1", "000000001"),
        ("123456789", "123456789"),
        ("1234567890123", "1234567890123"),
        ("", ""),
    ],
)
def test_normalize_pads_short_identifiers(raw, expected):
    assert identifiers.normalize(raw) == expected


def test_normalize_is_idempotent():
    once = identifiers.normalize("12345")
    assert identifiers.normalize(once) == once


def test_classify():
    assert identifiers.classify("123456789") is IdentifierKind.TAX_ID
    assert identifiers.classify("1234567890123") is IdentifierKind.ACCOUNT_NUMBER
    assert identifiers.classify("12345678901234567") is IdentifierKind.ACCOUNT_NUMBER
    assert identifiers.classify("1234567890") is IdentifierKind.UNKNOWN


def test_strict_and_flexible_validation_differ():
    assert identifiers.validate_strict("123456789")
    assert identifiers.validate_strict("1234567890123")
    assert not identifiers.validate_strict("12345")
    assert not identifiers.validate_strict("1234567890")
    assert identifiers.validate_flexible("12345")
    assert identifiers.validate_flexible("12345678901234567")
    assert not identifiers.validate_flexible("123456789012345678")
    assert not identifiers.validate_flexible("12a45")


def test_disambiguate_swaps_account_read_as_identifier():
    ident, acct = identifiers.disambiguate("1234567890123", "123456789")
    assert ident == "123456789"
    assert acct == "1234567890123"


def test_disambiguate_keeps_plausible_pair():
    assert identifiers.disambiguate("123456789", "1234567890123") == ("123456789", "1234567890123")
    # both long and equally long: nothing to fix
    assert identifiers.disambiguate("1234567890123", "9876543210987") == ("1234567890123", "9876543210987")


def test_disambiguate_empty_identifier_takes_account():
    assert identifiers.disambiguate("", "1234567890") == ("1234567890", "1234567890")
    assert identifiers.disambiguate("", "") == ("", "")


def test_normalize_identifier():
    result = identifiers.normalize_identifier("PAN 12345")
    assert result is not None
    assert result.raw_digits == "12345"
    assert result.value == "000012345"
    assert result.kind is IdentifierKind.TAX_ID
    assert identifiers.normalize_identifier("n/a") is None
