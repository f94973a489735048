from __future__ import annotations
from datetime import date

import pytest

from payroll_ingest.excel.reader import worksheet_from_rows
from payroll_ingest.models.column_mapping import ColumnMapping
from payroll_ingest.models.config_models import HeuristicLimits
from payroll_ingest.services import row_parser
from payroll_ingest.services.dedup import content_hash
from payroll_ingest.services.row_parser import (
    RowValidationError,
    is_stray_header,
    parse_amount,
    parse_number,
    parse_row,
    parse_worksheet,
)

LIMITS = HeuristicLimits()
MAPPED = ColumnMapping(header_row=1, identifier=1, name=2, department=3, account=4, net=5)


@pytest.mark.parametrize(
    "text, expected",
    [
        ("35,000", 35000.0),
        ("NPR 1,200.50", 1200.5),
        ("Rs. 1,200.50", 1200.5),
        ("रु. 35,000", 35000.0),
        ("35,000/-", 35000.0),
        ("-50", -50.0),
        ("", None),
        ("abc", None),
        ("1.2.3", None),
    ],
)
def test_parse_amount(text, expected):
    assert parse_amount(text) == expected


def test_parse_number_treats_zero_as_absent():
    assert parse_number("0") is None
    assert parse_number("12") == 12.0


def test_stray_header_by_keyword_density():
    assert is_stray_header(["S.N", "Name", "PAN", "Salary"], 3)
    assert not is_stray_header(["जम्मा"], 3)
    assert is_stray_header(["l;=g+", "x"], 3)


def test_parse_row_with_mapped_columns():
    ws = worksheet_from_rows(
        "S",
        [
            ["PAN", "Name", "Department", "Account", "Net"],
            ["12345", "gfd", "Admin", "", "35,000"],
        ],
    )
    row = parse_row(ws, 2, MAPPED, limits=LIMITS, effective_date=date(2024, 7, 16))
    assert row is not None
    assert row.identifier == "000012345"
    assert row.net_amount == 35000.0
    assert row.name.original == "gfd"
    assert row.name.native == "नाम"
    assert row.department.native == "Admin"
    assert row.account_number is None
    assert row.sheet_name == "S"
    assert row.row_number == 2
    assert row.row_hash == content_hash("000012345", "Admin", "2024-07-16", 35000.0)


def test_parse_row_swaps_account_in_identifier_column():
    ws = worksheet_from_rows(
        "S",
        [
            ["PAN", "Name", "Department", "Account", "Net"],
            ["1234567890123", "Ram", "", "123456789", "20000"],
        ],
    )
    row = parse_row(ws, 2, MAPPED, limits=LIMITS)
    assert row.identifier == "123456789"
    assert row.account_number == "1234567890123"


def test_parse_row_account_only_becomes_identifier():
    mapping = ColumnMapping(header_row=1, account=1, net=2)
    ws = worksheet_from_rows("S", [["Account", "Net"], ["0012345678901", "15000"]])
    row = parse_row(ws, 2, mapping, limits=LIMITS)
    assert row.identifier == "0012345678901"
    assert row.account_number == "0012345678901"


def test_parse_row_without_identifier_returns_none():
    ws = worksheet_from_rows("S", [["PAN", "Name", "Department", "Account", "Net"], ["", "Total", "", "", ""]])
    assert parse_row(ws, 2, MAPPED, limits=LIMITS) is None


def test_parse_row_without_amount_is_invalid():
    ws = worksheet_from_rows("S", [["PAN", "Name", "Department", "Account", "Net"], ["123456789", "Ram", "", "", "0"]])
    with pytest.raises(RowValidationError):
        parse_row(ws, 2, MAPPED, limits=LIMITS)


def test_parse_row_rejects_overlong_account_identifier():
    mapping = ColumnMapping(header_row=1, account=1, net=2)
    ws = worksheet_from_rows("S", [["Account", "Net"], ["123456789012345678901", "5000"]])
    with pytest.raises(RowValidationError):
        parse_row(ws, 2, mapping, limits=LIMITS)


def test_gross_used_when_net_missing():
    mapping = ColumnMapping(header_row=1, identifier=1, gross=2, net=3)
    ws = worksheet_from_rows("S", [["PAN", "Gross", "Net"], ["123456789", "40000", ""]])
    row = parse_row(ws, 2, mapping, limits=LIMITS)
    assert row.net_amount == 40000.0
    assert row.gross_amount == 40000.0


def test_currency_prefixed_net_amount():
    """Test that a rupee prefix with a dot does not shift the decimal point."""
    mapping = ColumnMapping(header_row=1, identifier=1, net=2)
    ws = worksheet_from_rows("S", [["PAN", "Net"], ["123456789", "रु. 35,000"]])
    row = parse_row(ws, 2, mapping, limits=LIMITS)
    assert row.net_amount == 35000.0


def test_fallback_scan_finds_identifier_amount_and_name():
    ws = worksheet_from_rows("S", [["1", "Sita Kumari", "123456789", "42,500", "7"]])
    row = parse_row(ws, 1, ColumnMapping.fallback(), limits=LIMITS)
    assert row.identifier == "123456789"
    # 9-digit tokens are identifiers, never amounts; the serial number is too small
    assert row.net_amount == 42500.0
    assert row.name.original == "Sita Kumari"


def test_fallback_amount_respects_salary_bounds():
    limits = HeuristicLimits(salary_min=1000, salary_max=50000)
    ws = worksheet_from_rows("S", [["123456789", "Ram", "999", "60000"]])
    with pytest.raises(RowValidationError):
        parse_row(ws, 1, ColumnMapping.fallback(), limits=limits)


def test_duty_days_and_optional_numbers():
    mapping = ColumnMapping(header_row=1, identifier=1, duty1=2, duty2=3, duty3=4, duty_total=5, rate=6, tax=7, net=8)
    ws = worksheet_from_rows("S", [["h"], ["123456789", "30", "31", "", "61", "500", "1,000", "29500"]])
    row = parse_row(ws, 2, mapping, limits=LIMITS)
    assert row.duty_days.period1 == 30.0
    assert row.duty_days.period2 == 31.0
    assert row.duty_days.period3 is None
    assert row.duty_days.total == 61.0
    assert row.rate == 500.0
    assert row.tax_deduction == 1000.0


def test_parse_worksheet_counts_every_outcome():
    ws = worksheet_from_rows(
        "Sheet1",
        [
            ["Office title"],
            ["PAN", "Name", "Department", "Account", "Net"],
            ["123456789", "Ram", "Admin", "", "30000"],
            [],
            ["S.N", "Name", "PAN", "Salary"],
            ["987654321", "Sita", "Admin", "", ""],
            ["जम्मा", "", "", "", ""],
        ],
    )
    mapping = ColumnMapping(header_row=2, identifier=1, name=2, department=3, account=4, net=5)
    parsed = parse_worksheet(ws, mapping)
    scan = parsed.scan
    assert [r.identifier for r in parsed.rows] == ["123456789"]
    assert scan.skipped_before_header == 2
    assert scan.skipped_header_like == 1
    assert scan.skipped_invalid == 1
    assert scan.skipped_no_identifier == 1
    assert scan.parsed_rows == 1
    assert scan.rows_read == 2
    assert parsed.errors == []


def test_parse_worksheet_isolates_unexpected_failures(monkeypatch):
    ws = worksheet_from_rows(
        "Sheet1",
        [["PAN", "Net"], ["123456789", "30000"], ["987654321", "31000"]],
    )
    mapping = ColumnMapping(header_row=1, identifier=1, net=2)
    real_extract = row_parser.extract_amount

    def flaky(ws_, row, mapping_, limits):
        if row == 2:
            raise ValueError("boom")
        return real_extract(ws_, row, mapping_, limits)

    monkeypatch.setattr(row_parser, "extract_amount", flaky)
    parsed = parse_worksheet(ws, mapping)
    assert [r.identifier for r in parsed.rows] == ["987654321"]
    assert parsed.scan.parse_errors == 1
    assert str(parsed.errors[0]) == "Sheet1: Row 2: Parse error (boom)"
    assert parsed.errors[0].row == 2
