# Shared pytest fixtures
from __future__ import annotations
import tempfile
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

import pandas as pd
import pytest
from openpyxl import Workbook as XlsxWorkbook

from payroll_ingest.logging.init import reset_logging


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture(autouse=True)
def _isolated_run(monkeypatch):
    # never reach a real database, never inherit connection settings
    monkeypatch.setenv("DISABLE_DB_CONNECT", "1")
    for var in ("DATABASE_URL", "PGDSN"):
        monkeypatch.delenv(var, raising=False)
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def sample_config_yaml() -> str:
    return """source_directory: ./data
mode: snapshot
effective_date: 2024-07-16
heuristics:
  header_scan_rows: 20
  salary_min: 100
  salary_max: 10000000
database:
  host: localhost
  port: 5432
  user: payroll
  password: secret
  database: payroll
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "ingest.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


SheetRows = Sequence[Sequence[Any]]


def _write_xlsx(path: Path, sheets: dict[str, SheetRows]) -> Path:
    wb = XlsxWorkbook()
    wb.remove(wb.active)
    for title, rows in sheets.items():
        ws = wb.create_sheet(title=title)
        for row in rows:
            ws.append(list(row))
    wb.save(path)
    return path


@pytest.fixture()
def make_xlsx(temp_workdir: Path) -> Callable[..., Path]:
    """Write an .xlsx into data/: make_xlsx("a.xlsx", {"Sheet1": [[...], ...]})."""
    def _make(name: str, sheets: dict[str, SheetRows]) -> Path:
        return _write_xlsx(temp_workdir / "data" / name, sheets)
    return _make


@pytest.fixture()
def make_csv(temp_workdir: Path) -> Callable[..., Path]:
    """Write a header-less .csv into data/ with pandas."""
    def _make(name: str, rows: SheetRows) -> Path:
        path = temp_workdir / "data" / name
        pd.DataFrame([list(r) for r in rows]).to_csv(path, header=False, index=False, encoding="utf-8")
        return path
    return _make


@pytest.fixture()
def payroll_rows() -> list[list[Any]]:
    """Municipality export: two title rows, header on row 3, one data row, a total row."""
    return [
        ["Ward Office Payroll", None, None, None],
        ["Fiscal Year 2081/82", None, None, None],
        ["পান नं.", "नाम", "दर", "पाउने रकम"],
        ["12345", "Ram Bahadur", "", "35,000"],
        ["जम्मा", "", "", ""],
    ]
