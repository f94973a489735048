from __future__ import annotations

import json
from dataclasses import fields, replace
from datetime import date
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.config_models import DatabaseConfig, HeuristicLimits, IngestConfig

"""Config loader.

- Load YAML config (default config/ingest.yml)
- Validate against payroll_ingest/contracts/config_schema.json (unknown keys rejected)
- Apply defaults for every optional key; heuristic bounds fall back to the
  named constants in models.config_models
"""

__all__ = [
    "ConfigError",
    "DEFAULT_CONFIG_PATH",
    "SCHEMA_PATH",
    "load_config",
    "parse_config",
]

DEFAULT_CONFIG_PATH = Path("config/ingest.yml")

# payroll_ingest/config/loader.py -> payroll_ingest/contracts/config_schema.json
SCHEMA_PATH = Path(__file__).resolve().parent.parent / "contracts" / "config_schema.json"


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")
    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def _parse_date(value: Any) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError as e:
        raise ConfigError(f"effective_date must be an ISO date (YYYY-MM-DD): {value!r}") from e


def _heuristics(raw: dict[str, Any] | None) -> HeuristicLimits:
    limits = HeuristicLimits()
    if not raw:
        return limits
    known = {f.name for f in fields(HeuristicLimits)}
    limits = replace(limits, **{k: v for k, v in raw.items() if k in known})
    if limits.salary_min >= limits.salary_max:
        raise ConfigError("heuristics.salary_min must be below heuristics.salary_max")
    if limits.name_min_length > limits.name_max_length:
        raise ConfigError("heuristics.name_min_length must not exceed heuristics.name_max_length")
    if limits.account_identifier_min_length > limits.account_identifier_max_length:
        raise ConfigError("heuristics.account_identifier_min_length must not exceed the max length")
    return limits


def parse_config(data: dict[str, Any]) -> IngestConfig:
    """Validate an already-parsed mapping and build IngestConfig."""
    if not isinstance(data, dict):
        raise ConfigError("config root must be a mapping")
    data = dict(data)
    # YAML turns a bare 2024-07-16 into a date; the schema expects text
    if isinstance(data.get("effective_date"), date):
        data["effective_date"] = data["effective_date"].isoformat()

    _validate_config_schema(data)

    db_raw = data.get("database") or {}
    db = DatabaseConfig(
        host=db_raw.get("host"),
        port=db_raw.get("port"),
        user=db_raw.get("user"),
        password=db_raw.get("password"),
        database=db_raw.get("database"),
        dsn=db_raw.get("dsn"),
    )
    defaults = IngestConfig(source_directory=data["source_directory"])
    return IngestConfig(
        source_directory=data["source_directory"],
        mode=data.get("mode", defaults.mode),
        effective_date=_parse_date(data.get("effective_date")),
        sample_limit=data.get("sample_limit", defaults.sample_limit),
        heuristics=_heuristics(data.get("heuristics")),
        database=db,
    )


def load_config(path: Path) -> IngestConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    return parse_config(data)
