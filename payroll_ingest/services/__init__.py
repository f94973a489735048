"""Pipeline services: identifier normalization, row parsing, dedup, orchestration."""
