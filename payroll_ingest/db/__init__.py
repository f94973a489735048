"""Record sinks: protocol, in-memory and PostgreSQL implementations."""
