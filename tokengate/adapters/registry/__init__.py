"""Identity registry adapters (in-memory and SQLite)."""
