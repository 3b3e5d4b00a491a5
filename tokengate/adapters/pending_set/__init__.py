"""Pending-set adapters backing the verification queue."""
