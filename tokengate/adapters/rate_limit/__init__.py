"""Rate limiting adapters.

Fixed-window counters behind a small abstraction: an in-process sharded
table for single-worker deployments and a Redis table shared across workers.
"""
