"""
Shared infrastructure of the learning engine: logging, exceptions,
configuration, per-key locking and database access.
"""
