"""minirag: a small retrieval pipeline over persisted vector collections."""

__version__ = "0.1.0"
