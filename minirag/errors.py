"""Typed failures raised by the retrieval pipeline.

Each error also derives from the builtin exception the rest of the code
base would have used for the same condition, so callers that only catch
``ValueError`` or ``RuntimeError`` keep working.
"""
from typing import Optional


class RagError(Exception):
    """Base class for all pipeline errors."""


class InvalidConfiguration(RagError, ValueError):
    """A parameter is outside its allowed range (e.g. a zero chunk size)."""


class DimensionMismatch(RagError, ValueError):
    """A vector's length disagrees with the collection dimension."""

    def __init__(self, expected: int, actual: int, message: Optional[str] = None):
        self.expected = expected
        self.actual = actual
        super().__init__(
            message or f"Dimension mismatch: expected {expected}, got {actual}"
        )


class InvalidVector(RagError, ValueError):
    """A vector is empty or contains non-finite components."""


class NotFound(RagError, LookupError):
    """A collection, record or input file does not exist."""


class EmbeddingFailure(RagError, RuntimeError):
    """The embedding model could not process a batch."""


class InvalidQuery(RagError, ValueError):
    """A query is empty or cannot be turned into a vector."""


class PersistenceFailure(RagError, RuntimeError):
    """Reading or writing durable state failed."""
