"""Shared error types for the bulk order engine.

Centralised here so the parser, resilience layer and gateways can raise
and catch the same types without importing each other.
"""

from dataclasses import dataclass
from typing import List, Optional

from bulk_orders.models.data_models import RowError


class BulkOrderError(Exception):
    """Base class for all engine errors."""


class MissingColumnsError(BulkOrderError):
    """Raised when the header lacks one or more required columns."""

    def __init__(self, missing: List[str], found: Optional[List[str]] = None):
        self.missing = list(missing)
        self.found = list(found or [])
        super().__init__(f"Missing required columns: {', '.join(self.missing)}")


class RowValidationError(BulkOrderError):
    """Raised on the first invalid row when invalid rows are not skipped."""

    def __init__(self, row_error: RowError):
        self.row_error = row_error
        super().__init__(f"Row {row_error.row}: {row_error.message}")


@dataclass(eq=False)
class TransientError(BulkOrderError):
    """
    Dependency failure carrying an explicit retry marker.

    Attributes:
        marker: Classification such as "temporary_failure" or "rate_limit"
        message: Human-readable description
    """

    marker: str
    message: str = ""

    def __str__(self) -> str:
        return f"{self.marker}: {self.message}" if self.message else self.marker


class ConfigurationError(BulkOrderError):
    """Raised when configuration cannot be loaded or validated."""


class InputTooLargeError(BulkOrderError):
    """Raised when an order file exceeds the accepted size."""

    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(f"Order file is {size} bytes, exceeding the limit of {limit} bytes")


class InputEncodingError(BulkOrderError):
    """Raised when order file bytes cannot be decoded."""

    def __init__(self, encoding: str, position: Optional[int] = None):
        self.encoding = encoding
        self.position = position
        where = f" at byte {position}" if position is not None else ""
        super().__init__(f"Order file is not valid {encoding}{where}")


class MalformedInputError(BulkOrderError):
    """Raised when delimited text cannot be tokenized."""

    def __init__(self, line: int, reason: str):
        self.line = line
        super().__init__(f"Malformed order file at line {line}: {reason}")
