"""Delimited-text parser producing validated order rows.

Handles delimiter auto-detection (comma, tab, semicolon), quoted fields,
case-insensitive headers with common aliases, and per-row validation with
error collection. The parser makes a single pass over the input.
"""

import csv
import io
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional, Tuple, Union

from pydantic import BaseModel, Field, ValidationError, field_validator

from bulk_orders.errors import (
    InputEncodingError,
    InputTooLargeError,
    MalformedInputError,
    MissingColumnsError,
    RowValidationError,
)
from bulk_orders.models.data_models import (
    OrderRow,
    ParseResult,
    ParseSummary,
    Priority,
    RowError,
)


CANDIDATE_DELIMITERS = (",", "\t", ";")
REQUIRED_COLUMNS = ("sku", "quantity")

DEFAULT_MAX_BYTES = 5 * 1024 * 1024
DEFAULT_MAX_RECORD_SIZE = 1024
DEFAULT_FIELD_LIMITS: Dict[str, int] = {
    "sku": 100,
    "notes": 500,
    "reference": 100,
    "priority": 10,
}

COLUMN_ALIASES: Dict[str, str] = {
    "sku": "sku",
    "product": "sku",
    "item": "sku",
    "code": "sku",
    "quantity": "quantity",
    "qty": "quantity",
    "amount": "quantity",
    "priority": "priority",
    "notes": "notes",
    "note": "notes",
    "comments": "notes",
    "reference": "reference",
    "ref": "reference",
    "reference_id": "reference",
    "referenceid": "reference",
}


@dataclass
class ParseOptions:
    """Parser behaviour switches."""
    skip_invalid: bool = True
    max_rows: int = 1000
    delimiter: Optional[str] = None
    encoding: str = "utf-8-sig"
    max_bytes: int = DEFAULT_MAX_BYTES
    max_record_size: int = DEFAULT_MAX_RECORD_SIZE
    max_field_lengths: Dict[str, int] = field(default_factory=lambda: dict(DEFAULT_FIELD_LIMITS))


class _RowSchema(BaseModel):
    """Validation schema for one data row."""
    sku: str = Field(min_length=1)
    quantity: int = Field(gt=0)
    priority: Priority = Priority.NORMAL
    notes: Optional[str] = None
    reference: Optional[str] = None

    @field_validator('priority', mode='before')
    @classmethod
    def normalize_priority(cls, v):
        if v is None or (isinstance(v, str) and not v.strip()):
            return Priority.NORMAL
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator('notes', 'reference', mode='before')
    @classmethod
    def empty_to_none(cls, v):
        if isinstance(v, str) and not v:
            return None
        return v


def detect_delimiter(header_line: str) -> str:
    """
    Pick the delimiter occurring most often in the header line.

    Ties (including no delimiter at all) resolve to a comma.
    """
    best, best_count = ",", 0
    for delimiter in CANDIDATE_DELIMITERS:
        count = header_line.count(delimiter)
        if count > best_count:
            best, best_count = delimiter, count
    return best


def _first_line(text: str) -> str:
    for line in text.splitlines():
        if line.strip():
            return line
    return ""


def _records(reader) -> Iterator[List[str]]:
    try:
        yield from reader
    except csv.Error as e:
        raise MalformedInputError(reader.line_num, str(e)) from e


def _map_header(header: List[str]) -> Tuple[Dict[str, int], List[str]]:
    """Map canonical column names to their index in the header row."""
    columns: Dict[str, int] = {}
    for index, raw_name in enumerate(header):
        canonical = COLUMN_ALIASES.get(raw_name.strip().lower())
        if canonical and canonical not in columns:
            columns[canonical] = index
    missing = [name for name in REQUIRED_COLUMNS if name not in columns]
    return columns, missing


def _row_error_from_validation(row_number: int, raw: Dict[str, str], exc: ValidationError) -> RowError:
    """Turn the first pydantic error into a readable RowError."""
    error = exc.errors()[0]
    column = str(error["loc"][0]) if error.get("loc") else None
    value = raw.get(column) if column else None

    if column == "sku":
        message = "SKU is required"
    elif column == "quantity":
        message = f"Invalid quantity '{value}': must be a positive integer"
    elif column == "priority":
        message = f"Invalid priority '{value}': expected high, normal or low"
    else:
        message = error.get("msg", "Invalid value")

    return RowError(row=row_number, column=column, value=value, message=message)


class CSVBulkOrderParser:
    """Parses delimited bulk order text into OrderRow records."""

    def __init__(self, options: Optional[ParseOptions] = None, logger=None):
        """
        Initialize parser.

        Args:
            options: Parser options (defaults to ParseOptions())
            logger: Optional structured logger
        """
        self.options = options or ParseOptions()
        self.logger = logger

    def parse(self, raw_text: Union[str, bytes]) -> ParseResult:
        """
        Parse raw delimited text.

        Args:
            raw_text: File contents as text or undecoded bytes

        Returns:
            ParseResult with valid rows and collected row errors

        Raises:
            InputTooLargeError: If the input exceeds max_bytes
            InputEncodingError: If bytes cannot be decoded with the configured encoding
            MissingColumnsError: If a required column is absent from the header
            MalformedInputError: If the text cannot be split into records
            RowValidationError: On the first invalid row when skip_invalid is False
        """
        raw_text = self._decode(raw_text)

        delimiter = self.options.delimiter or detect_delimiter(_first_line(raw_text))
        reader = csv.reader(io.StringIO(raw_text, newline=""), delimiter=delimiter)
        records = _records(reader)

        header = self._read_header(records)
        columns, missing = _map_header(header)
        if missing:
            raise MissingColumnsError(missing, found=[h.strip() for h in header])

        rows: List[OrderRow] = []
        errors: List[RowError] = []
        row_number = 0

        for record in records:
            if not any(value.strip() for value in record):
                continue
            row_number += 1

            if row_number > self.options.max_rows:
                errors.append(RowError(
                    row=row_number,
                    message=f"Exceeded maximum row limit of {self.options.max_rows}"
                ))
                break

            result = self._check_record_size(record, delimiter, row_number)
            if result is None:
                result = self._validate_row(record, columns, row_number)
            if isinstance(result, OrderRow):
                rows.append(result)
                continue

            if not self.options.skip_invalid:
                raise RowValidationError(result)
            errors.append(result)

        parse_result = ParseResult(
            rows=rows,
            errors=errors,
            summary=ParseSummary(
                total_rows=row_number,
                valid_rows=len(rows),
                error_rows=len(errors),
                total_quantity=sum(row.quantity for row in rows),
                unique_skus=len({row.sku for row in rows}),
            ),
            delimiter=delimiter,
        )

        if self.logger:
            self.logger.parse_complete(
                total_rows=row_number,
                valid_rows=len(rows),
                error_rows=len(errors),
                delimiter=delimiter
            )
        return parse_result

    def _decode(self, raw_text: Union[str, bytes]) -> str:
        size = len(raw_text) if isinstance(raw_text, bytes) else len(raw_text.encode("utf-8"))
        if size > self.options.max_bytes:
            raise InputTooLargeError(size, self.options.max_bytes)

        if isinstance(raw_text, bytes):
            try:
                return raw_text.decode(self.options.encoding)
            except UnicodeDecodeError as e:
                raise InputEncodingError(self.options.encoding, e.start) from e
        if raw_text.startswith("\ufeff"):
            return raw_text[1:]
        return raw_text

    @staticmethod
    def _read_header(reader: Iterable[List[str]]) -> List[str]:
        for record in reader:
            if any(value.strip() for value in record):
                return record
        return []

    def _check_record_size(self, record: List[str], delimiter: str, row_number: int) -> Optional[RowError]:
        size = len(delimiter.join(record))
        if size <= self.options.max_record_size:
            return None
        return RowError(
            row=row_number,
            value=f"{size} characters",
            message=f"Row exceeds maximum size of {self.options.max_record_size} characters"
        )

    def _validate_row(
        self,
        record: List[str],
        columns: Dict[str, int],
        row_number: int
    ) -> Union[OrderRow, RowError]:
        raw = {
            name: record[index].strip() if index < len(record) else ""
            for name, index in columns.items()
        }
        for name, value in raw.items():
            limit = self.options.max_field_lengths.get(name)
            if limit is not None and len(value) > limit:
                return RowError(
                    row=row_number,
                    column=name,
                    value=value[:50] + "...",
                    message=f"Field exceeds maximum length of {limit} characters"
                )
        try:
            validated = _RowSchema(**raw)
        except ValidationError as e:
            return _row_error_from_validation(row_number, raw, e)

        return OrderRow(
            sku=validated.sku,
            quantity=validated.quantity,
            priority=validated.priority,
            notes=validated.notes,
            reference=validated.reference,
            row_number=row_number,
        )


def parse(raw_text: Union[str, bytes], options: Optional[ParseOptions] = None) -> ParseResult:
    """Parse delimited bulk order text with the given options."""
    return CSVBulkOrderParser(options).parse(raw_text)


def generate_template() -> str:
    """Example bulk order file with every supported column."""
    headers = ["SKU", "Quantity", "Notes", "Reference", "Priority"]
    examples = [
        ["PROD-001", "100", "For warehouse A", "PO-2024-001", "high"],
        ["PROD-002", "50", "Rush order", "PO-2024-001", "high"],
        ["PROD-003", "200", "", "PO-2024-002", "normal"],
    ]
    return "\n".join(",".join(row) for row in [headers, *examples]) + "\n"
