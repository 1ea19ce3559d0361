"""Bulk order file parsing."""

from .csv_parser import CSVBulkOrderParser, ParseOptions, detect_delimiter, generate_template, parse

__all__ = ["CSVBulkOrderParser", "ParseOptions", "detect_delimiter", "generate_template", "parse"]
