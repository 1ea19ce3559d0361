"""Bulk order processing: batching, availability, cart writes and aggregation."""

from .aggregator import OutcomeAggregator, summarize
from .cache import ProductCache
from .processor import BulkOrderProcessor, RunOptions

__all__ = ["BulkOrderProcessor", "OutcomeAggregator", "ProductCache", "RunOptions", "summarize"]
