"""Thread-safe aggregator for collecting per-item outcomes."""

import threading
import time
from decimal import Decimal
from typing import Dict, List, Optional, Union

from bulk_orders.models.data_models import (
    BulkRunResult,
    Fulfilled,
    ItemOutcome,
    PartiallyFulfilled,
    Rejected,
    RunSummary,
)


class OutcomeAggregator:
    """
    Thread-safe aggregator for item outcomes of one run.

    Keeps running tallies used for progress snapshots and folds the
    collected outcomes into an immutable BulkRunResult at the end.
    """

    def __init__(self, total_items: int = 0):
        self._lock = threading.Lock()
        self._successful: List[Fulfilled] = []
        self._failed: List[Union[PartiallyFulfilled, Rejected]] = []
        self.total_items = total_items
        self._processed_items = 0
        self._successful_items = 0
        self._failed_items = 0
        self._start_time: float = 0.0
        self._end_time: float = 0.0

    def start_timer(self) -> None:
        """Start timing the run."""
        self._start_time = time.monotonic()

    def stop_timer(self) -> None:
        """Stop timing the run."""
        self._end_time = time.monotonic()

    @property
    def elapsed_ms(self) -> float:
        end = self._end_time if self._end_time > 0 else time.monotonic()
        return (end - self._start_time) * 1000 if self._start_time else 0.0

    def add_item(self, outcomes: List[ItemOutcome]) -> None:
        """
        Add the outcomes produced for one order row.

        A row counts as successful when it produced a Fulfilled outcome.

        Args:
            outcomes: Outcomes of a single row (one, or two for a shortfall)
        """
        with self._lock:
            fulfilled = False
            for outcome in outcomes:
                if isinstance(outcome, Fulfilled):
                    self._successful.append(outcome)
                    fulfilled = True
                else:
                    self._failed.append(outcome)
            self._processed_items += 1
            if fulfilled:
                self._successful_items += 1
            else:
                self._failed_items += 1

    def counters(self) -> Dict[str, int]:
        """Current processed, successful and failed row counts."""
        with self._lock:
            return {
                "processed_items": self._processed_items,
                "successful_items": self._successful_items,
                "failed_items": self._failed_items,
            }

    def build_result(self, cancelled: bool = False) -> BulkRunResult:
        """Fold outcomes into the final result."""
        with self._lock:
            total_quantity = sum(o.quantity_granted for o in self._successful)
            total_value = sum((o.line_total for o in self._successful), Decimal("0"))
            return BulkRunResult(
                successful=list(self._successful),
                failed=list(self._failed),
                total_quantity_granted=total_quantity,
                total_value=total_value,
                processing_time_ms=round(self.elapsed_ms, 3),
                total_items=self.total_items,
                cancelled=cancelled,
            )


def summarize(result: BulkRunResult, total_items: Optional[int] = None) -> RunSummary:
    """
    Generate summary statistics for a finished run.

    Success rate is the share of processed rows that produced a Fulfilled
    outcome. Shortfall records do not count as separate rows.
    """
    successful_rows = len(result.successful)
    rejected = [o for o in result.failed if isinstance(o, Rejected)]
    partial = [o for o in result.failed if isinstance(o, PartiallyFulfilled)]
    processed_rows = successful_rows + len(rejected)

    failures_by_reason: Dict[str, int] = {}
    for outcome in rejected:
        key = outcome.reason.value
        failures_by_reason[key] = failures_by_reason.get(key, 0) + 1
    if partial:
        failures_by_reason["partial_fulfillment"] = len(partial)

    return RunSummary(
        total_items=total_items if total_items is not None else (result.total_items or processed_rows),
        successful_count=successful_rows,
        failed_count=len(rejected),
        partial_count=len(partial),
        total_quantity_granted=result.total_quantity_granted,
        total_value=result.total_value,
        success_rate=successful_rows / processed_rows if processed_rows else 0.0,
        processing_time_ms=result.processing_time_ms,
        failures_by_reason=failures_by_reason,
        cancelled=result.cancelled,
    )
