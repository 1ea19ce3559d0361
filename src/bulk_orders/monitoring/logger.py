"""Structured logging for bulk order runs."""

import json
import logging
from typing import Optional


class StructuredLogger:
    """Structured logger with uniform schema."""

    def __init__(self, name: str = "bulk_orders", level: str = "INFO"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(getattr(logging, level.upper()))

        if not self.logger.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter('%(message)s'))
            self.logger.addHandler(handler)

    def log(self, event: str, level: int = logging.INFO, **kwargs) -> None:
        """
        Log structured event.

        Standard keys: event, sku, batch, attempt, delay_ms, elapsed_ms,
                      cb_state, dependency, reason, items
        """
        if not self.logger.isEnabledFor(level):
            return
        log_data = {"event": event, **kwargs}
        self.logger.log(level, json.dumps(log_data, default=str, ensure_ascii=False))

    def parse_complete(self, total_rows: int, valid_rows: int, error_rows: int, delimiter: str) -> None:
        self.log("parse_complete", total_rows=total_rows, valid_rows=valid_rows,
                 error_rows=error_rows, delimiter=delimiter)

    def run_start(self, total_items: int, total_batches: int) -> None:
        self.log("run_start", total_items=total_items, total_batches=total_batches)

    def run_complete(self, successful: int, failed: int, elapsed_ms: float) -> None:
        self.log("run_complete", successful=successful, failed=failed, elapsed_ms=elapsed_ms)

    def run_cancelled(self, processed_items: int, remaining_batches: int) -> None:
        self.log("run_cancelled", level=logging.WARNING,
                 processed_items=processed_items, remaining_batches=remaining_batches)

    def batch_processed(self, batch: int, batch_size: int, elapsed_ms: float, priority: str) -> None:
        self.log("batch_processed", batch=batch, batch_size=batch_size,
                 elapsed_ms=elapsed_ms, priority=priority)

    def retry_attempt(self, operation: str, sku: Optional[str], attempt: int,
                      delay_ms: float, error: str) -> None:
        self.log("retry_attempt", level=logging.DEBUG, operation=operation, sku=sku,
                 attempt=attempt, delay_ms=delay_ms, error=error)

    def circuit_breaker_state(self, dependency: str, state: str) -> None:
        self.log("circuit_breaker", level=logging.WARNING, dependency=dependency, cb_state=state)

    def row_rejected(self, sku: str, reason: str, detail: str) -> None:
        self.log("row_rejected", level=logging.DEBUG, sku=sku, reason=reason, detail=detail)

    def cart_write_failed(self, batch: int, items: int, error: str) -> None:
        self.log("cart_write_failed", level=logging.ERROR, batch=batch, items=items, error=error)

    def dependency_error(self, operation: str, sku: str, error: str) -> None:
        self.log("dependency_error", level=logging.WARNING, operation=operation, sku=sku, error=error)

    def progress_callback_error(self, error: str) -> None:
        self.log("progress_callback_error", level=logging.WARNING, error=error)

    def run_timeout(self, timeout: float) -> None:
        self.log("run_timeout", level=logging.WARNING, timeout=timeout)
