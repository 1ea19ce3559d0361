"""Bulk order processor: priority batches, bounded concurrency, resilient calls."""

import asyncio
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

from bulk_orders.gateways.base import CommerceGateway, ProgressListener
from bulk_orders.models.config import EngineConfig
from bulk_orders.models.data_models import (
    PRIORITY_ORDER,
    AlternativeSuggestion,
    AvailabilityResult,
    BulkRunResult,
    CartLine,
    CircuitState,
    Fulfilled,
    ItemOutcome,
    OrderRow,
    PartiallyFulfilled,
    Priority,
    ProgressSnapshot,
    Rejected,
    RejectionReason,
    RetryOutcome,
)
from bulk_orders.monitoring.logger import StructuredLogger
from bulk_orders.processor.aggregator import OutcomeAggregator
from bulk_orders.processor.cache import ProductCache
from bulk_orders.resilience.circuit_breaker import CircuitBreaker, Clock
from bulk_orders.resilience.rate_limiter import RateLimiter
from bulk_orders.resilience.retry_handler import RetryExecutor, suggest_recovery


BREAKER_OPEN_DETAIL = "Service temporarily unavailable (circuit breaker open)"


@dataclass
class RunOptions:
    """Per-run overrides; unset values fall back to the EngineConfig."""
    batch_size: Optional[int] = None
    max_concurrent: Optional[int] = None
    enable_alternatives: Optional[bool] = None
    on_progress: Optional[ProgressListener] = None


@dataclass
class _RunSettings:
    batch_size: int
    enable_alternatives: bool
    on_progress: Optional[ProgressListener]
    semaphore: asyncio.Semaphore


def _chunks(rows: Sequence[OrderRow], size: int) -> List[List[OrderRow]]:
    return [list(rows[i:i + size]) for i in range(0, len(rows), size)]


class BulkOrderProcessor:
    """
    Turns validated order rows into cart line items.

    Responsibilities:
    - Process priority groups strictly in order: high, normal, low
    - Slice each group into sequential batches
    - Check availability concurrently within a batch, bounded by max_concurrent,
      guarded by retry and a circuit breaker
    - Reject rows below the product's minimum order before any availability call
    - Suggest alternatives for unavailable items
    - Write each batch's fulfilled items to the cart in one bulk call
    - Emit a progress snapshot after every batch
    - Isolate failures per item so one bad SKU never stops the run
    """

    def __init__(
        self,
        gateway: CommerceGateway,
        config: Optional[EngineConfig] = None,
        logger: Optional[StructuredLogger] = None,
        clock: Optional[Clock] = None,
        sleeper: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        cache: Optional[ProductCache] = None
    ):
        """
        Initialize processor with its collaborators.

        Args:
            gateway: Availability, alternatives, cart and order-rule services
            config: Engine configuration (defaults to EngineConfig())
            logger: Structured logger (created from config.log_level if omitted)
            clock: Clock for the circuit breakers (defaults to monotonic time)
            sleeper: Async sleep used for retry backoff
            cache: Availability cache (built from config.cache if omitted)
        """
        self.gateway = gateway
        self.config = config or EngineConfig()
        self.logger = logger or StructuredLogger(level=self.config.log_level)

        self.availability_breaker = CircuitBreaker(
            name="availability",
            failure_threshold=self.config.availability_breaker.failure_threshold,
            cooldown_seconds=self.config.availability_breaker.cooldown_seconds,
            clock=clock,
            logger=self.logger
        )
        self.cart_breaker = CircuitBreaker(
            name="cart",
            failure_threshold=self.config.cart_breaker.failure_threshold,
            cooldown_seconds=self.config.cart_breaker.cooldown_seconds,
            clock=clock,
            logger=self.logger
        )
        self.availability_retry = RetryExecutor(self.config.availability_retry, sleeper, self.logger)
        self.cart_retry = RetryExecutor(self.config.cart_retry, sleeper, self.logger)

        self.rate_limiter: Optional[RateLimiter] = None
        if self.config.availability_rate_limit_rps:
            self.rate_limiter = RateLimiter(refill_rate=self.config.availability_rate_limit_rps)

        if cache is None and self.config.cache.enabled:
            cache = ProductCache(
                ttl_seconds=self.config.cache.ttl_seconds,
                max_size=self.config.cache.max_size
            )
        self.cache = cache

    async def process_bulk_order(
        self,
        rows: Sequence[OrderRow],
        options: Optional[RunOptions] = None,
        cancel_event: Optional[asyncio.Event] = None
    ) -> BulkRunResult:
        """
        Process order rows and return the aggregated result.

        Args:
            rows: Validated rows, each consumed exactly once
            options: Per-run overrides and the progress listener
            cancel_event: When set, no further batch is started; the batch in
                flight completes and the partial result is returned

        Returns:
            Immutable BulkRunResult for everything processed
        """
        settings = self._settings(options)
        batches = self._plan_batches(rows, settings.batch_size)
        total_batches = len(batches)

        aggregator = OutcomeAggregator(total_items=len(rows))
        aggregator.start_timer()
        self.logger.run_start(total_items=len(rows), total_batches=total_batches)

        cancelled = False
        for batch_index, (priority, batch) in enumerate(batches, start=1):
            if cancel_event is not None and cancel_event.is_set():
                cancelled = True
                self.logger.run_cancelled(
                    processed_items=aggregator.counters()["processed_items"],
                    remaining_batches=total_batches - batch_index + 1
                )
                break

            batch_start = time.monotonic()
            for outcomes in await self._process_batch(batch, batch_index, settings):
                aggregator.add_item(outcomes)

            self.logger.batch_processed(
                batch=batch_index,
                batch_size=len(batch),
                elapsed_ms=round((time.monotonic() - batch_start) * 1000, 3),
                priority=priority.value
            )
            self._emit_progress(settings.on_progress, aggregator, batch_index, total_batches)

        aggregator.stop_timer()
        result = aggregator.build_result(cancelled=cancelled)
        self.logger.run_complete(
            successful=len(result.successful),
            failed=len(result.failed),
            elapsed_ms=result.processing_time_ms
        )
        return result

    def _settings(self, options: Optional[RunOptions]) -> _RunSettings:
        options = options or RunOptions()
        batch_size = options.batch_size or self.config.batch_size
        max_concurrent = options.max_concurrent or self.config.max_concurrent
        if batch_size <= 0 or max_concurrent <= 0:
            raise ValueError("batch_size and max_concurrent must be positive")
        enable_alternatives = (
            self.config.enable_alternatives
            if options.enable_alternatives is None else options.enable_alternatives
        )
        return _RunSettings(
            batch_size=batch_size,
            enable_alternatives=enable_alternatives,
            on_progress=options.on_progress,
            semaphore=asyncio.Semaphore(max_concurrent),
        )

    @staticmethod
    def _plan_batches(rows: Sequence[OrderRow], batch_size: int) -> List[Tuple[Priority, List[OrderRow]]]:
        """Group rows by priority and slice each group into batches."""
        groups: Dict[Priority, List[OrderRow]] = {priority: [] for priority in PRIORITY_ORDER}
        for row in rows:
            groups[row.priority].append(row)
        return [
            (priority, batch)
            for priority in PRIORITY_ORDER
            for batch in _chunks(groups[priority], batch_size)
        ]

    async def _process_batch(
        self,
        batch: List[OrderRow],
        batch_index: int,
        settings: _RunSettings
    ) -> List[List[ItemOutcome]]:
        """Check every row of the batch, then write fulfilled rows to the cart."""

        async def guarded(row: OrderRow) -> List[ItemOutcome]:
            async with settings.semaphore:
                try:
                    return await self._process_row(row, batch_index, settings.enable_alternatives)
                except Exception as e:
                    self.logger.dependency_error(operation="process_row", sku=row.sku, error=str(e))
                    return [self._reject(row, RejectionReason.OUT_OF_STOCK, batch_index,
                                         detail=f"Unexpected error: {e}")]

        # Barrier: all availability checks finish before the cart write
        staged = await asyncio.gather(*(guarded(row) for row in batch))

        to_write = [
            (row, outcomes) for row, outcomes in zip(batch, staged)
            if isinstance(outcomes[0], Fulfilled)
        ]
        if not to_write:
            return list(staged)

        lines = [CartLine(sku=outcomes[0].sku, quantity=outcomes[0].quantity_granted)
                 for _, outcomes in to_write]
        write_error = await self._write_cart(lines)
        if write_error is None:
            if self.cache is not None:
                for line in lines:
                    self.cache.consume(line.sku, line.quantity)
            return list(staged)

        self.logger.cart_write_failed(batch=batch_index, items=len(lines), error=write_error)
        failed_rows = {id(row) for row, _ in to_write}
        return [
            [self._reject(row, RejectionReason.CART_WRITE_FAILED, batch_index, detail=write_error)]
            if id(row) in failed_rows else outcomes
            for row, outcomes in zip(batch, staged)
        ]

    async def _process_row(
        self,
        row: OrderRow,
        batch_index: int,
        enable_alternatives: bool
    ) -> List[ItemOutcome]:
        minimum = await self._minimum_order_quantity(row.sku)
        if minimum is not None and row.quantity < minimum:
            return [self._reject(
                row, RejectionReason.BELOW_MINIMUM_ORDER, batch_index,
                detail=f"Minimum order quantity is {minimum}, requested {row.quantity}"
            )]

        availability, detail = await self._check_availability(row.sku)
        if availability is None and detail == BREAKER_OPEN_DETAIL:
            return [self._reject(row, RejectionReason.SERVICE_UNAVAILABLE, batch_index, detail=detail)]

        if availability is not None and availability.available and availability.quantity > 0:
            return self._fulfill(row, availability, batch_index)

        suggestions: List[AlternativeSuggestion] = []
        if enable_alternatives:
            suggestions = await self._find_alternatives(row.sku, row.quantity)
        return [self._reject(row, RejectionReason.OUT_OF_STOCK, batch_index,
                             suggestions=suggestions, detail=detail or "Product not available")]

    async def _check_availability(self, sku: str) -> Tuple[Optional[AvailabilityResult], str]:
        """
        Look up availability through cache, breaker, rate limiter and retry.

        Returns:
            (result, "") on success, (None, detail) on failure
        """
        if self.cache is not None:
            cached = self.cache.get(sku)
            if cached is not None:
                return cached, ""

        if not self.availability_breaker.can_proceed():
            return None, BREAKER_OPEN_DETAIL

        async def call() -> AvailabilityResult:
            if self.rate_limiter is not None:
                await self.rate_limiter.acquire()
            return await self.gateway.check_availability(sku)

        outcome = await self._guarded_call(
            self.availability_breaker,
            self.availability_retry.execute_with_retry(
                call, {"sku": sku, "operation": "check_availability"}
            )
        )
        if not outcome.success:
            self.availability_breaker.record_failure()
            hint = suggest_recovery(outcome.error, outcome.attempts)
            return None, (f"{outcome.error} (failed after {outcome.attempts} attempts). "
                          f"{hint.message}")

        self.availability_breaker.record_success()
        if self.cache is not None:
            self.cache.set(sku, outcome.result)
        return outcome.result, ""

    @staticmethod
    async def _guarded_call(breaker: CircuitBreaker, call: Awaitable[RetryOutcome]) -> RetryOutcome:
        """Await a breaker-admitted call, handing back a half-open trial if cancelled."""
        trial = breaker.state == CircuitState.HALF_OPEN
        try:
            return await call
        except asyncio.CancelledError:
            if trial:
                breaker.release_trial()
            raise

    async def _minimum_order_quantity(self, sku: str) -> Optional[int]:
        try:
            return await self.gateway.minimum_order_quantity(sku)
        except Exception as e:
            self.logger.dependency_error(operation="minimum_order_quantity", sku=sku, error=str(e))
            return None

    async def _find_alternatives(self, sku: str, quantity: int) -> List[AlternativeSuggestion]:
        try:
            return list(await self.gateway.find_alternatives(sku, quantity))
        except Exception as e:
            self.logger.dependency_error(operation="find_alternatives", sku=sku, error=str(e))
            return []

    async def _write_cart(self, lines: List[CartLine]) -> Optional[str]:
        """Write lines in one call. Returns None on success, else the error text."""
        if not self.cart_breaker.can_proceed():
            return "Cart service temporarily unavailable (circuit breaker open)"

        outcome = await self._guarded_call(
            self.cart_breaker,
            self.cart_retry.execute_with_retry(
                lambda: self.gateway.add_to_cart(lines), {"operation": "add_to_cart"}
            )
        )
        if outcome.success:
            self.cart_breaker.record_success()
            return None

        self.cart_breaker.record_failure()
        return f"Failed to add to cart: {outcome.error} (failed after {outcome.attempts} attempts)"

    @staticmethod
    def _fulfill(row: OrderRow, availability: AvailabilityResult, batch_index: int) -> List[ItemOutcome]:
        granted = min(row.quantity, availability.quantity)
        unit_price = Decimal(availability.price)
        outcomes: List[ItemOutcome] = [Fulfilled(
            sku=row.sku,
            quantity_requested=row.quantity,
            quantity_granted=granted,
            unit_price=unit_price,
            line_total=unit_price * granted,
            batch_index=batch_index,
            priority=row.priority,
        )]
        if granted < row.quantity:
            outcomes.append(PartiallyFulfilled(
                sku=row.sku,
                quantity_granted=granted,
                quantity_shortfall=row.quantity - granted,
                reason_text=f"Only {granted} units available out of {row.quantity} requested",
                batch_index=batch_index,
                priority=row.priority,
            ))
        return outcomes

    def _reject(
        self,
        row: OrderRow,
        reason: RejectionReason,
        batch_index: int,
        suggestions: Optional[List[AlternativeSuggestion]] = None,
        detail: str = ""
    ) -> Rejected:
        self.logger.row_rejected(sku=row.sku, reason=reason.value, detail=detail)
        return Rejected(
            sku=row.sku,
            quantity_requested=row.quantity,
            reason=reason,
            suggestions=list(suggestions or []),
            detail=detail,
            batch_index=batch_index,
            priority=row.priority,
        )

    def _emit_progress(
        self,
        listener: Optional[ProgressListener],
        aggregator: OutcomeAggregator,
        batch_index: int,
        total_batches: int
    ) -> None:
        if listener is None:
            return

        counters = aggregator.counters()
        processed = counters["processed_items"]
        elapsed_ms = aggregator.elapsed_ms
        remaining = max(aggregator.total_items - processed, 0)
        estimated_remaining = (elapsed_ms / processed) * remaining if processed else 0.0

        snapshot = ProgressSnapshot(
            total_items=aggregator.total_items,
            processed_items=processed,
            successful_items=counters["successful_items"],
            failed_items=counters["failed_items"],
            current_batch=batch_index,
            total_batches=total_batches,
            elapsed_ms=round(elapsed_ms, 3),
            estimated_remaining_ms=round(estimated_remaining, 3),
        )
        try:
            listener(snapshot)
        except Exception as e:
            self.logger.progress_callback_error(error=str(e))
