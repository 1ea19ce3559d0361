"""Core data models for the bulk order engine."""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union


class Priority(Enum):
    """Fulfillment priority tiers, processed high first."""
    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"


PRIORITY_ORDER: Tuple[Priority, ...] = (Priority.HIGH, Priority.NORMAL, Priority.LOW)


class CircuitState(Enum):
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class AvailabilityState(Enum):
    """Stock state of a catalog product."""
    IN_STOCK = "in_stock"
    LIMITED = "limited"
    OUT_OF_STOCK = "out_of_stock"


class RejectionReason(Enum):
    """Why an item could not be added to the cart."""
    OUT_OF_STOCK = "out_of_stock"
    BELOW_MINIMUM_ORDER = "below_minimum_order"
    SERVICE_UNAVAILABLE = "service_unavailable"
    CART_WRITE_FAILED = "cart_write_failed"


@dataclass(frozen=True)
class OrderRow:
    """A validated order request parsed from one data row."""
    sku: str
    quantity: int
    priority: Priority = Priority.NORMAL
    notes: Optional[str] = None
    reference: Optional[str] = None
    row_number: int = 0  # 1-based, header excluded


@dataclass(frozen=True)
class RowError:
    """Validation problem with a single data row."""
    row: int
    message: str
    column: Optional[str] = None
    value: Optional[str] = None


@dataclass(frozen=True)
class ParseSummary:
    """Counts describing one parse."""
    total_rows: int
    valid_rows: int
    error_rows: int
    total_quantity: int
    unique_skus: int


@dataclass(frozen=True)
class ParseResult:
    """Rows and row errors produced by the parser."""
    rows: List[OrderRow]
    errors: List[RowError]
    summary: ParseSummary
    delimiter: str = ","

    @property
    def success(self) -> bool:
        return not self.errors


@dataclass(frozen=True)
class AvailabilityResult:
    """Availability of one SKU as reported by the availability service."""
    sku: str
    available: bool
    quantity: int
    price: Decimal
    name: str


@dataclass(frozen=True)
class ProductAttributes:
    """Catalog product description used for similarity scoring."""
    sku: str
    name: str
    price: Decimal
    category: List[str] = field(default_factory=list)
    brand: Optional[str] = None
    attributes: Dict[str, Any] = field(default_factory=dict)
    availability: AvailabilityState = AvailabilityState.IN_STOCK
    tags: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class AlternativeSuggestion:
    """A ranked substitute for an unavailable product."""
    sku: str
    name: str
    similarity_score: float  # Range 0.0-1.0
    availability_state: AvailabilityState
    price: Optional[Decimal]
    rationale: str


@dataclass(frozen=True)
class CartLine:
    """One line of a bulk cart write."""
    sku: str
    quantity: int


@dataclass(frozen=True)
class Fulfilled:
    """Item added to the cart, possibly with a reduced quantity."""
    sku: str
    quantity_requested: int
    quantity_granted: int
    unit_price: Decimal
    line_total: Decimal
    batch_index: int = 0
    priority: Priority = Priority.NORMAL


@dataclass(frozen=True)
class PartiallyFulfilled:
    """Shortfall record emitted alongside a reduced Fulfilled outcome."""
    sku: str
    quantity_granted: int
    quantity_shortfall: int
    reason_text: str
    batch_index: int = 0
    priority: Priority = Priority.NORMAL


@dataclass(frozen=True)
class Rejected:
    """Item that could not be added to the cart."""
    sku: str
    quantity_requested: int
    reason: RejectionReason
    suggestions: List[AlternativeSuggestion] = field(default_factory=list)
    detail: str = ""
    batch_index: int = 0
    priority: Priority = Priority.NORMAL


ItemOutcome = Union[Fulfilled, PartiallyFulfilled, Rejected]


@dataclass(frozen=True)
class ProgressSnapshot:
    """Progress of a run, emitted once per completed batch."""
    total_items: int
    processed_items: int
    successful_items: int
    failed_items: int
    current_batch: int
    total_batches: int
    elapsed_ms: float
    estimated_remaining_ms: float

    @property
    def percentage(self) -> int:
        if self.total_items <= 0:
            return 0
        return round(self.processed_items / self.total_items * 100)


@dataclass(frozen=True)
class BulkRunResult:
    """Final result of one processing run."""
    successful: List[Fulfilled]
    failed: List[Union[PartiallyFulfilled, Rejected]]
    total_quantity_granted: int
    total_value: Decimal
    processing_time_ms: float
    total_items: int = 0
    cancelled: bool = False

    @property
    def outcomes(self) -> List[ItemOutcome]:
        """All outcomes ordered by batch index."""
        combined: List[ItemOutcome] = [*self.successful, *self.failed]
        return sorted(combined, key=lambda o: o.batch_index)


@dataclass(frozen=True)
class RetryOutcome:
    """Result of running one operation under a retry policy."""
    success: bool
    attempts: int
    final_delay_ms: float
    result: Any = None
    error: Optional[BaseException] = None
    classification: Optional[str] = None


@dataclass(frozen=True)
class RecoveryHint:
    """Suggested next step after a dependency failure."""
    action: str
    message: str


@dataclass(frozen=True)
class RunSummary:
    """Aggregate statistics for a finished run."""
    total_items: int
    successful_count: int
    failed_count: int
    partial_count: int
    total_quantity_granted: int
    total_value: Decimal
    success_rate: float  # Range 0.0-1.0
    processing_time_ms: float
    failures_by_reason: Dict[str, int]
    cancelled: bool = False


@dataclass(frozen=True)
class RunReport:
    """Parse result, run result and summary of one end-to-end run."""
    parse_result: ParseResult
    result: BulkRunResult
    summary: RunSummary
