"""Interfaces of the commerce services the engine depends on."""

from typing import Callable, List, Optional, Protocol

from bulk_orders.models.data_models import (
    AlternativeSuggestion,
    AvailabilityResult,
    CartLine,
    ProgressSnapshot,
)


ProgressListener = Callable[[ProgressSnapshot], None]


class CommerceGateway(Protocol):
    """Narrow interface to availability, alternatives, cart and order rules.

    Implementations may raise on network or service failures; the processor
    wraps every call in retry and circuit-breaker protection.
    """

    async def check_availability(self, sku: str) -> AvailabilityResult:
        """Return current availability and price of a SKU."""
        ...

    async def find_alternatives(self, sku: str, quantity: Optional[int] = None) -> List[AlternativeSuggestion]:
        """Return ranked substitutes for a SKU ordered in `quantity` units. Best effort."""
        ...

    async def add_to_cart(self, items: List[CartLine]) -> None:
        """Add all lines to the cart in one write, or raise."""
        ...

    async def minimum_order_quantity(self, sku: str) -> Optional[int]:
        """Return the product-declared minimum order quantity, if any."""
        ...
