"""Commerce gateway talking to a remote commerce API over HTTP."""

from decimal import Decimal
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from bulk_orders.models.data_models import (
    AlternativeSuggestion,
    AvailabilityResult,
    AvailabilityState,
    CartLine,
)


def availability_from_json(data: Dict[str, Any]) -> AvailabilityResult:
    return AvailabilityResult(
        sku=str(data["sku"]),
        available=bool(data.get("available", False)),
        quantity=max(0, int(data.get("quantity", 0))),
        price=Decimal(str(data.get("price", "0"))),
        name=str(data.get("name", data["sku"])),
    )


def sku_segment(sku: str) -> str:
    """Escape a SKU as a single URL path segment."""
    return quote(sku, safe="")


def suggestion_from_json(data: Dict[str, Any]) -> AlternativeSuggestion:
    price = data.get("price")
    return AlternativeSuggestion(
        sku=str(data["sku"]),
        name=str(data.get("name", data["sku"])),
        similarity_score=float(data.get("similarity_score", 0.0)),
        availability_state=AvailabilityState(data.get("availability_state", "in_stock")),
        price=Decimal(str(price)) if price is not None else None,
        rationale=str(data.get("rationale", "")),
    )


class HttpCommerceGateway:
    """
    Async HTTP gateway wrapping httpx.AsyncClient.

    Provides:
    - Configurable connect and read timeouts
    - Connection pooling via httpx
    - Context manager for proper lifecycle management

    HTTP error statuses are raised as httpx.HTTPStatusError so the retry
    executor can classify them (429 rate_limit, 502/503/504 temporary_failure).
    """

    def __init__(
        self,
        base_url: str,
        connect_timeout: float = 3.0,
        read_timeout: float = 8.0,
        write_timeout: float = 5.0,
        pool_timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize HTTP gateway.

        Args:
            base_url: Root URL of the commerce API
            connect_timeout: Connection timeout in seconds
            read_timeout: Read timeout in seconds
            write_timeout: Write timeout in seconds
            pool_timeout: Pool timeout in seconds
            transport: Optional transport (e.g. httpx.ASGITransport in tests)
        """
        self.base_url = base_url.rstrip("/")
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self.write_timeout = write_timeout
        self.pool_timeout = pool_timeout
        self.transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        """Enter async context manager."""
        timeout = httpx.Timeout(
            connect=self.connect_timeout,
            read=self.read_timeout,
            write=self.write_timeout,
            pool=self.pool_timeout
        )
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=self.transport
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Exit async context manager."""
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> httpx.AsyncClient:
        if not self._client:
            raise RuntimeError("Client not initialized. Use 'async with' context manager.")
        return self._client

    async def check_availability(self, sku: str) -> AvailabilityResult:
        response = await self.client.get(f"/availability/{sku_segment(sku)}")
        response.raise_for_status()
        return availability_from_json(response.json())

    async def find_alternatives(self, sku: str, quantity: Optional[int] = None) -> List[AlternativeSuggestion]:
        params = {"quantity": quantity} if quantity is not None else None
        response = await self.client.get(f"/products/{sku_segment(sku)}/alternatives", params=params)
        response.raise_for_status()
        return [suggestion_from_json(item) for item in response.json().get("alternatives", [])]

    async def add_to_cart(self, items: List[CartLine]) -> None:
        payload = {"items": [{"sku": line.sku, "quantity": line.quantity} for line in items]}
        response = await self.client.post("/cart/items", json=payload)
        response.raise_for_status()

    async def minimum_order_quantity(self, sku: str) -> Optional[int]:
        response = await self.client.get(f"/products/{sku_segment(sku)}/rules")
        if response.status_code == 404:
            return None
        response.raise_for_status()
        value = response.json().get("minimum_order_quantity")
        return int(value) if value is not None else None
