"""Test fixtures with deterministic data for CI stability."""

import random
from typing import Any, Dict, List, Optional

from bulk_orders.gateways.catalog import CatalogProduct, CatalogProductModel
from bulk_orders.models.data_models import OrderRow, Priority


SAMPLE_PRODUCTS: List[Dict[str, Any]] = [
    {
        "sku": "GLV-L-100",
        "name": "Nitrile Gloves Large 100 Pack",
        "price": "12.50",
        "stock": 500,
        "category": ["safety", "gloves"],
        "brand": "SafeHands",
        "attributes": {"size": "L", "material": "nitrile", "pack": 100},
        "tags": ["ppe", "disposable"],
    },
    {
        "sku": "GLV-L-ALT",
        "name": "Nitrile Gloves Large Value Pack",
        "price": "11.90",
        "stock": 800,
        "category": ["safety", "gloves"],
        "brand": "GripMaster",
        "attributes": {"size": "L", "material": "nitrile", "pack": 100},
        "tags": ["ppe", "disposable"],
    },
    {
        "sku": "GLV-L-OOS",
        "name": "Premium Nitrile Gloves Large",
        "price": "12.90",
        "stock": 0,
        "category": ["safety", "gloves"],
        "brand": "SafeHands",
        "attributes": {"size": "L", "material": "nitrile", "pack": 100},
        "tags": ["ppe", "disposable"],
    },
    {
        "sku": "BOX-40",
        "name": "Shipping Box 40x30x20",
        "price": "1.20",
        "stock": 100,
        "category": ["packaging", "boxes"],
        "brand": "BoxCo",
        "attributes": {"length_cm": 40, "width_cm": 30, "height_cm": 20},
        "minimum_order_quantity": 50,
    },
    {
        "sku": "TAPE-48",
        "name": "Packing Tape 48mm",
        "price": "2.40",
        "stock": 8,
        "category": ["packaging", "tape"],
        "brand": "BoxCo",
        "attributes": {"width_mm": 48},
    },
]


def get_sample_catalog() -> List[CatalogProduct]:
    """Catalog with in-stock, limited, out-of-stock and minimum-order products."""
    return [CatalogProduct.from_model(CatalogProductModel(**entry)) for entry in SAMPLE_PRODUCTS]


def get_sample_rows(
    count: int,
    priority: Priority = Priority.NORMAL,
    prefix: str = "SKU",
    quantity: int = 1
) -> List[OrderRow]:
    """Rows with distinct SKUs `{prefix}-1` .. `{prefix}-{count}`."""
    return [
        OrderRow(sku=f"{prefix}-{i + 1}", quantity=quantity, priority=priority, row_number=i + 1)
        for i in range(count)
    ]


def get_sample_order_csv(
    count: int = 20,
    seed: int = 42,
    delimiter: str = ",",
    skus: Optional[List[str]] = None
) -> str:
    """
    Generate a deterministic bulk order file.

    Args:
        count: Number of data rows
        seed: Random seed for deterministic results
        delimiter: Field delimiter
        skus: SKUs to draw from (defaults to SKU-1 .. SKU-{count})

    Returns:
        File contents with a SKU, Quantity, Priority, Notes header
    """
    rng = random.Random(seed)
    skus = skus or [f"SKU-{i + 1}" for i in range(count)]
    priorities = ["high", "normal", "low"]

    lines = [delimiter.join(["SKU", "Quantity", "Priority", "Notes"])]
    for i in range(count):
        lines.append(delimiter.join([
            skus[i % len(skus)],
            str(rng.randint(1, 50)),
            rng.choice(priorities),
            f"line {i + 1}",
        ]))
    return "\n".join(lines) + "\n"


class FakeClock:
    """Fake clock for testing."""

    def __init__(self, initial_time: float = 0.0):
        self._current_time = initial_time

    def now(self) -> float:
        return self._current_time

    def advance(self, seconds: float) -> None:
        self._current_time += seconds
