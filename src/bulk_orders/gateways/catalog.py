"""In-memory commerce gateway backed by a product catalog file."""

from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

from bulk_orders.errors import ConfigurationError, TransientError
from bulk_orders.models.data_models import (
    AlternativeSuggestion,
    AvailabilityResult,
    AvailabilityState,
    CartLine,
    ProductAttributes,
)
from bulk_orders.suggestions.suggester import AlternativeSuggester


LOW_STOCK_THRESHOLD = 10


class CatalogProductModel(BaseModel):
    """Schema of one product entry in a catalog file."""
    sku: str = Field(min_length=1)
    name: str
    price: Decimal = Field(ge=0)
    stock: int = Field(default=0, ge=0)
    category: List[str] = Field(default_factory=list)
    brand: Optional[str] = None
    attributes: Dict[str, Any] = Field(default_factory=dict)
    tags: List[str] = Field(default_factory=list)
    availability: Optional[AvailabilityState] = None
    minimum_order_quantity: Optional[int] = Field(default=None, gt=0)

    @field_validator('category', mode='before')
    @classmethod
    def category_as_list(cls, v):
        if isinstance(v, str):
            return [v]
        return v


@dataclass
class CatalogProduct:
    """Catalog entry: descriptive attributes plus stock and order rules."""
    attributes: ProductAttributes
    stock: int
    minimum_order_quantity: Optional[int] = None

    @property
    def sku(self) -> str:
        return self.attributes.sku

    @classmethod
    def from_model(cls, model: CatalogProductModel) -> "CatalogProduct":
        state = model.availability
        if state is None:
            if model.stock == 0:
                state = AvailabilityState.OUT_OF_STOCK
            elif model.stock < LOW_STOCK_THRESHOLD:
                state = AvailabilityState.LIMITED
            else:
                state = AvailabilityState.IN_STOCK
        return cls(
            attributes=ProductAttributes(
                sku=model.sku,
                name=model.name,
                price=model.price,
                category=model.category,
                brand=model.brand,
                attributes=model.attributes,
                availability=state,
                tags=model.tags,
            ),
            stock=model.stock,
            minimum_order_quantity=model.minimum_order_quantity,
        )


def load_catalog(path: Path) -> List[CatalogProduct]:
    """
    Load catalog products from a YAML file with a top-level `products` list.

    Raises:
        ConfigurationError: If the file is missing, malformed or invalid
    """
    if not path.exists():
        raise ConfigurationError(f"Catalog file not found: {path}")
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

    entries = data.get("products", []) if isinstance(data, dict) else data
    if not isinstance(entries, list):
        raise ConfigurationError(f"{path} must contain a list of products")

    try:
        return [CatalogProduct.from_model(CatalogProductModel(**entry)) for entry in entries]
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid product in {path}: {e}") from e


class CatalogGateway:
    """
    Commerce gateway answering from an in-memory catalog.

    Failures can be injected per SKU and for cart writes, which makes the
    gateway usable for local runs, demos and tests.
    """

    def __init__(
        self,
        products: Iterable[CatalogProduct],
        suggester: Optional[AlternativeSuggester] = None,
        failing_skus: Iterable[str] = (),
        fail_cart_writes: bool = False
    ):
        self.products: Dict[str, CatalogProduct] = {p.sku: p for p in products}
        self.suggester = suggester or AlternativeSuggester()
        self.failing_skus = set(failing_skus)
        self.fail_cart_writes = fail_cart_writes
        self.cart: Dict[str, int] = {}
        self.availability_calls = 0
        self.cart_writes = 0

    @classmethod
    def from_file(cls, path: Path, **kwargs) -> "CatalogGateway":
        return cls(load_catalog(path), **kwargs)

    async def check_availability(self, sku: str) -> AvailabilityResult:
        self.availability_calls += 1
        if sku in self.failing_skus:
            raise TransientError("temporary_failure", f"availability lookup failed for {sku}")

        product = self.products.get(sku)
        if product is None:
            return AvailabilityResult(sku=sku, available=False, quantity=0,
                                      price=Decimal("0"), name=sku)

        return AvailabilityResult(
            sku=sku,
            available=product.stock > 0,
            quantity=product.stock,
            price=product.attributes.price,
            name=product.attributes.name,
        )

    async def find_alternatives(self, sku: str, quantity: Optional[int] = None) -> List[AlternativeSuggestion]:
        product = self.products.get(sku)
        if product is None:
            return []
        pool = [p.attributes for p in self.products.values() if p.stock > 0]
        return self.suggester.find_alternatives(product.attributes, pool, bulk_quantity=quantity)

    async def add_to_cart(self, items: List[CartLine]) -> None:
        self.cart_writes += 1
        if self.fail_cart_writes:
            raise TransientError("cart_unavailable", "cart service rejected the bulk write")
        for line in items:
            self.cart[line.sku] = self.cart.get(line.sku, 0) + line.quantity

    async def minimum_order_quantity(self, sku: str) -> Optional[int]:
        product = self.products.get(sku)
        return product.minimum_order_quantity if product else None
