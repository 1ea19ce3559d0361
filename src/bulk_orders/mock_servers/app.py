"""FastAPI mock commerce server for exercising the HTTP gateway."""

import os
import random
from pathlib import Path
from typing import Iterable, List, Optional

from fastapi import FastAPI, HTTPException, Query
from pydantic import BaseModel, Field

from bulk_orders.gateways.catalog import CatalogGateway, CatalogProduct, load_catalog
from bulk_orders.models.data_models import CartLine
from bulk_orders.suggestions.suggester import AlternativeSuggester


class CartItemRequest(BaseModel):
    sku: str = Field(min_length=1)
    quantity: int = Field(gt=0)


class CartRequest(BaseModel):
    """Bulk cart write payload."""
    items: List[CartItemRequest]


def create_mock_commerce_app(
    products: Iterable[CatalogProduct] = (),
    error_rate: float = 0.0,
    random_seed: Optional[int] = None,
    failing_skus: Iterable[str] = (),
    fail_cart_writes: bool = False,
    suggester: Optional[AlternativeSuggester] = None
) -> FastAPI:
    """
    Create a FastAPI mock commerce server backed by a catalog.

    Args:
        products: Catalog products to serve
        random_seed: Seed for deterministic error injection
        error_rate: Probability of a 502/503 on availability lookups (0.0-1.0)
        failing_skus: SKUs whose availability lookup always returns 503
        fail_cart_writes: Reject every cart write with 503
        suggester: Suggester used for the alternatives endpoint

    Returns:
        FastAPI application
    """
    app = FastAPI(title="Mock Commerce API")
    catalog = CatalogGateway(products, suggester=suggester)
    failing = set(failing_skus)
    rng = random.Random(random_seed)
    app.state.catalog = catalog

    @app.get("/availability/{sku:path}")
    async def get_availability(sku: str):
        """Stock and price for one SKU."""
        if sku in failing:
            raise HTTPException(status_code=503, detail="Availability service unavailable")

        # Simulate random errors
        if rng.random() < error_rate:
            raise HTTPException(status_code=rng.choice([502, 503]), detail="Simulated error")

        result = await catalog.check_availability(sku)
        return {
            "sku": result.sku,
            "available": result.available,
            "quantity": result.quantity,
            "price": str(result.price),
            "name": result.name,
        }

    @app.get("/products/{sku:path}/alternatives")
    async def get_alternatives(sku: str, quantity: Optional[int] = Query(default=None, gt=0)):
        """Ranked in-stock substitutes for one SKU ordered in bulk."""
        suggestions = await catalog.find_alternatives(sku, quantity)
        return {
            "sku": sku,
            "alternatives": [
                {
                    "sku": s.sku,
                    "name": s.name,
                    "similarity_score": s.similarity_score,
                    "availability_state": s.availability_state.value,
                    "price": str(s.price) if s.price is not None else None,
                    "rationale": s.rationale,
                }
                for s in suggestions
            ],
        }

    @app.get("/products/{sku:path}/rules")
    async def get_rules(sku: str):
        """Order rules for one SKU."""
        if sku not in catalog.products:
            raise HTTPException(status_code=404, detail=f"Unknown product: {sku}")
        return {
            "sku": sku,
            "minimum_order_quantity": await catalog.minimum_order_quantity(sku),
        }

    @app.post("/cart/items")
    async def add_cart_items(request: CartRequest):
        """Add several lines to the cart in one write."""
        if fail_cart_writes:
            raise HTTPException(status_code=503, detail="Cart service unavailable")
        await catalog.add_to_cart([CartLine(sku=i.sku, quantity=i.quantity) for i in request.items])
        return {"added": len(request.items)}

    @app.get("/cart")
    async def get_cart():
        return {"items": [{"sku": sku, "quantity": qty} for sku, qty in catalog.cart.items()]}

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "healthy", "products": len(catalog.products)}

    return app


def create_app() -> FastAPI:
    """
    Factory function for uvicorn --factory.

    Reads CATALOG_PATH, ERROR_RATE and RANDOM_SEED from the environment.
    """
    seed = os.getenv("RANDOM_SEED")
    return create_mock_commerce_app(
        products=load_catalog(Path(os.getenv("CATALOG_PATH", "config/catalog.yaml"))),
        error_rate=float(os.getenv("ERROR_RATE", 0.0)),
        random_seed=int(seed) if seed is not None else None,
    )
