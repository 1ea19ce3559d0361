"""Unit tests for the HTTP commerce gateway against the mock server."""

from decimal import Decimal

import httpx
import pytest

from bulk_orders.gateways.catalog import CatalogProduct, CatalogProductModel
from bulk_orders.gateways.http_gateway import HttpCommerceGateway, sku_segment
from bulk_orders.mock_servers import create_mock_commerce_app
from bulk_orders.models.data_models import AvailabilityState, CartLine
from bulk_orders.resilience.retry_handler import classify_error
from bulk_orders.suggestions.suggester import B2BAlternativeSuggester


def _gateway(app) -> HttpCommerceGateway:
    return HttpCommerceGateway("http://commerce.test", transport=httpx.ASGITransport(app=app))


class TestHttpCommerceGateway:

    def test_client_requires_context_manager(self):
        gateway = HttpCommerceGateway("http://commerce.test")
        with pytest.raises(RuntimeError):
            gateway.client

    @pytest.mark.asyncio
    async def test_availability(self, catalog_products):
        async with _gateway(create_mock_commerce_app(catalog_products)) as gateway:
            result = await gateway.check_availability("GLV-L-100")

        assert result.available is True
        assert result.quantity == 500
        assert result.price == Decimal("12.50")
        assert result.name == "Nitrile Gloves Large 100 Pack"

    @pytest.mark.asyncio
    async def test_alternatives(self, catalog_products):
        async with _gateway(create_mock_commerce_app(catalog_products)) as gateway:
            suggestions = await gateway.find_alternatives("GLV-L-OOS")

        assert suggestions
        assert suggestions[0].availability_state == AvailabilityState.IN_STOCK
        assert isinstance(suggestions[0].price, Decimal)

    @pytest.mark.asyncio
    async def test_minimum_order_quantity(self, catalog_products):
        async with _gateway(create_mock_commerce_app(catalog_products)) as gateway:
            assert await gateway.minimum_order_quantity("BOX-40") == 50
            assert await gateway.minimum_order_quantity("TAPE-48") is None
            assert await gateway.minimum_order_quantity("UNKNOWN") is None

    @pytest.mark.asyncio
    async def test_cart_write(self, catalog_products):
        app = create_mock_commerce_app(catalog_products)
        async with _gateway(app) as gateway:
            await gateway.add_to_cart([CartLine("GLV-L-100", 10), CartLine("TAPE-48", 2)])

        assert app.state.catalog.cart == {"GLV-L-100": 10, "TAPE-48": 2}

    @pytest.mark.asyncio
    async def test_server_error_is_classified_transient(self, catalog_products):
        app = create_mock_commerce_app(catalog_products, failing_skus=["GLV-L-100"])
        async with _gateway(app) as gateway:
            with pytest.raises(httpx.HTTPStatusError) as exc_info:
                await gateway.check_availability("GLV-L-100")

        assert classify_error(exc_info.value) == "temporary_failure"

    @pytest.mark.asyncio
    async def test_cart_failure_raises(self, catalog_products):
        app = create_mock_commerce_app(catalog_products, fail_cart_writes=True)
        async with _gateway(app) as gateway:
            with pytest.raises(httpx.HTTPStatusError):
                await gateway.add_to_cart([CartLine("GLV-L-100", 1)])

    @pytest.mark.asyncio
    async def test_sku_is_sent_as_one_path_segment(self, catalog_products):
        slashed = CatalogProduct.from_model(CatalogProductModel(
            sku="GLV/L/100", name="Gloves, slashed code", price="3.00", stock=7,
            minimum_order_quantity=5,
        ))
        app = create_mock_commerce_app([*catalog_products, slashed])

        async with _gateway(app) as gateway:
            hashed = await gateway.check_availability("GLV-L-100#X")
            result = await gateway.check_availability("GLV/L/100")
            minimum = await gateway.minimum_order_quantity("GLV/L/100")
            alternatives = await gateway.find_alternatives("GLV-L-OOS?page=2")

        assert hashed.sku == "GLV-L-100#X"
        assert hashed.available is False
        assert hashed.quantity == 0
        assert result.sku == "GLV/L/100"
        assert result.quantity == 7
        assert minimum == 5
        assert alternatives == []

    @pytest.mark.asyncio
    async def test_alternatives_for_bulk_quantity(self, catalog_products):
        app = create_mock_commerce_app(catalog_products, suggester=B2BAlternativeSuggester())
        async with _gateway(app) as gateway:
            suggestions = await gateway.find_alternatives("GLV-L-OOS", 200)

        assert suggestions
        assert all("Bulk availability confirmed" in s.rationale for s in suggestions)
        value_pack = next(s for s in suggestions if s.sku == "GLV-L-ALT")
        assert "Potential savings: $200.00" in value_pack.rationale


def test_sku_segment_escapes_reserved_characters():
    assert sku_segment("GLV-L-100") == "GLV-L-100"
    assert sku_segment("A/B#C?D E") == "A%2FB%23C%3FD%20E"
