"""Pytest configuration and shared fixtures."""

import random
from typing import List
from unittest.mock import AsyncMock

import pytest

from bulk_orders.gateways.catalog import CatalogGateway, CatalogProduct
from bulk_orders.models.config import (
    CacheSettings,
    CircuitBreakerSettings,
    EngineConfig,
    RetryPolicy,
)
from bulk_orders.monitoring.logger import StructuredLogger
from tests.fixtures.sample_data import FakeClock, get_sample_catalog


@pytest.fixture(scope="session")
def deterministic_seed():
    """Set a fixed random seed for deterministic test results."""
    random.seed(42)
    return 42


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def no_sleep():
    """Async sleeper that records requested delays instead of sleeping."""
    return AsyncMock(return_value=None)


@pytest.fixture
def sample_config():
    """Provide a sample configuration for testing."""
    fast_retry = RetryPolicy(max_attempts=3, initial_delay_ms=1, max_delay_ms=5)
    return EngineConfig(
        batch_size=10,
        max_concurrent=4,
        enable_alternatives=True,
        availability_retry=fast_retry,
        cart_retry=fast_retry,
        availability_breaker=CircuitBreakerSettings(failure_threshold=5, cooldown_seconds=60.0),
        cart_breaker=CircuitBreakerSettings(failure_threshold=5, cooldown_seconds=60.0),
        cache=CacheSettings(enabled=False),
        log_level="ERROR",
    )


@pytest.fixture
def quiet_logger():
    return StructuredLogger(level="ERROR")


@pytest.fixture
def catalog_products() -> List[CatalogProduct]:
    return get_sample_catalog()


@pytest.fixture
def catalog_gateway(catalog_products):
    return CatalogGateway(catalog_products)
