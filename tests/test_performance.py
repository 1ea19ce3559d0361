"""Performance benchmarks and verification tests."""

import asyncio
import time
from decimal import Decimal

import pytest

from bulk_orders.models.data_models import AvailabilityResult
from bulk_orders.parsing.csv_parser import CSVBulkOrderParser, ParseOptions
from bulk_orders.processor import BulkOrderProcessor, RunOptions
from bulk_orders.processor.cache import ProductCache
from tests.fixtures.sample_data import get_sample_order_csv, get_sample_rows


class DelayedGateway:
    """Gateway with a fixed latency per availability call."""

    def __init__(self, latency: float):
        self.latency = latency

    async def check_availability(self, sku):
        await asyncio.sleep(self.latency)
        return AvailabilityResult(sku=sku, available=True, quantity=1000,
                                  price=Decimal("1.00"), name=sku)

    async def find_alternatives(self, sku, quantity=None):
        return []

    async def add_to_cart(self, items):
        return None

    async def minimum_order_quantity(self, sku):
        return None


@pytest.mark.performance
class TestPerformanceBenchmarks:
    """Timing checks for the parser, processor and cache."""

    def test_parse_1000_rows_under_one_second(self):
        text = get_sample_order_csv(count=1000)

        start = time.perf_counter()
        result = CSVBulkOrderParser(ParseOptions(max_rows=1000)).parse(text)
        elapsed = time.perf_counter() - start

        assert result.summary.valid_rows == 1000
        assert elapsed < 1.0, f"Parsing took {elapsed:.3f}s"

    @pytest.mark.asyncio
    async def test_concurrency_shortens_batches(self, sample_config, quiet_logger):
        """50 checks of 20ms each finish far faster than sequentially."""
        processor = BulkOrderProcessor(DelayedGateway(0.02), sample_config, logger=quiet_logger)
        rows = get_sample_rows(50)

        start = time.perf_counter()
        result = await processor.process_bulk_order(rows, RunOptions(batch_size=50, max_concurrent=10))
        elapsed = time.perf_counter() - start

        assert len(result.successful) == 50
        # Sequential would take ~1.0s; 10 concurrent slots need ~0.1s
        assert elapsed < 0.6, f"Batch took {elapsed:.3f}s"

    def test_cache_lookups_are_fast(self):
        cache = ProductCache(max_size=10000)
        for i in range(10000):
            cache.set(f"SKU-{i}", AvailabilityResult(sku=f"SKU-{i}", available=True, quantity=1,
                                                     price=Decimal("1"), name="x"))

        start = time.perf_counter()
        for i in range(10000):
            cache.get(f"SKU-{i}")
        elapsed = time.perf_counter() - start

        assert cache.metrics.hits == 10000
        assert elapsed < 0.5, f"10k lookups took {elapsed:.3f}s"
