"""Run orchestrator coordinating parse, process and report phases."""

import asyncio
from contextlib import AsyncExitStack
from pathlib import Path
from typing import Optional, Union

from bulk_orders.errors import ConfigurationError
from bulk_orders.gateways.base import CommerceGateway, ProgressListener
from bulk_orders.gateways.catalog import CatalogGateway
from bulk_orders.gateways.http_gateway import HttpCommerceGateway
from bulk_orders.models.config import EngineConfig
from bulk_orders.models.data_models import RunReport
from bulk_orders.monitoring.logger import StructuredLogger
from bulk_orders.parsing.csv_parser import CSVBulkOrderParser, ParseOptions
from bulk_orders.processor import BulkOrderProcessor, RunOptions, summarize
from bulk_orders.suggestions.suggester import build_suggester


class BulkOrderRunner:
    """Orchestrates one bulk order run: parse -> process -> summarize."""

    def __init__(
        self,
        config: EngineConfig,
        gateway: Optional[CommerceGateway] = None,
        catalog_path: Optional[Path] = None,
        logger: Optional[StructuredLogger] = None
    ):
        """
        Initialize runner with engine configuration.

        The commerce backend is, in order of preference: an explicit
        gateway, the HTTP API at `config.api_url`, or a catalog file.

        Args:
            config: Engine configuration object
            gateway: Pre-built gateway (used as-is)
            catalog_path: YAML catalog for the in-memory gateway
            logger: Structured logger (created from config.log_level if omitted)
        """
        self.config = config
        self.gateway = gateway
        self.catalog_path = catalog_path
        self.logger = logger or StructuredLogger(level=config.log_level)

    async def run(
        self,
        raw_text: Union[str, bytes],
        on_progress: Optional[ProgressListener] = None,
        skip_invalid: bool = True
    ) -> RunReport:
        """
        Parse and process a bulk order file.

        Enforces run_timeout_seconds from configuration: once the deadline
        passes no further batch is started and the partial result is
        returned with `cancelled=True`.

        Raises:
            MissingColumnsError: If required columns are absent
            RowValidationError: On the first invalid row when skip_invalid is False
            InputTooLargeError: If the file exceeds max_file_bytes
            InputEncodingError: If file bytes cannot be decoded
            ConfigurationError: If no commerce backend is configured
        """
        parser = CSVBulkOrderParser(
            ParseOptions(
                skip_invalid=skip_invalid,
                max_rows=self.config.max_rows,
                max_bytes=self.config.max_file_bytes
            ),
            logger=self.logger
        )
        parse_result = parser.parse(raw_text)

        cancel_event = asyncio.Event()
        deadline = None
        if self.config.run_timeout_seconds:
            deadline = asyncio.get_running_loop().call_later(
                self.config.run_timeout_seconds, self._on_timeout, cancel_event
            )

        try:
            async with AsyncExitStack() as stack:
                gateway = await self._open_gateway(stack)
                processor = BulkOrderProcessor(gateway, self.config, logger=self.logger)
                result = await processor.process_bulk_order(
                    parse_result.rows,
                    RunOptions(on_progress=on_progress),
                    cancel_event=cancel_event
                )
        finally:
            if deadline is not None:
                deadline.cancel()

        return RunReport(parse_result=parse_result, result=result, summary=summarize(result))

    async def run_file(
        self,
        path: Path,
        on_progress: Optional[ProgressListener] = None,
        skip_invalid: bool = True
    ) -> RunReport:
        """Read `path` and run it."""
        return await self.run(Path(path).read_bytes(), on_progress, skip_invalid)

    async def _open_gateway(self, stack: AsyncExitStack) -> CommerceGateway:
        if self.gateway is not None:
            return self.gateway

        if self.config.api_url:
            return await stack.enter_async_context(HttpCommerceGateway(
                self.config.api_url,
                connect_timeout=self.config.connect_timeout,
                read_timeout=self.config.read_timeout
            ))

        if self.catalog_path is not None:
            return CatalogGateway.from_file(
                Path(self.catalog_path),
                suggester=build_suggester(self.config.suggester)
            )

        raise ConfigurationError("No commerce backend configured: pass a catalog file or an API URL")

    def _on_timeout(self, cancel_event: asyncio.Event) -> None:
        self.logger.run_timeout(self.config.run_timeout_seconds)
        cancel_event.set()
