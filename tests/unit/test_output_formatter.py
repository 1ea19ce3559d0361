"""Unit tests for CSV and JSON report writers."""

import csv
import io
import json
from decimal import Decimal

import pytest

from bulk_orders.models.data_models import (
    AlternativeSuggestion,
    AvailabilityState,
    BulkRunResult,
    Fulfilled,
    PartiallyFulfilled,
    Rejected,
    RejectionReason,
)
from bulk_orders.pipeline.output import CSVReportExporter, JSONOutputFormatter


@pytest.fixture
def run_result():
    """Result with a confirmed item, a shortfall and a rejection with suggestions."""
    return BulkRunResult(
        successful=[
            Fulfilled(sku="A-1", quantity_requested=10, quantity_granted=10,
                      unit_price=Decimal("2.5"), line_total=Decimal("25.0"), batch_index=1),
            Fulfilled(sku="A-2", quantity_requested=5000, quantity_granted=100,
                      unit_price=Decimal("1.20"), line_total=Decimal("120.00"), batch_index=1),
        ],
        failed=[
            PartiallyFulfilled(sku="A-2", quantity_granted=100, quantity_shortfall=4900,
                               reason_text="Only 100 units available out of 5000 requested",
                               batch_index=1),
            Rejected(
                sku="A-3",
                quantity_requested=7,
                reason=RejectionReason.OUT_OF_STOCK,
                detail="Product not available",
                batch_index=2,
                suggestions=[AlternativeSuggestion(
                    sku="A-4", name="Alt", similarity_score=0.87,
                    availability_state=AvailabilityState.IN_STOCK,
                    price=Decimal("3.1"), rationale="Same category",
                )],
            ),
        ],
        total_quantity_granted=110,
        total_value=Decimal("145.00"),
        processing_time_ms=12.3456,
        total_items=3,
    )


class TestCSVReportExporter:

    def test_header(self, run_result):
        text = CSVReportExporter().export(run_result)
        assert text.splitlines()[0] == "sku,quantity,status,unit_price,total_price,error"

    def test_one_row_per_outcome(self, run_result):
        rows = list(csv.DictReader(io.StringIO(CSVReportExporter().export(run_result))))

        assert len(rows) == 4
        assert [row["sku"] for row in rows] == ["A-1", "A-2", "A-2", "A-3"]

    def test_confirmed_row(self, run_result):
        row = CSVReportExporter().rows(run_result)[0]
        assert row == {
            "sku": "A-1",
            "quantity": "10",
            "status": "confirmed",
            "unit_price": "2.50",
            "total_price": "25.00",
            "error": "",
        }

    def test_shortfall_row_reports_shortfall_quantity(self, run_result):
        row = CSVReportExporter().rows(run_result)[2]
        assert row["status"] == "failed"
        assert row["quantity"] == "4900"
        assert row["unit_price"] == ""
        assert row["total_price"] == ""
        assert row["error"].startswith("Only 100 units")

    def test_rejected_row(self, run_result):
        row = CSVReportExporter().rows(run_result)[3]
        assert row["status"] == "failed"
        assert row["quantity"] == "7"
        assert row["error"] == "out_of_stock: Product not available"

    def test_error_with_delimiter_is_quoted(self):
        result = BulkRunResult(
            successful=[],
            failed=[Rejected(sku="X", quantity_requested=1, reason=RejectionReason.CART_WRITE_FAILED,
                             detail="cart down, retry later")],
            total_quantity_granted=0,
            total_value=Decimal("0"),
            processing_time_ms=0.0,
        )
        rows = list(csv.DictReader(io.StringIO(CSVReportExporter().export(result))))
        assert rows[0]["error"] == "cart_write_failed: cart down, retry later"

    def test_save_creates_directories(self, run_result, tmp_path):
        path = tmp_path / "nested" / "report.csv"
        CSVReportExporter().save(run_result, str(path))

        assert path.exists()
        assert path.read_text(encoding="utf-8") == CSVReportExporter().export(run_result)


class TestJSONOutputFormatter:

    def test_summary_section(self, run_result):
        summary = JSONOutputFormatter().format(run_result)["summary"]

        assert summary["total_items"] == 3
        assert summary["successful"] == 2
        assert summary["failed"] == 1
        assert summary["partial"] == 1
        assert summary["total_quantity"] == 110
        assert summary["total_value"] == "145.00"
        assert summary["processing_time_ms"] == 12.35
        assert summary["cancelled"] is False

    def test_outcomes_section(self, run_result):
        outcomes = JSONOutputFormatter().format(run_result)["outcomes"]

        assert [o["status"] for o in outcomes] == ["confirmed", "confirmed", "partial", "rejected"]
        rejected = outcomes[3]
        assert rejected["reason"] == "out_of_stock"
        assert rejected["suggestions"][0]["sku"] == "A-4"
        assert rejected["suggestions"][0]["price"] == "3.10"

    def test_save(self, run_result, tmp_path):
        path = tmp_path / "out" / "summary.json"
        JSONOutputFormatter().save(run_result, str(path))

        data = json.loads(path.read_text(encoding="utf-8"))
        assert set(data) == {"summary", "outcomes"}
