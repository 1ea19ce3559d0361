"""Report writers for bulk order run results.

Two formats are supported:
- CSV report: one row per outcome, suitable for re-upload or spreadsheets
- JSON summary: aggregate statistics plus every outcome and its suggestions
"""

import csv
import io
import json
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Optional

from bulk_orders.models.data_models import (
    AlternativeSuggestion,
    BulkRunResult,
    Fulfilled,
    ItemOutcome,
    PartiallyFulfilled,
    Rejected,
)
from bulk_orders.processor.aggregator import summarize


REPORT_COLUMNS = ["sku", "quantity", "status", "unit_price", "total_price", "error"]


def _money(value: Optional[Decimal]) -> str:
    if value is None:
        return ""
    return str(Decimal(value).quantize(Decimal("0.01")))


class CSVReportExporter:
    """
    Exports run outcomes as a CSV report.

    Columns: sku, quantity, status, unit_price, total_price, error.
    Fulfilled items are `confirmed`; shortfalls and rejections are `failed`.
    Price columns stay blank where they do not apply.
    """

    def rows(self, result: BulkRunResult) -> List[Dict[str, str]]:
        return [self._row(outcome) for outcome in result.outcomes]

    @staticmethod
    def _row(outcome: ItemOutcome) -> Dict[str, str]:
        if isinstance(outcome, Fulfilled):
            return {
                "sku": outcome.sku,
                "quantity": str(outcome.quantity_granted),
                "status": "confirmed",
                "unit_price": _money(outcome.unit_price),
                "total_price": _money(outcome.line_total),
                "error": "",
            }
        if isinstance(outcome, PartiallyFulfilled):
            return {
                "sku": outcome.sku,
                "quantity": str(outcome.quantity_shortfall),
                "status": "failed",
                "unit_price": "",
                "total_price": "",
                "error": outcome.reason_text,
            }
        error = outcome.reason.value
        if outcome.detail:
            error = f"{error}: {outcome.detail}"
        return {
            "sku": outcome.sku,
            "quantity": str(outcome.quantity_requested),
            "status": "failed",
            "unit_price": "",
            "total_price": "",
            "error": error,
        }

    def export(self, result: BulkRunResult) -> str:
        """Render the report as CSV text."""
        buffer = io.StringIO()
        writer = csv.DictWriter(buffer, fieldnames=REPORT_COLUMNS, lineterminator="\n")
        writer.writeheader()
        writer.writerows(self.rows(result))
        return buffer.getvalue()

    def save(self, result: BulkRunResult, path: str = "out/report.csv") -> None:
        """
        Save the CSV report, creating parent directories.

        Args:
            result: Run result to export
            path: Output file path (default: out/report.csv)
        """
        output_path = Path(path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, 'w', encoding='utf-8', newline='') as f:
            f.write(self.export(result))


class JSONOutputFormatter:
    """
    Formats run results as JSON.

    Example output structure:
    {
        "summary": {
            "total_items": 20,
            "successful": 19,
            "failed": 1,
            "partial": 0,
            "total_quantity": 950,
            "total_value": "4321.50",
            "success_rate": 0.95,
            "processing_time_ms": 812.4,
            "failures_by_reason": {"out_of_stock": 1},
            "cancelled": false
        },
        "outcomes": [
            {"sku": "SKU-1", "status": "confirmed", "quantity": 50, ...},
            {"sku": "SKU-2", "status": "rejected", "reason": "out_of_stock",
             "suggestions": [...]}
        ]
    }
    """

    def format(self, result: BulkRunResult) -> Dict[str, Any]:
        """
        Format run result as JSON-serializable dictionary.

        Args:
            result: Complete run result

        Returns:
            Dictionary with summary and outcomes sections
        """
        return {
            "summary": self._format_summary(result),
            "outcomes": [self._format_outcome(outcome) for outcome in result.outcomes],
        }

    def _format_summary(self, result: BulkRunResult) -> Dict[str, Any]:
        summary = summarize(result)
        return {
            "total_items": summary.total_items,
            "successful": summary.successful_count,
            "failed": summary.failed_count,
            "partial": summary.partial_count,
            "total_quantity": summary.total_quantity_granted,
            "total_value": _money(summary.total_value),
            "success_rate": round(summary.success_rate, 4),
            "processing_time_ms": round(summary.processing_time_ms, 2),
            "failures_by_reason": summary.failures_by_reason,
            "cancelled": summary.cancelled,
        }

    def _format_outcome(self, outcome: ItemOutcome) -> Dict[str, Any]:
        if isinstance(outcome, Fulfilled):
            return {
                "sku": outcome.sku,
                "status": "confirmed",
                "quantity_requested": outcome.quantity_requested,
                "quantity": outcome.quantity_granted,
                "unit_price": _money(outcome.unit_price),
                "total_price": _money(outcome.line_total),
                "priority": outcome.priority.value,
                "batch": outcome.batch_index,
            }
        if isinstance(outcome, PartiallyFulfilled):
            return {
                "sku": outcome.sku,
                "status": "partial",
                "quantity": outcome.quantity_granted,
                "shortfall": outcome.quantity_shortfall,
                "reason": outcome.reason_text,
                "priority": outcome.priority.value,
                "batch": outcome.batch_index,
            }
        return self._format_rejected(outcome)

    def _format_rejected(self, outcome: Rejected) -> Dict[str, Any]:
        return {
            "sku": outcome.sku,
            "status": "rejected",
            "quantity_requested": outcome.quantity_requested,
            "reason": outcome.reason.value,
            "detail": outcome.detail,
            "priority": outcome.priority.value,
            "batch": outcome.batch_index,
            "suggestions": [self._format_suggestion(s) for s in outcome.suggestions],
        }

    @staticmethod
    def _format_suggestion(suggestion: AlternativeSuggestion) -> Dict[str, Any]:
        return {
            "sku": suggestion.sku,
            "name": suggestion.name,
            "similarity_score": suggestion.similarity_score,
            "availability": suggestion.availability_state.value,
            "price": _money(suggestion.price) if suggestion.price is not None else None,
            "rationale": suggestion.rationale,
        }

    def save(self, result: BulkRunResult, path: str = "out/summary.json") -> None:
        """
        Save formatted result to JSON file.

        Creates parent directories if they don't exist. Uses 2-space
        indentation for readability.
        """
        output_path = Path(path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        with open(output_path, 'w', encoding='utf-8') as f:
            json.dump(self.format(result), f, indent=2, ensure_ascii=False)
