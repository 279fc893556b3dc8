from __future__ import annotations

import pytest

from expense_scanner.modules.receipts.analysis import (
    DisabledExpenseAnalyzer,
    ExpenseAnalysisError,
    ExpenseAnalysisUnavailable,
    ExpenseFields,
    TextractExpenseAnalyzer,
    analyze_expense,
    fields_to_receipt,
)
from expense_scanner.modules.receipts.types import LineItem


def _field(type_text: str, value: str) -> dict:
    return {"Type": {"Text": type_text.upper()}, "ValueDetection": {"Text": value}}


class _Textract:
    def __init__(self, response: dict | None = None, error: Exception | None = None) -> None:
        self._response = response
        self._error = error
        self.calls: list[bytes] = []

    def analyze_expense(self, *, Document: dict) -> dict:  # noqa: N803
        self.calls.append(Document["Bytes"])
        if self._error is not None:
            raise self._error
        return self._response or {}


def test_fields_map_onto_receipt():
    fields = ExpenseFields(
        summary=[
            ("vendor_name", "Blue Bottle Coffee"),
            ("total", "$12.50"),
            ("invoice_receipt_date", "03/04/2024"),
            ("tax", "$1.00"),
            ("subtotal", "$11.50"),
        ],
        line_items=[
            [("item", "Latte"), ("price", "$5.25")],
            [("item", "Scone"), ("price", "$3.75")],
            [],
        ],
    )

    parsed = fields_to_receipt(fields)

    assert parsed.merchant_name == "Blue Bottle Coffee"
    assert parsed.total_amount == pytest.approx(12.5)
    assert parsed.date == "2024-03-04"
    assert parsed.tax_amount == pytest.approx(1.0)
    assert parsed.subtotal == pytest.approx(11.5)
    assert parsed.items == [
        LineItem(description="Latte", amount=5.25, quantity=1),
        LineItem(description="Scone", amount=3.75, quantity=1),
    ]
    # Category is left to inference.
    assert parsed.category is None


def test_zero_amounts_dropped_and_raw_date_kept():
    fields = ExpenseFields(
        summary=[
            ("merchant_name", "  "),
            ("amount_paid", "0.00"),
            ("date", "sometime last week"),
            ("total_tax", "$0"),
        ]
    )

    parsed = fields_to_receipt(fields)

    assert parsed.to_dict() == {"date": "sometime last week"}


def test_later_fields_of_same_kind_win():
    fields = ExpenseFields(summary=[("total", "10.00"), ("amount_paid", "11.00")])
    assert fields_to_receipt(fields).total_amount == pytest.approx(11.0)


def test_textract_analyzer_normalises_response():
    client = _Textract(
        {
            "ExpenseDocuments": [
                {
                    "SummaryFields": [
                        _field("vendor_name", "Corner Deli"),
                        _field("total", "$8.40"),
                        {"Type": {"Text": "OTHER"}},
                    ],
                    "LineItemGroups": [
                        {
                            "LineItems": [
                                {
                                    "LineItemExpenseFields": [
                                        _field("item", "Bagel"),
                                        _field("price", "2.40"),
                                    ]
                                }
                            ]
                        }
                    ],
                }
            ]
        }
    )

    parsed = analyze_expense(TextractExpenseAnalyzer(client=client), b"image-bytes")

    assert client.calls == [b"image-bytes"]
    assert parsed.merchant_name == "Corner Deli"
    assert parsed.total_amount == pytest.approx(8.4)
    assert parsed.items == [LineItem(description="Bagel", amount=2.4)]


def test_textract_analyzer_raises_without_expense_documents():
    analyzer = TextractExpenseAnalyzer(client=_Textract({"ExpenseDocuments": []}))
    with pytest.raises(ExpenseAnalysisError, match="No expense data"):
        analyze_expense(analyzer, b"x")


def test_textract_analyzer_wraps_client_errors():
    analyzer = TextractExpenseAnalyzer(client=_Textract(error=RuntimeError("throttled")))
    with pytest.raises(ExpenseAnalysisError, match="throttled"):
        analyzer.analyze_expense(b"x")


def test_disabled_analyzer_is_unavailable():
    with pytest.raises(ExpenseAnalysisUnavailable):
        analyze_expense(DisabledExpenseAnalyzer(), b"x")
