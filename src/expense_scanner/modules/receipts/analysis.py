from __future__ import annotations

import re
import time
from dataclasses import dataclass, field

from expense_scanner.core.aws import aws_session, client_config
from expense_scanner.core.config import settings
from expense_scanner.core.logging import get_logger, log_event, monotonic_ms
from expense_scanner.modules.receipts.parser import parse_date_text
from expense_scanner.modules.receipts.types import LineItem, ParsedReceipt

logger = get_logger(__name__)

_MERCHANT_TYPES = {"vendor_name", "merchant_name"}
_TOTAL_TYPES = {"total", "amount_paid"}
_DATE_TYPES = {"date", "invoice_receipt_date"}
_TAX_TYPES = {"tax", "total_tax"}
_SUBTOTAL_TYPES = {"subtotal"}
_ITEM_DESCRIPTION_TYPES = {"item", "description"}
_ITEM_AMOUNT_TYPES = {"price", "amount"}


class ExpenseAnalysisError(RuntimeError):
    pass


class ExpenseAnalysisUnavailable(ExpenseAnalysisError):
    pass


@dataclass
class ExpenseFields:
    """Named fields of one expense document, in service order.

    ``summary`` holds ``(type, value)`` pairs; each entry of ``line_items`` is
    the field list of one line item.
    """

    summary: list[tuple[str, str]] = field(default_factory=list)
    line_items: list[list[tuple[str, str]]] = field(default_factory=list)


class ExpenseAnalyzer:
    backend = "unknown"

    def analyze_expense(self, body: bytes) -> ExpenseFields:  # pragma: no cover
        raise NotImplementedError


class DisabledExpenseAnalyzer(ExpenseAnalyzer):
    backend = "disabled"

    def analyze_expense(self, body: bytes) -> ExpenseFields:
        raise ExpenseAnalysisUnavailable("Structured expense extraction is disabled")


def _textract_pairs(fields: list[dict] | None) -> list[tuple[str, str]]:
    out: list[tuple[str, str]] = []
    for f in fields or []:
        type_text = ((f.get("Type") or {}).get("Text") or "").strip().lower()
        value_text = ((f.get("ValueDetection") or {}).get("Text") or "").strip()
        if not type_text or not value_text:
            continue
        out.append((type_text, value_text))
    return out


class TextractExpenseAnalyzer(ExpenseAnalyzer):
    backend = "textract"

    def __init__(self, client=None) -> None:
        self._client = client or aws_session().client("textract", config=client_config())

    def analyze_expense(self, body: bytes) -> ExpenseFields:
        try:
            response = self._client.analyze_expense(Document={"Bytes": body})
        except Exception as e:
            raise ExpenseAnalysisError(f"Textract expense analysis failed: {e}") from e

        documents = response.get("ExpenseDocuments") or []
        if not documents:
            raise ExpenseAnalysisError("No expense data found in document")

        doc = documents[0]
        line_items: list[list[tuple[str, str]]] = []
        for group in doc.get("LineItemGroups") or []:
            for item in group.get("LineItems") or []:
                line_items.append(_textract_pairs(item.get("LineItemExpenseFields")))
        return ExpenseFields(
            summary=_textract_pairs(doc.get("SummaryFields")), line_items=line_items
        )


_expense_analyzer: ExpenseAnalyzer | None = None


def get_expense_analyzer() -> ExpenseAnalyzer:
    global _expense_analyzer  # noqa: PLW0603
    if _expense_analyzer is not None:
        return _expense_analyzer

    if settings.expense_analysis_backend == "textract":
        _expense_analyzer = TextractExpenseAnalyzer()
    else:
        _expense_analyzer = DisabledExpenseAnalyzer()
    return _expense_analyzer


def parse_money(raw: str | None) -> float | None:
    s = re.sub(r"[^0-9.]", "", raw or "")
    if not s:
        return None
    try:
        return float(s)
    except ValueError:
        return None


def fields_to_receipt(fields: ExpenseFields) -> ParsedReceipt:
    merchant: str | None = None
    total: float | None = None
    raw_date: str | None = None
    tax: float | None = None
    subtotal: float | None = None

    # Later fields of the same kind override earlier ones.
    for type_text, value in fields.summary:
        if type_text in _MERCHANT_TYPES:
            merchant = value
        elif type_text in _TOTAL_TYPES:
            total = parse_money(value)
        elif type_text in _DATE_TYPES:
            raw_date = value
        elif type_text in _TAX_TYPES:
            tax = parse_money(value)
        elif type_text in _SUBTOTAL_TYPES:
            subtotal = parse_money(value)

    parsed = ParsedReceipt()
    if merchant and merchant.strip():
        parsed.merchant_name = merchant.strip()
    if total is not None and total > 0:
        parsed.total_amount = total
    if raw_date and raw_date.strip():
        # Keep what the service read when we cannot normalise it.
        parsed.date = parse_date_text(raw_date) or raw_date.strip()
    if tax is not None and tax > 0:
        parsed.tax_amount = tax
    if subtotal is not None and subtotal > 0:
        parsed.subtotal = subtotal

    items: list[LineItem] = []
    for item_fields in fields.line_items:
        description = ""
        amount = 0.0
        for type_text, value in item_fields:
            if type_text in _ITEM_DESCRIPTION_TYPES:
                description = value
            elif type_text in _ITEM_AMOUNT_TYPES:
                amount = parse_money(value) or 0.0
        if description or amount > 0:
            items.append(LineItem(description=description, amount=amount, quantity=1))
    if items:
        parsed.items = items
    return parsed


def analyze_expense(analyzer: ExpenseAnalyzer, body: bytes) -> ParsedReceipt:
    """Structured extraction; raises so the caller can fall back to OCR parsing."""
    start = time.monotonic()
    fields = analyzer.analyze_expense(body)
    parsed = fields_to_receipt(fields)
    log_event(
        logger,
        "receipt.analysis.success",
        backend=analyzer.backend,
        summary_field_count=len(fields.summary),
        line_item_count=len(parsed.items or []),
        duration_ms=monotonic_ms(start),
    )
    return parsed
