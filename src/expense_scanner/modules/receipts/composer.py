from __future__ import annotations

from datetime import date

from expense_scanner.modules.receipts.inference import DEFAULT_CATEGORY
from expense_scanner.modules.receipts.types import (
    ParsedReceipt,
    RawDocument,
    StorageReference,
    SuggestedExpense,
)

MAX_DESCRIBED_ITEMS = 5


def _iso_or_none(value: str | None) -> str | None:
    if not value:
        return None
    try:
        return date.fromisoformat(value).isoformat()
    except ValueError:
        return None


def build_name(parsed: ParsedReceipt, *, today: date) -> str:
    if parsed.has_merchant():
        return f"{parsed.merchant_name} - {parsed.date or 'Receipt'}"
    return f"Receipt - {today.isoformat()}"


def build_description(parsed: ParsedReceipt) -> str:
    lines: list[str] = []
    if parsed.has_merchant():
        lines.append(f"Receipt from {parsed.merchant_name}")
    else:
        lines.append("Receipt expense - Please update merchant name and amount")
    if parsed.date:
        lines.append(f"Date: {parsed.date}")
    if parsed.tax_amount is not None:
        lines.append(f"Tax: ${parsed.tax_amount:.2f}")
    if parsed.subtotal is not None and (
        parsed.total_amount is None or abs(parsed.subtotal - parsed.total_amount) > 0.01
    ):
        lines.append(f"Subtotal: ${parsed.subtotal:.2f}")
    items = parsed.items or []
    for item in items[:MAX_DESCRIBED_ITEMS]:
        lines.append(f"• {item.description}: ${item.amount:.2f}")
    if len(items) > MAX_DESCRIBED_ITEMS:
        lines.append(f"+{len(items) - MAX_DESCRIBED_ITEMS} more items")
    return "\n".join(lines)


def compose_suggestion(
    *,
    parsed: ParsedReceipt,
    reference: StorageReference,
    document: RawDocument,
    tags: list[str],
    today: date | None = None,
) -> SuggestedExpense:
    today = today or date.today()
    amount = parsed.total_amount if parsed.total_amount and parsed.total_amount > 0 else 0
    payment_date = (
        _iso_or_none(parsed.payment_date) or _iso_or_none(parsed.date) or today.isoformat()
    )
    return SuggestedExpense(
        name=build_name(parsed, today=today),
        description=build_description(parsed),
        amount=amount,
        category=parsed.category or DEFAULT_CATEGORY,
        tags=list(tags),
        payment_date=payment_date,
        receipt_url=reference.url,
        receipt_s3_key=reference.key,
        receipt_file_name=document.filename,
        receipt_content_type=document.content_type,
    )
