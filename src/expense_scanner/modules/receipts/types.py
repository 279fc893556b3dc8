from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

ALLOWED_CONTENT_TYPES: tuple[str, ...] = (
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
    "application/pdf",
)

# Merchant prompt used by the OCR placeholder document; never a real merchant.
PLACEHOLDER_MERCHANT = "[Please enter merchant name]"


@dataclass(frozen=True)
class RawDocument:
    body: bytes
    content_type: str
    filename: str

    @property
    def size(self) -> int:
        return len(self.body)


@dataclass(frozen=True)
class StorageReference:
    key: str
    url: str
    size: int
    degraded: bool = False

    @property
    def storage_type(self) -> str:
        return "local_fallback" if self.degraded else "s3"


@dataclass
class LineItem:
    description: str
    amount: float
    quantity: int = 1


@dataclass
class ParsedReceipt:
    merchant_name: str | None = None
    total_amount: float | None = None
    date: str | None = None
    tax_amount: float | None = None
    subtotal: float | None = None
    category: str | None = None
    payment_date: str | None = None
    items: list[LineItem] | None = None

    def has_merchant(self) -> bool:
        name = (self.merchant_name or "").strip()
        return bool(name) and name != PLACEHOLDER_MERCHANT

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass
class SuggestedExpense:
    name: str
    description: str
    amount: float
    category: str
    payment_date: str
    receipt_url: str
    receipt_s3_key: str
    receipt_file_name: str
    receipt_content_type: str
    tags: list[str] = field(default_factory=list)
    expense_type: str = "business"


@dataclass
class ScanResult:
    document: RawDocument
    reference: StorageReference
    extracted_text: list[str]
    parsed: ParsedReceipt
    suggestion: SuggestedExpense
    extraction_method: str

    @property
    def warning(self) -> str | None:
        if self.reference.degraded:
            return "Receipt processed locally due to storage service issue"
        return None
