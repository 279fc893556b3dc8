from __future__ import annotations

from dataclasses import asdict

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from expense_scanner.modules.receipts.types import ScanResult


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class UploadOut(CamelModel):
    key: str
    url: str
    size: int
    file_name: str
    content_type: str
    uploaded: bool
    storage_type: str


class LineItemOut(CamelModel):
    description: str
    amount: float
    quantity: int = 1


class ParsedDataOut(CamelModel):
    merchant_name: str | None = None
    total_amount: float | None = None
    date: str | None = None
    tax_amount: float | None = None
    subtotal: float | None = None
    category: str | None = None
    payment_date: str | None = None
    items: list[LineItemOut] | None = None


class SuggestedExpenseOut(CamelModel):
    name: str
    description: str
    amount: float
    category: str
    expense_type: str
    payment_date: str
    receipt_url: str
    receipt_s3_key: str
    receipt_file_name: str
    receipt_content_type: str
    tags: list[str]


class ScanReceiptOut(CamelModel):
    success: bool = True
    upload: UploadOut
    warning: str | None = None
    extracted_text: str
    parsed_data: ParsedDataOut
    suggested_expense: SuggestedExpenseOut

    @classmethod
    def from_result(cls, result: ScanResult) -> ScanReceiptOut:
        reference = result.reference
        return cls(
            upload=UploadOut(
                key=reference.key,
                url=reference.url,
                size=reference.size,
                file_name=result.document.filename,
                content_type=result.document.content_type,
                uploaded=not reference.degraded,
                storage_type=reference.storage_type,
            ),
            warning=result.warning,
            extracted_text="\n".join(result.extracted_text),
            parsed_data=ParsedDataOut.model_validate(result.parsed.to_dict()),
            suggested_expense=SuggestedExpenseOut.model_validate(asdict(result.suggestion)),
        )


class UploadReceiptOut(CamelModel):
    success: bool = True
    key: str
    url: str
    size: int
    file_name: str
    content_type: str


class SignedUrlOut(CamelModel):
    key: str
    url: str
    expires_in: int
