from __future__ import annotations

import base64
import time
from datetime import UTC, datetime
from urllib.parse import quote

from expense_scanner.core.config import settings
from expense_scanner.core.logging import get_logger, log_event, monotonic_ms
from expense_scanner.core.storage import ObjectStorage
from expense_scanner.modules.receipts.types import StorageReference

logger = get_logger(__name__)


def sanitize_filename(name: str) -> str:
    # Strip any path components and normalize whitespace.
    name = (name or "").replace("\\", "/").split("/")[-1].strip()
    return " ".join(name.split()) or "receipt"


def receipt_key_prefix(owner_id: str) -> str:
    return f"receipts/{owner_id}/"


def receipt_key(*, owner_id: str, filename: str) -> str:
    epoch_ms = time.time_ns() // 1_000_000
    return f"{receipt_key_prefix(owner_id)}{epoch_ms}-{sanitize_filename(filename)}"


def data_uri(body: bytes, content_type: str) -> str:
    return f"data:{content_type};base64,{base64.b64encode(body).decode('ascii')}"


def upload_receipt(
    storage: ObjectStorage,
    *,
    body: bytes,
    filename: str,
    content_type: str,
    owner_id: str,
    key: str | None = None,
) -> StorageReference:
    """Store the receipt and sign a retrieval URL; storage errors propagate."""
    key = key or receipt_key(owner_id=owner_id, filename=filename)
    metadata = {
        "userId": owner_id,
        "originalName": quote(filename or "", safe=""),
        "uploadedAt": datetime.now(UTC).isoformat(),
    }
    stored = storage.put(key=key, body=body, content_type=content_type, metadata=metadata)
    url = storage.signed_url(key=stored.key, expires_seconds=settings.receipt_url_ttl_seconds)
    return StorageReference(key=stored.key, url=url, size=stored.byte_size)


def store_receipt(
    storage: ObjectStorage,
    *,
    body: bytes,
    filename: str,
    content_type: str,
    owner_id: str,
) -> StorageReference:
    """Like ``upload_receipt`` but never raises.

    When the object store is unreachable the bytes travel back inline as a
    ``data:`` URI and the reference is marked degraded.
    """
    start = time.monotonic()
    key = receipt_key(owner_id=owner_id, filename=filename)
    try:
        return upload_receipt(
            storage,
            body=body,
            filename=filename,
            content_type=content_type,
            owner_id=owner_id,
            key=key,
        )
    except Exception as e:  # noqa: BLE001
        log_event(
            logger,
            "receipt.storage.fallback",
            backend=storage.backend,
            storage_key=key,
            byte_size=len(body),
            error_type=type(e).__name__,
            error=str(e),
            duration_ms=monotonic_ms(start),
        )
        return StorageReference(
            key=key,
            url=data_uri(body, content_type),
            size=len(body),
            degraded=True,
        )
