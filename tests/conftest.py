from __future__ import annotations

import os
import random
import shutil
from pathlib import Path

import pytest

# Set env before any expense_scanner imports (settings/engine are created at import time).
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite:///./.expense_scanner_test.db")
os.environ.setdefault("STORAGE_BACKEND", "local")
os.environ.setdefault("LOCAL_STORAGE_PATH", ".tmp_storage_test")
os.environ.setdefault("OCR_BACKEND", "tesseract")
os.environ.setdefault("EXPENSE_ANALYSIS_BACKEND", "disabled")

# Stand-ins for OCR output, each with the fields the heuristic parser should find.
CANNED_RECEIPTS: tuple[dict, ...] = (
    {
        "lines": [
            "STARBUCKS COFFEE",
            "Store 1042",
            "Seattle WA",
            "Date: 03/14/2024",
            "Grande Latte 5.45",
            "Blueberry Muffin 3.25",
            "Subtotal 8.70",
            "Tax 0.78",
            "Total $9.48",
        ],
        "merchant_name": "STARBUCKS COFFEE",
        "total_amount": 9.48,
        "date": "2024-03-14",
        "tax_amount": 0.78,
    },
    {
        "lines": [
            "SHELL",
            "Station 4471",
            "01-22-2024",
            "Unleaded 12.500 gal",
            "Fuel Total $45.12",
            "Amount Due $45.12",
        ],
        "merchant_name": "SHELL",
        "total_amount": 45.12,
        "date": "2024-01-22",
        "tax_amount": None,
    },
    {
        "lines": [
            "Luigi Pizza Kitchen",
            "Order 88",
            "Jan 9, 2024",
            "Margherita 14.00",
            "Soda 2.50",
            "Subtotal 16.50",
            "HST 13% 2.15",
            "Grand Total 18.65",
        ],
        "merchant_name": "Luigi Pizza Kitchen",
        "total_amount": 18.65,
        "date": "2024-01-09",
        "tax_amount": 2.15,
    },
    {
        "lines": [
            "WALMART SUPERCENTER",
            "2024-02-29",
            "Paper Towels 11.97",
            "Detergent 13.47",
            "SUBTOTAL 25.44",
            "TAX 1.65",
            "TOTAL 27.09",
        ],
        "merchant_name": "WALMART SUPERCENTER",
        "total_amount": 27.09,
        "date": "2024-02-29",
        "tax_amount": 1.65,
    },
)


@pytest.fixture
def canned_receipt():
    """Pick a canned receipt deterministically from a seed."""

    def _pick(seed: int) -> dict:
        return random.Random(seed).choice(CANNED_RECEIPTS)

    return _pick


@pytest.fixture(autouse=True)
def _reset_db_and_storage() -> None:
    import expense_scanner.models  # noqa: F401
    from expense_scanner.core.db import engine
    from expense_scanner.core.models import Base

    # Reset cached collaborators and the storage directory
    import expense_scanner.core.storage as storage_mod
    import expense_scanner.modules.receipts.analysis as analysis_mod
    import expense_scanner.modules.receipts.ocr as ocr_mod

    storage_mod._storage = None
    ocr_mod._text_detector = None
    analysis_mod._expense_analyzer = None

    storage_path = Path(os.environ["LOCAL_STORAGE_PATH"])
    if storage_path.exists():
        shutil.rmtree(storage_path)

    # Reset DB schema
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)

    yield

    from expense_scanner.main import app

    app.dependency_overrides.clear()


@pytest.fixture
def user_token():
    """Create a user and return ``(user_id, bearer headers)``."""
    from expense_scanner.core.db import SessionLocal
    from expense_scanner.core.security import create_access_token
    from expense_scanner.modules.identity.service import create_user

    def _make(email: str = "alice@example.com") -> tuple[str, dict[str, str]]:
        with SessionLocal() as session:
            user = create_user(session, email=email, password="secret123", full_name="Alice")
            token = create_access_token(subject=str(user.id))
            return str(user.id), {"Authorization": f"Bearer {token}"}

    return _make
