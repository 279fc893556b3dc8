from __future__ import annotations

import time
from datetime import UTC, datetime
from io import BytesIO

from expense_scanner.core.aws import aws_session, client_config
from expense_scanner.core.config import settings
from expense_scanner.core.logging import get_logger, log_event, monotonic_ms
from expense_scanner.modules.receipts.types import PLACEHOLDER_MERCHANT

logger = get_logger(__name__)


class TextDetectionError(RuntimeError):
    pass


class TextDetector:
    backend = "unknown"

    def detect_text(self, body: bytes, content_type: str) -> str:  # pragma: no cover
        raise NotImplementedError


class TextractTextDetector(TextDetector):
    backend = "textract"

    def __init__(self, client=None) -> None:
        self._client = client or aws_session().client("textract", config=client_config())

    def detect_text(self, body: bytes, content_type: str) -> str:
        try:
            response = self._client.detect_document_text(Document={"Bytes": body})
        except Exception as e:
            raise TextDetectionError(f"Textract text extraction failed: {e}") from e
        blocks = response.get("Blocks") or []
        if not blocks:
            raise TextDetectionError("No text blocks found in document")
        lines = [
            block.get("Text") or ""
            for block in blocks
            if block.get("BlockType") == "LINE"
        ]
        return "\n".join(line for line in lines if line)


class TesseractTextDetector(TextDetector):
    """Local OCR: embedded PDF text first, tesseract for images and scanned pages."""

    backend = "tesseract"

    def __init__(self, lang: str | None = None) -> None:
        self._lang = lang or settings.tesseract_lang

    def detect_text(self, body: bytes, content_type: str) -> str:
        if content_type == "application/pdf":
            return self._detect_pdf(body)
        try:
            from PIL import Image

            image = Image.open(BytesIO(body))
        except Exception as e:
            raise TextDetectionError(f"Could not open image: {e}") from e
        return self._ocr_image(image)

    def _ocr_image(self, image) -> str:
        try:
            import pytesseract
        except Exception as e:
            raise TextDetectionError("pytesseract is not available") from e
        try:
            if image.mode not in {"RGB", "L"}:
                image = image.convert("RGB")
            return pytesseract.image_to_string(image, lang=self._lang) or ""
        except Exception as e:
            raise TextDetectionError(f"Tesseract OCR failed: {e}") from e

    def _detect_pdf(self, body: bytes) -> str:
        from pypdf import PdfReader

        try:
            reader = PdfReader(BytesIO(body))
            pages = list(reader.pages)
        except Exception as e:
            raise TextDetectionError(f"Could not read PDF: {e}") from e

        out: list[str] = []
        for page in pages:
            text = (page.extract_text() or "").replace("\u202f", " ").replace("\xa0", " ")
            if not text.strip():
                image = _largest_page_image(page)
                if image is not None:
                    text = self._ocr_image(image)
            out.append(text)
        return "\n".join(out)


def _largest_page_image(page):
    try:
        page_images = list(page.images)
    except Exception:
        return None

    best_image = None
    best_area = 0
    for image_file in page_images:
        try:
            image = image_file.image
            area = image.width * image.height
        except Exception:
            continue
        if area > best_area:
            best_area = area
            best_image = image
    return best_image


_text_detector: TextDetector | None = None


def get_text_detector() -> TextDetector:
    global _text_detector  # noqa: PLW0603
    if _text_detector is not None:
        return _text_detector

    if settings.ocr_backend == "tesseract":
        _text_detector = TesseractTextDetector()
    else:
        _text_detector = TextractTextDetector()
    return _text_detector


def split_lines(text: str) -> list[str]:
    return [ln.strip() for ln in (text or "").splitlines() if ln.strip()]


def placeholder_document(*, content_type: str, byte_size: int, error: str) -> list[str]:
    """Receipt-shaped stand-in used when OCR is unavailable.

    None of its lines satisfy the parsing rules: the header is not
    merchant-shaped, the timestamp is not in a date-rule format and the money
    prompts carry no digits.
    """
    scanned = datetime.now(UTC).strftime("%d %b %Y %H:%M:%S UTC")
    text = "\n".join(
        [
            "** RECEIPT - TEXT EXTRACTION UNAVAILABLE **",
            f"File type: {content_type}",
            f"Size: {byte_size} bytes ({round(byte_size / 1024)} KB)",
            f"Scanned: {scanned}",
            "NOTICE: Automatic text extraction (OCR) is not available.",
            "Please manually verify and enter the following:",
            f"Merchant Name: {PLACEHOLDER_MERCHANT}",
            "Date: [Please enter receipt date]",
            "Amount: $[Please enter total amount]",
            "Tax: $[Please enter tax if applicable]",
            f"Error: {error or 'Unknown error'}",
            "The receipt has been uploaded and is available for your records.",
        ]
    )
    return split_lines(text)


def extract_text(detector: TextDetector, body: bytes, content_type: str) -> list[str]:
    start = time.monotonic()
    try:
        lines = split_lines(detector.detect_text(body, content_type))
        if not lines:
            raise TextDetectionError("No text found in document")
    except Exception as e:  # noqa: BLE001
        log_event(
            logger,
            "receipt.ocr.fallback",
            backend=detector.backend,
            content_type=content_type,
            byte_size=len(body),
            error_type=type(e).__name__,
            error=str(e),
            duration_ms=monotonic_ms(start),
        )
        return placeholder_document(content_type=content_type, byte_size=len(body), error=str(e))
    log_event(
        logger,
        "receipt.ocr.success",
        backend=detector.backend,
        content_type=content_type,
        line_count=len(lines),
        duration_ms=monotonic_ms(start),
    )
    return lines
