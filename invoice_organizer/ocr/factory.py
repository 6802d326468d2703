"""OCR result type, engine protocol and engine selection.

Engines receive in-memory ``PIL.Image`` pages (rendered PDF pages or photos)
and report through ``OCRResult`` instead of raising, so the pipeline decides
what a failed or doubtful page means for the invoice.
"""

import logging
from collections.abc import Callable
from typing import Protocol

from PIL import Image
from pydantic import BaseModel

from invoice_organizer.shared.config import Settings

logger = logging.getLogger(__name__)


class OCRResult(BaseModel):
    """Text recognized on one page image.

    Attributes:
        text: Recognized text
        success: Whether recognition ran
        error: Error message if recognition failed
        confidence: Mean recognition score (0-1); None when the engine reports none
    """

    text: str
    success: bool
    error: str | None = None
    confidence: float | None = None

    def is_low_confidence(self, threshold: float) -> bool:
        """Return True when text was recognized but scored below ``threshold``."""
        if self.confidence is None or not self.text.strip():
            return False
        return self.confidence < threshold


class OCRService(Protocol):
    """Protocol for OCR engines."""

    def extract_text(self, image: Image.Image) -> OCRResult:
        """Recognize the text of one page image."""
        ...

    def is_available(self) -> bool:
        """Check whether the engine can run in this process."""
        ...


def _tesseract(settings: Settings) -> OCRService:
    from invoice_organizer.ocr.service import TesseractOCRService

    return TesseractOCRService(settings)


def _paddleocr(settings: Settings) -> OCRService:
    from invoice_organizer.ocr.paddle_service import PaddleOCRService

    service = PaddleOCRService(settings)
    if not service.is_available():
        # Surfaces again as a failed page once a scanned PDF is recognized
        logger.warning("PaddleOCR is not installed; install the 'paddle' extra to use it")
    return service


OCR_ENGINES: dict[str, Callable[[Settings], OCRService]] = {
    "tesseract": _tesseract,
    "paddleocr": _paddleocr,
}


def create_ocr_service(settings: Settings) -> OCRService:
    """Build the OCR engine named by ``settings.ocr_provider``.

    Raises:
        ValueError: If the provider name is unknown
    """
    provider = settings.ocr_provider
    build = OCR_ENGINES.get(provider)
    if build is None:
        raise ValueError(
            f"Unknown OCR provider: '{provider}'. Available: {', '.join(OCR_ENGINES)}"
        )

    service = build(settings)
    logger.info(f"Created OCR service: {provider}")
    return service
