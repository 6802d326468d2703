"""PaddleOCR service for GPU-accelerated text extraction.

PaddleOCR ships strong Chinese recognition models, which suits train
tickets, taxi receipts and hotel invoices better than stock Tesseract.

- GPU acceleration support (optional)
- Lazy model loading for faster startup

Based on PaddleOCR v3.x:
https://github.com/PaddlePaddle/PaddleOCR
"""

import logging
import os

import numpy as np
from PIL import Image

from invoice_organizer.ocr.factory import OCRResult
from invoice_organizer.shared.config import Settings

logger = logging.getLogger(__name__)


class PaddleOCRService:
    """OCR service using PaddleOCR engine.

    Handles text extraction from images with GPU acceleration support
    and lazy model loading.
    """

    def __init__(self, settings: Settings) -> None:
        """Initialize PaddleOCR service.

        Args:
            settings: Application settings
        """
        self.settings = settings
        self._ocr: object | None = None  # Lazy loading (PaddleOCR instance)
        self._configure_environment()

    def _configure_environment(self) -> None:
        """Configure environment for PaddleOCR.

        Disables model source check for faster startup.
        """
        os.environ.setdefault("DISABLE_MODEL_SOURCE_CHECK", "True")

    def _get_ocr(self) -> object:
        """Get or initialize PaddleOCR instance (lazy loading).

        Returns:
            Initialized PaddleOCR instance
        """
        if self._ocr is None:
            try:
                from paddleocr import PaddleOCR

                logger.info("Initializing PaddleOCR engine...")
                self._ocr = PaddleOCR(lang=self.settings.paddleocr_lang)
                logger.info("PaddleOCR initialized successfully")
            except ImportError as e:
                raise ImportError(
                    "PaddleOCR not installed. Install with: " "pip install paddlepaddle paddleocr"
                ) from e
        return self._ocr

    def is_available(self) -> bool:
        """Check if PaddleOCR is available.

        Returns:
            True if PaddleOCR can be imported
        """
        try:
            from paddleocr import PaddleOCR  # noqa: F401

            return True
        except ImportError:
            return False

    def extract_text(self, image: Image.Image) -> OCRResult:
        """Extract text from an image using PaddleOCR.

        Args:
            image: Rendered page or photo

        Returns:
            OCRResult with extracted text or error information
        """
        try:
            ocr = self._get_ocr()

            # PaddleOCR expects BGR arrays
            array = np.asarray(image.convert("RGB"))[:, :, ::-1]
            result = ocr.ocr(array)  # type: ignore[attr-defined]

            if not result or not result[0]:
                return OCRResult(text="", success=True, confidence=0.0)

            ocr_result = result[0]
            texts = ocr_result.get("rec_texts", [])
            scores = ocr_result.get("rec_scores", [])

            # One recognized line per row keeps the receipt layout readable
            full_text = "\n".join(texts)
            avg_confidence = sum(scores) / len(scores) if scores else 0.0

            return OCRResult(text=full_text, success=True, confidence=avg_confidence)

        except Exception as e:
            logger.error(f"PaddleOCR processing failed: {e}")
            return OCRResult(text="", success=False, error=f"OCR processing failed: {str(e)}")
