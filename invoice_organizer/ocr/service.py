"""OCR service using Tesseract.

Production-grade OCR implementation with:
- Configurable Tesseract path via environment variables
- Configurable language packs (Chinese receipts by default)
- Type-safe results using Pydantic

Based on pytesseract documentation:
https://github.com/madmaze/pytesseract
"""

import os
import shutil

import pytesseract
from PIL import Image

from invoice_organizer.ocr.factory import OCRResult
from invoice_organizer.shared.config import Settings


class TesseractOCRService:
    """OCR service using Tesseract engine.

    Handles text extraction from rendered PDF pages and photos with proper
    error handling and configuration management.
    """

    def __init__(self, settings: Settings) -> None:
        """Initialize OCR service.

        Args:
            settings: Application settings
        """
        self.settings = settings
        self._configure_tesseract()

    def _configure_tesseract(self) -> None:
        """Configure Tesseract command path from environment.

        Allows overriding default Tesseract path via TESSERACT_CMD environment variable.
        Common paths:
        - Linux: /usr/bin/tesseract
        - macOS: /opt/homebrew/bin/tesseract or /usr/local/bin/tesseract
        - Windows: C:\\Program Files\\Tesseract-OCR\\tesseract.exe
        """
        tesseract_cmd = os.getenv("TESSERACT_CMD")
        if tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = tesseract_cmd

    def is_available(self) -> bool:
        """Check if the tesseract binary can be found.

        Returns:
            True if the configured command resolves to an executable
        """
        return shutil.which(pytesseract.pytesseract.tesseract_cmd) is not None

    def extract_text(self, image: Image.Image) -> OCRResult:
        """Extract text from an image.

        Args:
            image: Rendered page or photo

        Returns:
            OCRResult with extracted text or error information
        """
        try:
            text = pytesseract.image_to_string(image, lang=self.settings.tesseract_lang)
            return OCRResult(text=text, success=True)

        except Exception as e:
            return OCRResult(text="", success=False, error=f"OCR processing failed: {str(e)}")
