"""Test doubles and document builders shared by the unit tests."""

import io
from collections.abc import Callable

import fitz  # PyMuPDF
from PIL import Image

from invoice_organizer.extraction.base import StructuringProvider
from invoice_organizer.ocr.factory import OCRResult
from invoice_organizer.shared.config import Settings
from invoice_organizer.state.models import LLMConfig

HOTEL_RESPONSE = (
    '{"type": "accommodation", "amount": 100, "date": "2024-03-15", "description": "hotel"}'
)
TRAIN_RESPONSE = (
    '{"type": "intercity_transport", "amount": 553.5, "date": "2024-03-14", '
    '"description": "Beijing-Shanghai train"}'
)


class FakeStructuringProvider(StructuringProvider):
    """Provider returning canned answers and recording every call.

    ``text_response`` / ``image_response`` may be a string or an exception
    instance to raise. ``on_call`` runs before answering.
    """

    def __init__(self, settings: Settings) -> None:
        super().__init__(settings)
        self.text_response: str | Exception = HOTEL_RESPONSE
        self.image_response: str | Exception = HOTEL_RESPONSE
        self.on_call: Callable[[], None] | None = None
        self.text_calls: list[str] = []
        self.image_calls: list[tuple[str, str]] = []

    @property
    def provider_name(self) -> str:
        return "fake"

    def _answer(self, response: str | Exception) -> str:
        if self.on_call is not None:
            self.on_call()
        if isinstance(response, Exception):
            raise response
        return response

    def structure_text(self, text: str, config: LLMConfig) -> str:
        self.text_calls.append(text)
        return self._answer(self.text_response)

    def structure_image(self, image_base64: str, media_type: str, config: LLMConfig) -> str:
        self.image_calls.append((image_base64, media_type))
        return self._answer(self.image_response)


class FakeOCRService:
    """OCR stand-in returning one canned result per page."""

    def __init__(self) -> None:
        self.results: list[OCRResult] = []
        self.calls = 0

    def extract_text(self, image: Image.Image) -> OCRResult:
        if self.calls < len(self.results):
            result = self.results[self.calls]
        else:
            result = OCRResult(text="", success=True)
        self.calls += 1
        return result

    def is_available(self) -> bool:
        return True


def make_pdf(*pages: str) -> bytes:
    """Build a PDF with one page per string (empty string = blank page)."""
    doc = fitz.open()
    for text in pages:
        page = doc.new_page()
        if text:
            page.insert_text((72, 72), text)
    data = doc.tobytes()
    doc.close()
    return data


def make_png(width: int = 120, height: int = 60) -> bytes:
    """Build a small white PNG."""
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color="white").save(buffer, format="PNG")
    return buffer.getvalue()
