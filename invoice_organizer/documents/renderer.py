"""PDF rendering and text-layer reading using PyMuPDF.

Provides the three document operations the extraction pipeline needs:
- render every page to a raster (input for OCR)
- render only the first page to PNG bytes (input for vision models)
- read the embedded text layer without any recognition pass

Based on PyMuPDF documentation:
https://pymupdf.readthedocs.io/
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager

import fitz  # PyMuPDF
from PIL import Image

from invoice_organizer.shared.config import Settings
from invoice_organizer.shared.errors import UnsupportedFormatError

logger = logging.getLogger(__name__)


class PDFRenderer:
    """Renders PDF bytes to images and reads their text layer."""

    def __init__(self, settings: Settings) -> None:
        """Initialize renderer.

        Args:
            settings: Application settings (uses pdf_render_scale)
        """
        self.settings = settings

    @contextmanager
    def _open(self, document: bytes) -> Iterator[fitz.Document]:
        """Open PDF bytes, mapping parser failures to UnsupportedFormatError."""
        try:
            doc = fitz.open(stream=document, filetype="pdf")
        except (RuntimeError, ValueError) as e:
            raise UnsupportedFormatError(f"Unable to open PDF: {e}") from e
        try:
            yield doc
        finally:
            doc.close()

    def _matrix(self) -> fitz.Matrix:
        scale = self.settings.pdf_render_scale
        return fitz.Matrix(scale, scale)

    def render_pages(self, document: bytes) -> list[Image.Image]:
        """Render every page at the configured upscale factor.

        Args:
            document: PDF file content

        Returns:
            One RGB image per page, in page order

        Raises:
            UnsupportedFormatError: If the bytes are not a readable PDF
        """
        images: list[Image.Image] = []
        with self._open(document) as doc:
            matrix = self._matrix()
            for page in doc:
                pix = page.get_pixmap(matrix=matrix, alpha=False)
                images.append(Image.frombytes("RGB", (pix.width, pix.height), pix.samples))
        logger.debug(f"Rendered {len(images)} PDF page(s) for OCR")
        return images

    def render_first_page(self, document: bytes) -> bytes:
        """Render only the first page to PNG bytes.

        Args:
            document: PDF file content

        Returns:
            PNG-encoded raster of page 1

        Raises:
            UnsupportedFormatError: If the bytes are not a readable PDF or have no pages
        """
        with self._open(document) as doc:
            if doc.page_count == 0:
                raise UnsupportedFormatError("PDF has no pages")
            pix = doc[0].get_pixmap(matrix=self._matrix(), alpha=False)
            return pix.tobytes("png")

    def extract_text_layer(self, document: bytes) -> str:
        """Read embedded text tokens without OCR.

        Words of a page are joined with spaces and pages with newlines.
        Scanned (image-only) PDFs yield an empty string.

        Args:
            document: PDF file content

        Returns:
            Stripped text of the whole document

        Raises:
            UnsupportedFormatError: If the bytes are not a readable PDF
        """
        pages: list[str] = []
        with self._open(document) as doc:
            for page in doc:
                # word tuples: (x0, y0, x1, y1, word, block_no, line_no, word_no)
                words = page.get_text("words")
                pages.append(" ".join(word[4] for word in words))
        return "\n".join(pages).strip()

