"""Pipeline input variants.

An upload is turned into exactly one of:

- ``ImageSource``: a raster payload for a vision model. When the raster was
  rendered from a PDF, ``document`` keeps the PDF so text extraction can
  take over if the image request fails.
- ``TextSource``: a PDF whose text is read (text layer and/or OCR) and sent
  as plain text.
"""

import base64
from dataclasses import dataclass

from invoice_organizer.documents.classifier import image_media_type, is_pdf
from invoice_organizer.documents.renderer import PDFRenderer
from invoice_organizer.shared.config import Settings
from invoice_organizer.shared.errors import UnsupportedFormatError
from invoice_organizer.state.models import InvoiceRecord


@dataclass(frozen=True)
class ImageSource:
    """Raster payload to send to a vision-capable model."""

    data: bytes
    media_type: str
    document: bytes | None = None

    @property
    def base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")


@dataclass(frozen=True)
class TextSource:
    """PDF to be read as text."""

    document: bytes


Source = ImageSource | TextSource


def build_source(record: InvoiceRecord, settings: Settings, renderer: PDFRenderer) -> Source:
    """Choose the pipeline input for an invoice record.

    Args:
        record: Invoice with its in-memory source bytes
        settings: Application settings (uses vision_enabled)
        renderer: PDF renderer used for the first-page raster

    Returns:
        ImageSource or TextSource

    Raises:
        UnsupportedFormatError: If the source bytes are gone (e.g. after a restart)
            or an image upload cannot be sent because vision is disabled
    """
    if not record.source:
        raise UnsupportedFormatError(
            f"No file content available for {record.file_name}; upload it again"
        )

    if is_pdf(record.file_name, record.content_type):
        if settings.vision_enabled:
            page = renderer.render_first_page(record.source)
            return ImageSource(data=page, media_type="image/png", document=record.source)
        return TextSource(document=record.source)

    if not settings.vision_enabled:
        raise UnsupportedFormatError(
            f"{record.file_name} is an image but image structuring is disabled; upload a PDF"
        )
    return ImageSource(
        data=record.source,
        media_type=image_media_type(record.file_name, record.content_type),
    )
