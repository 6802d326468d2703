"""Extraction pipeline: uploaded receipt in, structured invoice fields out.

``run`` is the stateless core: it consumes an ``ImageSource`` or a
``TextSource`` and applies the single fallback rule (a failed image request
for a PDF continues with the PDF's text). ``process`` wraps it with the
invoice status machine on ``AppState``:

    pending -> in_progress -> success | error
    error   -> in_progress               (retry)
    success -> in_progress               (re-parse)

Each call is one attempt; there is no automatic retry.
"""

import logging

from invoice_organizer.documents.renderer import PDFRenderer
from invoice_organizer.extraction.base import StructuringProvider
from invoice_organizer.extraction.parser import parse_structured_response
from invoice_organizer.extraction.schema import InvoiceFields
from invoice_organizer.extraction.sources import ImageSource, Source, TextSource, build_source
from invoice_organizer.ocr.factory import OCRService
from invoice_organizer.shared.config import Settings
from invoice_organizer.shared.errors import (
    ConfigurationMissingError,
    ExtractionEmptyError,
    InvoiceProcessingError,
    RecordNotFoundError,
)
from invoice_organizer.state.app_state import AppState
from invoice_organizer.state.models import InvoiceRecord, LLMConfig

logger = logging.getLogger(__name__)


class ExtractionPipeline:
    """Orchestrates text/image extraction, structuring and parsing."""

    def __init__(
        self,
        settings: Settings,
        provider: StructuringProvider,
        ocr_service: OCRService,
        renderer: PDFRenderer | None = None,
    ) -> None:
        """Initialize pipeline.

        Args:
            settings: Application settings
            provider: Structuring provider used for text and image requests
            ocr_service: OCR engine used for rendered PDF pages
            renderer: PDF renderer (created from settings when omitted)
        """
        self.settings = settings
        self.provider = provider
        self.ocr_service = ocr_service
        self.renderer = renderer or PDFRenderer(settings)

    def process(self, state: AppState, invoice_id: str) -> InvoiceRecord | None:
        """Run one extraction attempt for an invoice and record the outcome.

        Args:
            state: Application state owning the invoice
            invoice_id: Invoice to process

        Returns:
            The updated invoice, or None if it was deleted before or while the
            attempt ran

        Raises:
            ConfigurationMissingError: If the remote service is not configured
                (the invoice is left untouched)
            InvalidStateTransitionError: If the invoice is already being parsed
        """
        config = state.config
        if not config.is_complete():
            raise ConfigurationMissingError(
                "Model service is not configured: set base URL, API key and model first"
            )

        try:
            record = state.begin_processing(invoice_id)
        except RecordNotFoundError:
            logger.info(f"Invoice {invoice_id} was deleted before parsing started")
            return None
        logger.info(
            f"Parsing invoice {invoice_id} ({record.file_name}) via {self.provider.provider_name}"
        )

        try:
            source = build_source(record, self.settings, self.renderer)
            fields = self.run(source, config)
        except InvoiceProcessingError as e:
            logger.warning(f"Invoice {invoice_id} failed [{e.code}]: {e.message}")
            if e.details:
                logger.debug(f"Failure details for invoice {invoice_id}: {e.details}")
            return state.fail_invoice(invoice_id, e.message, e.code)
        except Exception as e:
            logger.exception(f"Unexpected failure while parsing invoice {invoice_id}")
            return state.fail_invoice(
                invoice_id, str(e) or e.__class__.__name__, InvoiceProcessingError.code
            )

        logger.info(
            f"Invoice {invoice_id} parsed by {self.provider.provider_name}: "
            f"type={fields.type} amount={fields.amount}"
        )
        return state.complete_invoice(invoice_id, fields)

    def run(self, source: Source, config: LLMConfig) -> InvoiceFields:
        """Turn a pipeline input into invoice fields.

        Args:
            source: Image or text input
            config: Remote endpoint configuration

        Returns:
            Parsed invoice fields

        Raises:
            InvoiceProcessingError: Any failure of the last attempted strategy
        """
        if isinstance(source, ImageSource):
            try:
                content = self.provider.structure_image(source.base64, source.media_type, config)
                return parse_structured_response(content)
            except InvoiceProcessingError as e:
                if source.document is None:
                    raise
                logger.warning(f"Image structuring failed ({e.code}), falling back to PDF text")
            return self._structure_document_text(source.document, config)

        if isinstance(source, TextSource):
            return self._structure_document_text(source.document, config)

        raise TypeError(f"Unsupported pipeline source: {type(source).__name__}")

    def _structure_document_text(self, document: bytes, config: LLMConfig) -> InvoiceFields:
        text = self.extract_document_text(document)
        content = self.provider.structure_text(text, config)
        return parse_structured_response(content)

    def extract_document_text(self, document: bytes) -> str:
        """Read a PDF's text with the configured strategy.

        Args:
            document: PDF file content

        Returns:
            Non-empty text

        Raises:
            ExtractionEmptyError: If the strategy yields no text
            UnsupportedFormatError: If the PDF cannot be opened
        """
        strategy = self.settings.pdf_text_strategy

        if strategy in ("text_layer", "auto"):
            text = self.renderer.extract_text_layer(document)
            if text:
                return text
            if strategy == "text_layer":
                raise ExtractionEmptyError("PDF has no text layer; it may be a scanned document")
            logger.info("PDF text layer empty, recognizing rendered pages")

        return self.ocr_document(document)

    def ocr_document(self, document: bytes) -> str:
        """Render every page and run OCR over it.

        Pages scored below ``ocr_min_confidence`` are kept but logged.

        Raises:
            ExtractionEmptyError: If OCR fails or recognizes nothing
        """
        threshold = self.settings.ocr_min_confidence
        page_texts: list[str] = []
        for number, image in enumerate(self.renderer.render_pages(document), start=1):
            result = self.ocr_service.extract_text(image)
            if not result.success:
                raise ExtractionEmptyError(
                    f"OCR failed on page {number}: {result.error}", details={"page": number}
                )
            if result.is_low_confidence(threshold):
                logger.warning(
                    f"OCR confidence {result.confidence:.2f} on page {number} "
                    f"is below {threshold:.2f}; extracted fields may need review"
                )
            page_texts.append(result.text)

        text = "\n".join(page_texts).strip()
        if not text:
            raise ExtractionEmptyError("OCR recognized no text in the PDF")
        return text
