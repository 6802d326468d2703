"""Exceptions raised while turning an uploaded receipt into invoice fields.

Every failure that can end up on an invoice record derives from
``InvoiceProcessingError``. The human-readable message is stored on the record
verbatim and the stable ``code`` next to it as ``error_code``, so API clients
can branch on the kind of failure. ``details`` holds context for the logs
(page number, model, request mode).
"""

from typing import Any


class InvoiceProcessingError(Exception):
    """Base exception for all invoice processing errors."""

    code = "processing_error"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize the exception.

        Args:
            message: Error message shown to the user and stored on the record
            details: Optional dictionary with additional error details
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


class ConfigurationMissingError(InvoiceProcessingError):
    """Remote service base URL, API key or model name is not configured."""

    code = "configuration_missing"


class UnsupportedFormatError(InvoiceProcessingError):
    """Upload is neither a usable image nor a readable PDF."""

    code = "unsupported_format"


class ExtractionEmptyError(InvoiceProcessingError):
    """OCR or the PDF text layer produced no text."""

    code = "extraction_empty"


class RemoteTransportError(InvoiceProcessingError):
    """Remote service unreachable, answered non-2xx, or answered something unreadable."""

    code = "remote_transport"

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.status_code = status_code


class RemoteUnsupportedImageError(RemoteTransportError):
    """Remote service rejected an image payload."""

    code = "remote_unsupported_image"


class JSONNotFoundError(InvoiceProcessingError):
    """Model output contains no brace-delimited span."""

    code = "json_not_found"


class JSONInvalidError(InvoiceProcessingError):
    """Brace-delimited span in the model output is not a JSON object."""

    code = "json_invalid"


class RecordNotFoundError(Exception):
    """Person or invoice identifier does not exist."""


class InvalidStateTransitionError(Exception):
    """Invoice status change not allowed from the current status."""
