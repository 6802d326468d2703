"""Abstract base class for structuring providers.

A structuring provider sends extracted receipt content (text, or an image
payload) plus a fixed instruction block to a language model and returns the
model's raw textual answer. Turning that answer into fields is the parser's
job, so providers stay swappable and easy to fake in tests.

Based on Strategy Pattern:
https://refactoring.guru/design-patterns/strategy/python
"""

from abc import ABC, abstractmethod

from invoice_organizer.shared.config import Settings
from invoice_organizer.state.models import LLMConfig


class StructuringProvider(ABC):
    """Abstract base class for invoice structuring providers.

    All providers must implement this interface so the extraction pipeline
    can switch between text and image requests without knowing the
    transport.
    """

    def __init__(self, settings: Settings) -> None:
        """Initialize provider with settings.

        Args:
            settings: Application settings
        """
        self.settings = settings

    @abstractmethod
    def structure_text(self, text: str, config: LLMConfig) -> str:
        """Ask the model to structure plain receipt text.

        Args:
            text: Text read from the document (text layer or OCR)
            config: Remote endpoint, credential and model

        Returns:
            Raw response content

        Raises:
            RemoteTransportError: On transport failure or unrecognized response
        """

    @abstractmethod
    def structure_image(self, image_base64: str, media_type: str, config: LLMConfig) -> str:
        """Ask a vision-capable model to structure a receipt image.

        Args:
            image_base64: Base64-encoded raster payload
            media_type: Declared media type of the payload (e.g. image/png)
            config: Remote endpoint, credential and model

        Returns:
            Raw response content

        Raises:
            RemoteUnsupportedImageError: If the service rejects image input
            RemoteTransportError: On other transport failures
        """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Get provider name for logging/metrics."""
