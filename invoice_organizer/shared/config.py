"""Shared configuration management for the invoice organizer.

Based on Pydantic Settings v2 best practices:
https://docs.pydantic.dev/latest/concepts/pydantic_settings/

Only process-level knobs live here. The remote language-model endpoint
(base URL, API key, model) is user data and is persisted by the storage
layer instead, see ``invoice_organizer.state.models.LLMConfig``.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with environment variable support.

    All settings can be overridden via environment variables with the prefix 'APP_'.
    Example: APP_LOG_LEVEL=debug
    """

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )

    # Service configuration
    service_name: str = Field(
        default="invoice-organizer",
        description="Service identifier for metrics and logs",
    )
    service_version: str = Field(
        default="0.1.0",
        description="Service version",
    )

    # OCR provider configuration
    ocr_provider: Literal["tesseract", "paddleocr"] = Field(
        default="tesseract",
        description="OCR provider: tesseract (CPU), paddleocr (GPU-accelerated, Chinese models)",
    )
    tesseract_lang: str = Field(
        default="chi_sim+eng",
        description="Tesseract language packs (requires the traineddata to be installed)",
    )
    paddleocr_lang: str = Field(
        default="ch",
        description="PaddleOCR recognition language",
    )
    ocr_min_confidence: float = Field(
        default=0.5,
        ge=0,
        le=1,
        description="Pages recognized with a lower mean score are logged as doubtful",
    )

    # PDF handling
    pdf_text_strategy: Literal["auto", "text_layer", "ocr"] = Field(
        default="auto",
        description=(
            "How text is read from PDFs: text_layer (embedded text only), "
            "ocr (render pages and recognize), auto (text layer, OCR if empty)"
        ),
    )
    pdf_render_scale: float = Field(
        default=2.0,
        gt=0,
        description="Upscale factor used when rendering PDF pages to images",
    )

    # Structuring (remote language model) behaviour
    vision_enabled: bool = Field(
        default=True,
        description="Send images (and rendered first PDF pages) to the model directly",
    )
    llm_text_max_tokens: int = Field(
        default=8192,
        gt=0,
        description="max_tokens for text-mode structuring requests",
    )
    llm_vision_max_tokens: int = Field(
        default=4096,
        gt=0,
        description="max_tokens for image-mode structuring requests",
    )

    # Local state persistence
    data_dir: Path = Field(
        default=Path("data"),
        description="Directory holding the persisted JSON state files",
    )

    # Export defaults
    detail_export_filename: str = Field(
        default="发票明细",
        description="Default file name (without extension) of the detail export",
    )
    summary_export_filename: str = Field(
        default="差旅明细",
        description="Default file name (without extension) of the summary export",
    )


def get_settings() -> Settings:
    """Factory function to get settings instance.

    Returns:
        Configured Settings instance
    """
    return Settings()
