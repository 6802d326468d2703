"""Unit tests for configuration management."""

import os
from collections.abc import Generator
from pathlib import Path

import pytest
from pydantic import ValidationError

from invoice_organizer.shared.config import Settings, get_settings


@pytest.fixture
def clean_env() -> Generator[None, None, None]:
    """Clean environment variables before and after test."""
    original_env = dict(os.environ)
    env_vars = [k for k in os.environ if k.startswith("APP_")]
    for var in env_vars:
        del os.environ[var]
    yield
    os.environ.clear()
    os.environ.update(original_env)


def test_settings_defaults(clean_env: None) -> None:
    """Test that settings have correct default values."""
    settings = Settings()

    assert settings.ocr_min_confidence == 0.5
    assert settings.log_level == "INFO"
    assert settings.service_name == "invoice-organizer"
    assert settings.ocr_provider == "tesseract"
    assert settings.tesseract_lang == "chi_sim+eng"
    assert settings.pdf_text_strategy == "auto"
    assert settings.pdf_render_scale == 2.0
    assert settings.vision_enabled is True
    assert settings.llm_text_max_tokens == 8192
    assert settings.llm_vision_max_tokens == 4096
    assert settings.data_dir == Path("data")
    assert settings.detail_export_filename == "发票明细"
    assert settings.summary_export_filename == "差旅明细"


def test_settings_from_env_vars(clean_env: None) -> None:
    """Test that settings can be overridden via environment variables."""
    os.environ["APP_LOG_LEVEL"] = "ERROR"
    os.environ["APP_OCR_PROVIDER"] = "paddleocr"
    os.environ["APP_PDF_TEXT_STRATEGY"] = "text_layer"
    os.environ["APP_VISION_ENABLED"] = "false"
    os.environ["APP_DATA_DIR"] = "/var/lib/invoices"

    settings = Settings()

    assert settings.log_level == "ERROR"
    assert settings.ocr_provider == "paddleocr"
    assert settings.pdf_text_strategy == "text_layer"
    assert settings.vision_enabled is False
    assert settings.data_dir == Path("/var/lib/invoices")


def test_settings_case_insensitive(clean_env: None) -> None:
    """Test that environment variables are case insensitive."""
    os.environ["app_log_level"] = "DEBUG"

    settings = Settings()

    assert settings.log_level == "DEBUG"


def test_invalid_strategy_rejected(clean_env: None) -> None:
    """Unknown PDF strategy is a configuration error."""
    os.environ["APP_PDF_TEXT_STRATEGY"] = "guess"

    with pytest.raises(ValidationError):
        Settings()


def test_render_scale_must_be_positive() -> None:
    with pytest.raises(ValidationError):
        Settings(pdf_render_scale=0)


def test_get_settings_factory(clean_env: None) -> None:
    """Test that factory function returns Settings instance."""
    settings = get_settings()

    assert isinstance(settings, Settings)
    assert settings.service_name == "invoice-organizer"


def test_min_confidence_is_a_fraction() -> None:
    with pytest.raises(ValidationError):
        Settings(ocr_min_confidence=1.5)


def test_deployment_environment_is_not_a_setting(clean_env: None) -> None:
    os.environ["APP_ENVIRONMENT"] = "production"

    settings = Settings()

    assert not hasattr(settings, "environment")
