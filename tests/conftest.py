"""Shared fixtures for the test suite."""

import os
import tempfile
from pathlib import Path

import pytest

# The API module loads persisted state at import time; keep it away from ./data
os.environ.setdefault("APP_DATA_DIR", tempfile.mkdtemp(prefix="invoice-organizer-tests-"))

from invoice_organizer.shared.config import Settings  # noqa: E402
from invoice_organizer.state.models import LLMConfig  # noqa: E402
from tests.helpers import FakeOCRService, FakeStructuringProvider  # noqa: E402


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings with persistence under a temporary directory."""
    return Settings(data_dir=tmp_path / "data")


@pytest.fixture
def llm_config() -> LLMConfig:
    """A complete model service configuration."""
    return LLMConfig(
        base_url="https://llm.example.com/v1", api_key="sk-test", model_name="gpt-test"
    )


@pytest.fixture
def fake_provider(settings: Settings) -> FakeStructuringProvider:
    return FakeStructuringProvider(settings)


@pytest.fixture
def fake_ocr() -> FakeOCRService:
    return FakeOCRService()
