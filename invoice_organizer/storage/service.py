"""Local JSON persistence for the application state.

Three independently keyed blobs are stored as files under
``Settings.data_dir``:

- ``llm_config.json``: remote service configuration
- ``persons_data.json``: persons with their invoices (source bytes stripped)
- ``travel_info.json``: trip metadata reused across summary exports

Nothing is saved implicitly. Callers decide when state crosses this
boundary (the API saves after each mutating request).
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import TypeVar

from pydantic import BaseModel, TypeAdapter, ValidationError

from invoice_organizer.shared.config import Settings
from invoice_organizer.state.app_state import AppState
from invoice_organizer.state.models import (
    InvoiceStatus,
    LLMConfig,
    PersonRecord,
    TripInfo,
)

logger = logging.getLogger(__name__)

CONFIG_KEY = "llm_config"
PERSONS_KEY = "persons_data"
TRIP_KEY = "travel_info"

ModelT = TypeVar("ModelT", bound=BaseModel)

_persons_adapter = TypeAdapter(list[PersonRecord])


class StateStore:
    """Loads and saves ``AppState`` as JSON files."""

    def __init__(self, settings: Settings) -> None:
        """Initialize store.

        Args:
            settings: Application settings with data_dir
        """
        self.settings = settings
        self.data_dir = Path(settings.data_dir)

    def _path(self, key: str) -> Path:
        return self.data_dir / f"{key}.json"

    def _read(self, key: str) -> bytes | None:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_bytes()

    def _write(self, key: str, payload: bytes) -> None:
        """Write a blob atomically (temp file + rename)."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.data_dir, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as tmp:
                tmp.write(payload)
            os.replace(tmp_name, self._path(key))
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    # Configuration

    def load_config(self) -> LLMConfig:
        """Load remote service configuration, defaulting to an empty one."""
        return self._load_model(CONFIG_KEY, LLMConfig)

    def save_config(self, config: LLMConfig) -> None:
        self._write(CONFIG_KEY, config.model_dump_json().encode("utf-8"))

    # Trip metadata

    def load_trip(self) -> TripInfo:
        """Load trip metadata, defaulting to empty fields."""
        return self._load_model(TRIP_KEY, TripInfo)

    def save_trip(self, trip: TripInfo) -> None:
        self._write(TRIP_KEY, trip.model_dump_json().encode("utf-8"))

    # Persons

    def load_persons(self) -> list[PersonRecord]:
        """Load persons and invoices.

        Invoices persisted while in progress belong to a run that died with
        the previous process; they come back as pending.

        Returns:
            Person list (empty if missing or unreadable)
        """
        raw = self._read(PERSONS_KEY)
        if raw is None:
            return []
        try:
            persons = _persons_adapter.validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Ignoring unreadable {PERSONS_KEY}.json: {e.error_count()} error(s)")
            return []

        for person in persons:
            for invoice in person.invoices:
                if invoice.status == InvoiceStatus.IN_PROGRESS:
                    invoice.status = InvoiceStatus.PENDING
        return persons

    def save_persons(self, persons: list[PersonRecord]) -> None:
        """Persist persons; invoice source bytes are excluded by the model."""
        self._write(PERSONS_KEY, _persons_adapter.dump_json(persons))

    # Whole state

    def load_state(self) -> AppState:
        """Build an ``AppState`` from the three stored blobs."""
        state = AppState(
            config=self.load_config(),
            persons=self.load_persons(),
            trip=self.load_trip(),
        )
        logger.info(f"Loaded state from {self.data_dir}")
        return state

    def save_state(self, state: AppState) -> None:
        """Persist all three blobs of an ``AppState``."""
        self.save_config(state.config)
        self.save_persons(state.persons())
        self.save_trip(state.trip)

    def _load_model(self, key: str, model: type[ModelT]) -> ModelT:
        raw = self._read(key)
        if raw is None:
            return model()
        try:
            return model.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Ignoring unreadable {key}.json: {e.error_count()} error(s)")
            return model()
