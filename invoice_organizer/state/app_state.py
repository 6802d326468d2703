"""Explicitly owned application state.

``AppState`` holds the remote-service configuration, the person/invoice
collection and the trip metadata. Components receive it explicitly; nothing
here touches the disk. Saving and loading happen at the storage boundary
(see ``invoice_organizer.storage.service.StateStore``).

Extraction runs execute in worker threads and finish in any order, so every
invoice mutation is an identifier-keyed merge under one lock. A result that
arrives for a deleted invoice is dropped.
"""

import logging
import threading
from decimal import Decimal

from invoice_organizer.extraction.schema import InvoiceFields, InvoiceType
from invoice_organizer.shared.errors import (
    InvalidStateTransitionError,
    InvoiceProcessingError,
    RecordNotFoundError,
)
from invoice_organizer.state.models import (
    InvoiceRecord,
    InvoiceStatus,
    LLMConfig,
    PersonRecord,
    TripInfo,
)

logger = logging.getLogger(__name__)


class AppState:
    """Configuration, persons with their invoices, and trip metadata."""

    def __init__(
        self,
        config: LLMConfig | None = None,
        persons: list[PersonRecord] | None = None,
        trip: TripInfo | None = None,
    ) -> None:
        self._lock = threading.RLock()
        self._config = config or LLMConfig()
        self._persons: list[PersonRecord] = persons or []
        self._trip = trip or TripInfo()

    # Configuration and trip metadata

    @property
    def config(self) -> LLMConfig:
        with self._lock:
            return self._config.model_copy()

    def set_config(self, config: LLMConfig) -> None:
        with self._lock:
            self._config = config.model_copy()

    @property
    def trip(self) -> TripInfo:
        with self._lock:
            return self._trip.model_copy()

    def set_trip(self, trip: TripInfo) -> None:
        with self._lock:
            self._trip = trip.model_copy()

    # Persons

    def persons(self) -> list[PersonRecord]:
        """Return a deep copy of the person collection."""
        with self._lock:
            return [p.model_copy(deep=True) for p in self._persons]

    def _person(self, person_id: str) -> PersonRecord:
        for person in self._persons:
            if person.id == person_id:
                return person
        raise RecordNotFoundError(f"Person not found: {person_id}")

    def get_person(self, person_id: str) -> PersonRecord:
        with self._lock:
            return self._person(person_id).model_copy(deep=True)

    def add_person(self, name: str, employee_id: str) -> PersonRecord:
        with self._lock:
            person = PersonRecord(name=name, employee_id=employee_id)
            self._persons.append(person)
            logger.info(f"Added person {person.id}")
            return person.model_copy(deep=True)

    def update_person(self, person_id: str, name: str, employee_id: str) -> PersonRecord:
        with self._lock:
            person = self._person(person_id)
            person.name = name
            person.employee_id = employee_id
            return person.model_copy(deep=True)

    def delete_person(self, person_id: str) -> None:
        """Delete a person together with all invoices they own.

        Raises:
            RecordNotFoundError: If the person does not exist
        """
        with self._lock:
            person = self._person(person_id)
            self._persons.remove(person)
            logger.info(f"Deleted person {person_id} ({len(person.invoices)} invoice(s))")

    # Invoices

    def _find_invoice(self, invoice_id: str) -> tuple[PersonRecord, InvoiceRecord] | None:
        for person in self._persons:
            for invoice in person.invoices:
                if invoice.id == invoice_id:
                    return person, invoice
        return None

    def _invoice(self, person_id: str, invoice_id: str) -> InvoiceRecord:
        for invoice in self._person(person_id).invoices:
            if invoice.id == invoice_id:
                return invoice
        raise RecordNotFoundError(f"Invoice not found: {invoice_id}")

    def add_invoice(
        self,
        person_id: str,
        file_name: str,
        content_type: str | None = None,
        source: bytes | None = None,
    ) -> InvoiceRecord:
        """Attach a new pending invoice to a person.

        Raises:
            RecordNotFoundError: If the person does not exist
        """
        with self._lock:
            person = self._person(person_id)
            invoice = InvoiceRecord(file_name=file_name, content_type=content_type, source=source)
            person.invoices.append(invoice)
            return invoice.model_copy()

    def get_invoice(self, invoice_id: str) -> InvoiceRecord:
        """Return a copy of an invoice (source bytes included).

        Raises:
            RecordNotFoundError: If no person owns the invoice
        """
        with self._lock:
            found = self._find_invoice(invoice_id)
            if found is None:
                raise RecordNotFoundError(f"Invoice not found: {invoice_id}")
            return found[1].model_copy()

    def owner_of(self, invoice_id: str) -> str | None:
        """Return the id of the person owning an invoice, if any."""
        with self._lock:
            found = self._find_invoice(invoice_id)
            return found[0].id if found else None

    def begin_processing(self, invoice_id: str) -> InvoiceRecord:
        """Move an invoice to in_progress.

        Allowed from pending, error (retry) and success (re-parse).

        Raises:
            RecordNotFoundError: If the invoice does not exist
            InvalidStateTransitionError: If the invoice is already in progress
        """
        with self._lock:
            found = self._find_invoice(invoice_id)
            if found is None:
                raise RecordNotFoundError(f"Invoice not found: {invoice_id}")
            invoice = found[1]
            if invoice.status == InvoiceStatus.IN_PROGRESS:
                raise InvalidStateTransitionError(f"Invoice {invoice_id} is already being parsed")
            invoice.status = InvoiceStatus.IN_PROGRESS
            invoice.error_message = None
            invoice.error_code = None
            return invoice.model_copy()

    def complete_invoice(self, invoice_id: str, fields: InvoiceFields) -> InvoiceRecord | None:
        """Merge extraction results into an in-progress invoice.

        Returns:
            Updated copy, or None when the invoice vanished or is no longer in progress
        """
        with self._lock:
            invoice = self._in_progress(invoice_id)
            if invoice is None:
                return None
            invoice.apply_fields(fields)
            invoice.status = InvoiceStatus.SUCCESS
            invoice.error_message = None
            invoice.error_code = None
            return invoice.model_copy()

    def fail_invoice(
        self, invoice_id: str, message: str, code: str = InvoiceProcessingError.code
    ) -> InvoiceRecord | None:
        """Record a failed extraction on an in-progress invoice.

        Args:
            invoice_id: Invoice being parsed
            message: Human-readable failure, stored verbatim
            code: Machine-readable failure kind (an ``InvoiceProcessingError.code``)

        Returns:
            Updated copy, or None when the invoice vanished or is no longer in progress
        """
        with self._lock:
            invoice = self._in_progress(invoice_id)
            if invoice is None:
                return None
            invoice.status = InvoiceStatus.ERROR
            invoice.error_message = message
            invoice.error_code = code
            return invoice.model_copy()

    def _in_progress(self, invoice_id: str) -> InvoiceRecord | None:
        found = self._find_invoice(invoice_id)
        if found is None:
            logger.info(f"Discarding extraction result for deleted invoice {invoice_id}")
            return None
        invoice = found[1]
        if invoice.status != InvoiceStatus.IN_PROGRESS:
            logger.warning(
                f"Discarding extraction result for invoice {invoice_id} "
                f"in status {invoice.status.value}"
            )
            return None
        return invoice

    def edit_invoice(
        self,
        person_id: str,
        invoice_id: str,
        type: InvoiceType | None,
        amount: Decimal | None,
        date: str | None,
        description: str | None,
    ) -> InvoiceRecord:
        """Overwrite fields by hand; the invoice becomes successful.

        Raises:
            RecordNotFoundError: If the person or invoice does not exist
            InvalidStateTransitionError: If the invoice is being parsed
        """
        with self._lock:
            invoice = self._invoice(person_id, invoice_id)
            if invoice.status == InvoiceStatus.IN_PROGRESS:
                raise InvalidStateTransitionError(f"Invoice {invoice_id} is being parsed")
            invoice.type = type
            invoice.amount = amount
            invoice.date = date
            invoice.description = description
            invoice.status = InvoiceStatus.SUCCESS
            invoice.error_message = None
            invoice.error_code = None
            return invoice.model_copy()

    def delete_invoice(self, person_id: str, invoice_id: str) -> None:
        """Remove an invoice; an in-flight extraction for it becomes a no-op.

        Raises:
            RecordNotFoundError: If the person or invoice does not exist
        """
        with self._lock:
            person = self._person(person_id)
            invoice = self._invoice(person_id, invoice_id)
            person.invoices.remove(invoice)
