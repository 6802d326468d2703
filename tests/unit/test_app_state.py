"""Unit tests for the application state."""

import threading
from decimal import Decimal

import pytest

from invoice_organizer.extraction.schema import InvoiceFields, InvoiceType
from invoice_organizer.shared.errors import InvalidStateTransitionError, RecordNotFoundError
from invoice_organizer.state.app_state import AppState
from invoice_organizer.state.models import InvoiceStatus, LLMConfig, TripInfo


@pytest.fixture
def state() -> AppState:
    return AppState()


def _fields(amount: str = "100") -> InvoiceFields:
    return InvoiceFields(
        type=InvoiceType.ACCOMMODATION,
        amount=Decimal(amount),
        date="2024-03-15",
        description="hotel",
        raw_text="{}",
    )


class TestConfigAndTrip:
    def test_defaults_are_empty(self, state: AppState) -> None:
        assert state.config == LLMConfig()
        assert not state.config.is_complete()
        assert state.trip == TripInfo()

    def test_config_is_copied(self, state: AppState) -> None:
        config = LLMConfig(base_url="u", api_key="k", model_name="m")
        state.set_config(config)
        config.api_key = "changed"

        assert state.config.api_key == "k"
        assert state.config.is_complete()

    def test_whitespace_config_is_incomplete(self) -> None:
        assert not LLMConfig(base_url="u", api_key="  ", model_name="m").is_complete()

    def test_set_trip(self, state: AppState) -> None:
        state.set_trip(TripInfo(competition_name="ICPC", location="Xi'an"))

        assert state.trip.competition_name == "ICPC"


class TestPersons:
    def test_add_update_delete(self, state: AppState) -> None:
        person = state.add_person("张三", "2023001")

        updated = state.update_person(person.id, "张三丰", "2023002")
        assert updated.name == "张三丰"
        assert state.get_person(person.id).employee_id == "2023002"

        state.delete_person(person.id)
        assert state.persons() == []

    def test_delete_person_removes_invoices(self, state: AppState) -> None:
        person = state.add_person("张三", "2023001")
        invoice = state.add_invoice(person.id, "a.jpg", "image/jpeg", b"x")

        state.delete_person(person.id)

        assert state.owner_of(invoice.id) is None
        with pytest.raises(RecordNotFoundError):
            state.get_invoice(invoice.id)

    def test_unknown_person(self, state: AppState) -> None:
        with pytest.raises(RecordNotFoundError):
            state.get_person("missing")
        with pytest.raises(RecordNotFoundError):
            state.add_invoice("missing", "a.jpg")

    def test_persons_returns_copies(self, state: AppState) -> None:
        person = state.add_person("张三", "2023001")
        snapshot = state.persons()
        snapshot[0].name = "changed"

        assert state.get_person(person.id).name == "张三"


class TestInvoiceTransitions:
    def test_new_invoice_is_pending(self, state: AppState) -> None:
        person = state.add_person("张三", "2023001")

        invoice = state.add_invoice(person.id, "a.jpg", "image/jpeg", b"x")

        assert invoice.status == InvoiceStatus.PENDING
        assert state.get_invoice(invoice.id).source == b"x"
        assert state.owner_of(invoice.id) == person.id

    def test_begin_complete(self, state: AppState) -> None:
        person = state.add_person("张三", "2023001")
        invoice = state.add_invoice(person.id, "a.jpg")

        state.begin_processing(invoice.id)
        record = state.complete_invoice(invoice.id, _fields())

        assert record is not None
        assert record.status == InvoiceStatus.SUCCESS
        assert record.amount == Decimal("100")
        assert record.raw_text == "{}"

    def test_begin_clears_previous_error(self, state: AppState) -> None:
        person = state.add_person("张三", "2023001")
        invoice = state.add_invoice(person.id, "a.jpg")
        state.begin_processing(invoice.id)
        state.fail_invoice(invoice.id, "timeout", "remote_transport")

        record = state.begin_processing(invoice.id)

        assert record.status == InvoiceStatus.IN_PROGRESS
        assert record.error_message is None
        assert record.error_code is None

    def test_fail_records_message_and_code(self, state: AppState) -> None:
        person = state.add_person("张三", "2023001")
        invoice = state.add_invoice(person.id, "a.jpg")
        state.begin_processing(invoice.id)

        record = state.fail_invoice(invoice.id, "JSON is not an object", "json_invalid")

        assert record is not None
        assert record.status == InvoiceStatus.ERROR
        assert record.error_code == "json_invalid"
        assert state.get_invoice(invoice.id).error_code == "json_invalid"

    def test_fail_without_code_is_generic(self, state: AppState) -> None:
        person = state.add_person("张三", "2023001")
        invoice = state.add_invoice(person.id, "a.jpg")
        state.begin_processing(invoice.id)

        record = state.fail_invoice(invoice.id, "boom")

        assert record is not None
        assert record.error_code == "processing_error"

    def test_begin_twice_is_rejected(self, state: AppState) -> None:
        person = state.add_person("张三", "2023001")
        invoice = state.add_invoice(person.id, "a.jpg")
        state.begin_processing(invoice.id)

        with pytest.raises(InvalidStateTransitionError):
            state.begin_processing(invoice.id)

    def test_results_for_deleted_invoice_are_dropped(self, state: AppState) -> None:
        person = state.add_person("张三", "2023001")
        invoice = state.add_invoice(person.id, "a.jpg")
        state.begin_processing(invoice.id)
        state.delete_invoice(person.id, invoice.id)

        assert state.complete_invoice(invoice.id, _fields()) is None
        assert state.fail_invoice(invoice.id, "late") is None
        assert state.get_person(person.id).invoices == []

    def test_results_require_in_progress(self, state: AppState) -> None:
        person = state.add_person("张三", "2023001")
        invoice = state.add_invoice(person.id, "a.jpg")

        assert state.complete_invoice(invoice.id, _fields()) is None
        assert state.get_invoice(invoice.id).status == InvoiceStatus.PENDING

    def test_edit_marks_success(self, state: AppState) -> None:
        person = state.add_person("张三", "2023001")
        invoice = state.add_invoice(person.id, "a.jpg")
        state.begin_processing(invoice.id)
        state.fail_invoice(invoice.id, "bad json", "json_not_found")

        record = state.edit_invoice(
            person.id,
            invoice.id,
            type=InvoiceType.INTRACITY_TRANSPORT,
            amount=Decimal("32.5"),
            date="2024-03-16",
            description="taxi",
        )

        assert record.status == InvoiceStatus.SUCCESS
        assert record.error_message is None
        assert record.error_code is None
        assert record.type == InvoiceType.INTRACITY_TRANSPORT

    def test_edit_while_parsing_is_rejected(self, state: AppState) -> None:
        person = state.add_person("张三", "2023001")
        invoice = state.add_invoice(person.id, "a.jpg")
        state.begin_processing(invoice.id)

        with pytest.raises(InvalidStateTransitionError):
            state.edit_invoice(person.id, invoice.id, None, None, None, None)

    def test_invoice_lookup_is_scoped_to_owner(self, state: AppState) -> None:
        alice = state.add_person("Alice", "1")
        bob = state.add_person("Bob", "2")
        invoice = state.add_invoice(alice.id, "a.jpg")

        with pytest.raises(RecordNotFoundError):
            state.delete_invoice(bob.id, invoice.id)
        assert state.owner_of(invoice.id) == alice.id


def test_concurrent_completions_all_land() -> None:
    """Results finishing in any order merge into their own records."""
    state = AppState()
    person = state.add_person("张三", "2023001")
    invoices = [state.add_invoice(person.id, f"{i}.jpg") for i in range(20)]
    for invoice in invoices:
        state.begin_processing(invoice.id)

    threads = [
        threading.Thread(
            target=state.complete_invoice, args=(invoice.id, _fields(str(index + 1)))
        )
        for index, invoice in enumerate(reversed(invoices))
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    stored = state.get_person(person.id).invoices
    assert [inv.id for inv in stored] == [inv.id for inv in invoices]
    assert all(inv.status == InvoiceStatus.SUCCESS for inv in stored)
    assert sorted(inv.amount for inv in stored) == [Decimal(i) for i in range(1, 21)]
