"""Unit tests for recovering invoice fields from model output."""

from decimal import Decimal

import pytest

from invoice_organizer.extraction.parser import (
    coerce_amount,
    coerce_type,
    extract_json_object,
    parse_structured_response,
)
from invoice_organizer.extraction.schema import InvoiceType
from invoice_organizer.shared.errors import JSONInvalidError, JSONNotFoundError


class TestExtractJsonObject:
    """Locating the JSON object inside free-form text."""

    def test_plain_object(self) -> None:
        assert extract_json_object('{"amount": 1}') == {"amount": 1}

    def test_object_wrapped_in_prose_and_fences(self) -> None:
        content = '好的，结果如下：\n```json\n{"type": "accommodation", "amount": 100}\n```\n希望有帮助'

        assert extract_json_object(content) == {"type": "accommodation", "amount": 100}

    def test_nested_braces_use_widest_span(self) -> None:
        content = 'note {"type": "accommodation", "extra": {"k": 1}} end'

        assert extract_json_object(content)["extra"] == {"k": 1}

    def test_no_braces_raises_not_found(self) -> None:
        with pytest.raises(JSONNotFoundError) as exc_info:
            extract_json_object("I could not read this invoice.")

        assert "I could not read this invoice." in exc_info.value.message
        assert exc_info.value.code == "json_not_found"

    def test_not_found_message_truncated(self) -> None:
        with pytest.raises(JSONNotFoundError) as exc_info:
            extract_json_object("x" * 1000)

        assert exc_info.value.message.count("x") == 200

    def test_two_objects_yield_invalid_json(self) -> None:
        """Greedy span covers both objects and the text between them."""
        with pytest.raises(JSONInvalidError):
            extract_json_object('{"a": 1} and {"b": 2}')

    def test_malformed_json_raises_invalid(self) -> None:
        with pytest.raises(JSONInvalidError) as exc_info:
            extract_json_object("{type: accommodation}")

        assert exc_info.value.code == "json_invalid"


class TestCoercion:
    """Lenient field coercion."""

    @pytest.mark.parametrize("value", [t.value for t in InvoiceType])
    def test_known_types(self, value: str) -> None:
        assert coerce_type(value) == InvoiceType(value)

    @pytest.mark.parametrize("value", ["hotel", "Accommodation", "", None, 3])
    def test_unknown_types(self, value: object) -> None:
        assert coerce_type(value) is None

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (100, Decimal("100")),
            (553.5, Decimal("553.5")),
            (0, Decimal("0")),
            ("553.5", Decimal("553.5")),
            ("553.5元", Decimal("553.5")),
            ("1,280.00", Decimal("1280.00")),
            (" 42 ", Decimal("42")),
        ],
    )
    def test_amounts(self, value: object, expected: Decimal) -> None:
        assert coerce_amount(value) == expected

    @pytest.mark.parametrize("value", ["abc", "", "0", "¥100", None, True, [100], float("nan")])
    def test_unknown_amounts(self, value: object) -> None:
        assert coerce_amount(value) is None


class TestParseStructuredResponse:
    """End-to-end parsing of a response into fields."""

    def test_full_response(self) -> None:
        content = (
            '{"type": "intercity_transport", "amount": 553.5, '
            '"date": "2024-03-15", "description": "北京-上海高铁票"}'
        )

        fields = parse_structured_response(content)

        assert fields.type == InvoiceType.INTERCITY_TRANSPORT
        assert fields.amount == Decimal("553.5")
        assert fields.date == "2024-03-15"
        assert fields.description == "北京-上海高铁票"
        assert fields.raw_text == content

    def test_unknown_values_become_none(self) -> None:
        content = '{"type": "meal", "amount": "abc", "date": null, "description": ""}'

        fields = parse_structured_response(content)

        assert fields.type is None
        assert fields.amount is None
        assert fields.date is None
        assert fields.description is None
        assert fields.raw_text == content

    def test_missing_keys(self) -> None:
        fields = parse_structured_response("{}")

        assert fields.type is None
        assert fields.amount is None

    def test_non_string_text_fields_are_stringified(self) -> None:
        fields = parse_structured_response('{"date": 20240315, "description": 7}')

        assert fields.date == "20240315"
        assert fields.description == "7"

    def test_errors_propagate(self) -> None:
        with pytest.raises(JSONNotFoundError):
            parse_structured_response("no json here")
