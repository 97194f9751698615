"""
Tests for row validation.

The upload-side and API-side checks share field parsers but apply different
amount rules; both are covered here.
"""

from datetime import datetime

import pytest

from finance_tracker.errors import RowValidationError
from finance_tracker.models import CandidateRecord, NormalizedTransaction, RowError, WireTransaction
from finance_tracker.row_validator import (
    NON_NEGATIVE_AMOUNT,
    STRICT_POSITIVE_AMOUNT,
    coerce_amount,
    format_amount,
    parse_date,
    validate_payload,
    validate_row,
)


def candidate(**overrides):
    data = {
        "type": "income",
        "amount": 1200.0,
        "category": "Salary",
        "date": "2024-01-01",
        "description": "Freelance Payment",
    }
    data.update(overrides)
    return CandidateRecord(**data)


class TestValidateRow:
    """Test cases for the upload-side validator."""

    def test_valid_row(self):
        result = validate_row(candidate(), 0)

        assert isinstance(result, NormalizedTransaction)
        assert result.type == "income"
        assert result.amount == 1200.0
        assert result.category == "Salary"
        assert result.date == datetime(2024, 1, 1)
        assert result.description == "Freelance Payment"

    def test_negative_amount_rejected(self):
        row = candidate(type="expense", amount=-5.0, category="Food", description="lunch")
        result = validate_row(row, 0)

        assert isinstance(result, RowError)
        assert result.message == "Invalid amount: -5. Must be a positive number"
        assert result.original_data == row

    def test_zero_amount_rejected(self):
        result = validate_row(candidate(amount=0.0), 3)

        assert isinstance(result, RowError)
        assert result.message == "Invalid amount: 0. Must be a positive number"

    def test_fractional_amount_in_message(self):
        result = validate_row(candidate(amount=-2.5), 0)
        assert result.message == "Invalid amount: -2.5. Must be a positive number"

    def test_invalid_type(self):
        result = validate_row(candidate(type="transfer"), 0)

        assert isinstance(result, RowError)
        assert result.message == "Invalid type: transfer. Must be 'income' or 'expense'"

    def test_type_is_case_normalized(self):
        result = validate_row(candidate(type=" Expense "), 0)

        assert isinstance(result, NormalizedTransaction)
        assert result.type == "expense"

    def test_blank_category(self):
        result = validate_row(candidate(category="   "), 0)
        assert result.message == "Category is required"

    def test_invalid_date(self):
        result = validate_row(candidate(date="Invalid Date"), 0)
        assert result.message == "Invalid date format: Invalid Date"

    def test_blank_description(self):
        result = validate_row(candidate(description=" "), 0)
        assert result.message == "Description is required"

    def test_description_length_limit(self):
        assert isinstance(validate_row(candidate(description="x" * 200), 0), NormalizedTransaction)

        result = validate_row(candidate(description="x" * 201), 0)
        assert isinstance(result, RowError)
        assert result.message == "Description must not exceed 200 characters"

    def test_first_failure_wins(self):
        row = candidate(type="bogus", amount=-1.0, category="", date="nope", description="")
        result = validate_row(row, 0)
        assert result.message.startswith("Invalid type")

    @pytest.mark.parametrize("row_index, expected", [(0, 2), (1, 3), (41, 43)])
    def test_row_position_accounts_for_header(self, row_index, expected):
        result = validate_row(candidate(type="bad"), row_index)
        assert result.row_position == expected

    def test_source_is_carried(self):
        result = validate_row(candidate(type="bad"), 0, source="march.csv")
        assert result.source == "march.csv"

    def test_revalidation_is_idempotent(self):
        first = validate_row(candidate(date="12/30/2024"), 0)
        second = validate_row(first.as_candidate(), 0)
        assert second == first

    def test_non_negative_policy_accepts_zero(self):
        result = validate_row(candidate(amount=0.0), 0, amount_policy=NON_NEGATIVE_AMOUNT)
        assert isinstance(result, NormalizedTransaction)


class TestAmountPolicies:
    def test_strict_positive(self):
        assert STRICT_POSITIVE_AMOUNT.accepts(0.01)
        assert not STRICT_POSITIVE_AMOUNT.accepts(0.0)
        assert not STRICT_POSITIVE_AMOUNT.accepts(float("inf"))
        assert not STRICT_POSITIVE_AMOUNT.accepts(float("nan"))

    def test_non_negative(self):
        assert NON_NEGATIVE_AMOUNT.accepts(0.0)
        assert not NON_NEGATIVE_AMOUNT.accepts(-0.01)
        assert not NON_NEGATIVE_AMOUNT.accepts(float("inf"))


class TestParsing:
    def test_date_formats(self):
        """Test various date formats are recognized."""
        for date_str in [
            "2024-12-31",
            "12/31/2024",
            "31/12/2024",
            "12-31-2024",
            "2024/12/31",
            "12/31/24",
            "Dec 31st, 2024",
            "2024-12-31 00:00:00",
        ]:
            assert parse_date(date_str) == datetime(2024, 12, 31), f"Failed to parse date: {date_str}"

    def test_iso_with_zone_is_converted_to_utc(self):
        assert parse_date("2024-01-01T05:30:00Z") == datetime(2024, 1, 1, 5, 30)
        assert parse_date("2024-01-01T05:30:00+02:00") == datetime(2024, 1, 1, 3, 30)

    def test_unparseable_dates(self):
        assert parse_date("") is None
        assert parse_date(None) is None
        assert parse_date("2024-02-30") is None

    def test_amount_formats(self):
        """Test various amount formats are recognized."""
        test_cases = [
            ("100.00", 100.00),
            ("-100.00", -100.00),
            ("1,000.00", 1000.00),
            ("$100.00", 100.00),
            ("(100.00)", -100.00),  # Parentheses notation
            ("€100.00", 100.00),
            ("£100.00", 100.00),
            (42, 42.0),
            (12.5, 12.5),
        ]
        for raw, expected in test_cases:
            assert coerce_amount(raw) == expected, f"Failed to parse amount: {raw}"

    def test_amount_without_number(self):
        assert coerce_amount("Not a number") is None
        assert coerce_amount("") is None
        assert coerce_amount(None) is None
        assert coerce_amount(True) is None

    def test_scientific_notation_amounts(self):
        """Spreadsheet exports write large amounts with an exponent."""
        assert coerce_amount("1e5") == 100000.0
        assert coerce_amount("1E+05") == 100000.0
        assert coerce_amount("1.5e3") == 1500.0
        assert coerce_amount("$1.2E+05") == 120000.0

    def test_amount_with_stray_text(self):
        assert coerce_amount("12abc34") is None
        assert coerce_amount("USD 100") is None
        assert coerce_amount("nan") is None
        assert coerce_amount("inf") is None
        assert coerce_amount(" 1 200.50 ") == 1200.5

    def test_format_amount(self):
        assert format_amount(-5.0) == "-5"
        assert format_amount(12.75) == "12.75"


class TestValidatePayload:
    """Test cases for the API-side validator."""

    def test_valid_payload(self, wire_record):
        result = validate_payload(wire_record(amount="19.99", type="Income"))

        assert result.type == "income"
        assert result.amount == 19.99
        assert result.date == datetime(2024, 1, 15)

    def test_exponent_amount_keeps_its_value(self, wire_record):
        assert validate_payload(wire_record(amount="1e5")).amount == 100000.0

    def test_zero_amount_accepted(self, wire_record):
        assert validate_payload(wire_record(amount=0)).amount == 0.0

    def test_negative_amount_rejected(self, wire_record):
        with pytest.raises(RowValidationError, match="Invalid amount. Must be a positive number"):
            validate_payload(wire_record(amount=-5))

    @pytest.mark.parametrize("field", ["type", "amount", "category", "date", "description"])
    def test_missing_field(self, wire_record, field):
        with pytest.raises(RowValidationError, match="Missing required fields"):
            validate_payload(wire_record(**{field: None}))

    def test_blank_string_counts_as_missing(self, wire_record):
        with pytest.raises(RowValidationError, match="Missing required fields"):
            validate_payload(wire_record(category="  "))

    def test_invalid_type(self, wire_record):
        with pytest.raises(RowValidationError) as exc_info:
            validate_payload(wire_record(type="refund"))
        assert exc_info.value.message == 'Invalid type. Must be "income" or "expense"'

    def test_invalid_date(self, wire_record):
        with pytest.raises(RowValidationError, match="Invalid date format"):
            validate_payload(wire_record(date="someday"))

    def test_description_length(self, wire_record):
        assert validate_payload(wire_record(description="d" * 200)).description == "d" * 200
        with pytest.raises(RowValidationError, match="Description must not exceed 200 characters"):
            validate_payload(wire_record(description="d" * 201))

    def test_non_numeric_amount(self):
        record = WireTransaction(
            type="expense", amount="lots", category="Food", date="2024-01-01", description="x"
        )
        with pytest.raises(RowValidationError, match="Invalid amount"):
            validate_payload(record)
