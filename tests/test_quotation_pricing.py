from datetime import date
from decimal import Decimal

import pytest

from app.core.exceptions import ValidationException
from app.core.quotation_pricing import (
    format_quotation_number,
    line_total,
    next_sequence,
    price_items,
    quotation_number_prefix,
    to_money,
    validate_status_transition,
)


def test_to_money_rounds_half_up():
    assert to_money("10.005") == Decimal("10.01")
    assert to_money(2.5) == Decimal("2.50")
    assert to_money(Decimal("3.344")) == Decimal("3.34")


def test_line_total_multiplies_quantity_by_unit_price():
    assert line_total(3, "19.99") == Decimal("59.97")


def test_price_items_numbers_lines_and_sums_total():
    items, total = price_items([
        {"product_id": 1, "quantity": 2, "unit_price": Decimal("100.00")},
        {"product_id": 2, "quantity": 3, "unit_price": "12.50", "notes": "rush"},
    ])

    assert [item["line_number"] for item in items] == [1, 2]
    assert items[0]["total_price"] == Decimal("200.00")
    assert items[1]["total_price"] == Decimal("37.50")
    assert items[1]["notes"] == "rush"
    assert total == Decimal("237.50")


def test_price_items_empty_list_totals_zero():
    items, total = price_items([])
    assert items == []
    assert total == Decimal("0.00")


@pytest.mark.parametrize("quantity", [0, -1, 1.5, None])
def test_price_items_rejects_bad_quantity(quantity):
    with pytest.raises(ValidationException) as exc:
        price_items([{"product_id": 1, "quantity": quantity, "unit_price": 1}])
    assert exc.value.details["line_number"] == 1


def test_price_items_rejects_negative_price():
    with pytest.raises(ValidationException):
        price_items([
            {"product_id": 1, "quantity": 1, "unit_price": 5},
            {"product_id": 2, "quantity": 1, "unit_price": -5},
        ])


def test_quotation_number_format():
    prefix = quotation_number_prefix("QT", date(2024, 1, 15))
    assert prefix == "QT20240115"
    assert format_quotation_number(prefix, 1) == "QT20240115001"
    assert format_quotation_number(prefix, 1000) == "QT202401151000"


def test_next_sequence_starts_at_one():
    assert next_sequence([], "QT20240115") == 1


def test_next_sequence_uses_highest_numeric_suffix():
    numbers = ["QT20240115001", "QT20240115007", "QT20240115003", "QT20240114099"]
    assert next_sequence(numbers, "QT20240115") == 8


def test_next_sequence_ignores_manual_numbers():
    numbers = ["QT20240115002", "QT20240115-CUSTOM", None]
    assert next_sequence(numbers, "QT20240115") == 3


def test_status_transition_forward():
    assert validate_status_transition("DRAFT", "SENT") is True
    assert validate_status_transition("SENT", "ACCEPTED") is True
    assert validate_status_transition("SENT", "EXPIRED") is True


def test_status_transition_same_status_is_noop():
    assert validate_status_transition("SENT", "SENT") is False


@pytest.mark.parametrize("current,new", [
    ("DRAFT", "ACCEPTED"),
    ("ACCEPTED", "DRAFT"),
    ("REJECTED", "SENT"),
    ("SENT", "DRAFT"),
])
def test_status_transition_forbidden(current, new):
    with pytest.raises(ValidationException):
        validate_status_transition(current, new)


def test_status_transition_unknown_status():
    with pytest.raises(ValidationException):
        validate_status_transition("DRAFT", "ARCHIVED")
