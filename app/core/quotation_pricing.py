"""
Quotation pricing, numbering and status rules.
Pure functions, no database access.
"""

from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterable, List, Tuple

from app.core.exceptions import ValidationException

TWO_PLACES = Decimal("0.01")

QUOTATION_STATUSES = ("DRAFT", "SENT", "ACCEPTED", "REJECTED", "EXPIRED")
OPEN_STATUSES = ("DRAFT", "SENT")

# Allowed moves out of each status; terminal states have none
STATUS_TRANSITIONS: Dict[str, Tuple[str, ...]] = {
    "DRAFT": ("SENT",),
    "SENT": ("ACCEPTED", "REJECTED", "EXPIRED"),
    "ACCEPTED": (),
    "REJECTED": (),
    "EXPIRED": (),
}


def to_money(value: Any) -> Decimal:
    """Quantize to cents, half-up."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def line_total(quantity: int, unit_price: Any) -> Decimal:
    return to_money(Decimal(quantity) * to_money(unit_price))


def price_items(items: Iterable[Dict[str, Any]]) -> Tuple[List[Dict[str, Any]], Decimal]:
    """
    Compute total_price per item and the quotation total.

    Args:
        items: dicts with quantity and unit_price

    Returns:
        Tuple of (items with line_number and total_price, total_amount)

    Raises:
        ValidationException: Non-positive quantity or negative price
    """
    priced = []
    total = Decimal("0.00")
    for index, item in enumerate(items, start=1):
        quantity = item.get("quantity", 1)
        if quantity is None or int(quantity) != quantity or quantity < 1:
            raise ValidationException(
                f"Item {index}: quantity must be a positive integer",
                details={"line_number": index}
            )
        unit_price = to_money(item["unit_price"])
        if unit_price < 0:
            raise ValidationException(
                f"Item {index}: unit price cannot be negative",
                details={"line_number": index}
            )
        total_price = line_total(int(quantity), unit_price)
        priced.append({
            **item,
            "line_number": index,
            "quantity": int(quantity),
            "unit_price": unit_price,
            "total_price": total_price,
        })
        total += total_price
    return priced, to_money(total)


def quotation_number_prefix(prefix: str, for_date: date) -> str:
    return f"{prefix}{for_date.strftime('%Y%m%d')}"


def next_sequence(existing_numbers: Iterable[str], day_prefix: str) -> int:
    """
    One past the highest numeric suffix among numbers issued for the day.

    Suffixes are read in full, so the count keeps going past the padding
    width (..999 is followed by ..1000). Numbers with a non-numeric suffix
    were entered by hand and are ignored.
    """
    highest = 0
    for number in existing_numbers:
        if not number or not number.startswith(day_prefix):
            continue
        suffix = number[len(day_prefix):]
        if suffix.isdigit():
            highest = max(highest, int(suffix))
    return highest + 1


def format_quotation_number(day_prefix: str, sequence: int, width: int = 3) -> str:
    """QT20240115 + 7 -> QT20240115007"""
    return f"{day_prefix}{sequence:0{width}d}"


def validate_status_transition(current: str, new: str) -> bool:
    """
    Returns:
        False when the status is unchanged, True when it moves

    Raises:
        ValidationException: Unknown status or a move the workflow forbids
    """
    if new not in QUOTATION_STATUSES:
        raise ValidationException(f"Invalid quotation status: {new}")
    if current == new:
        return False
    if new not in STATUS_TRANSITIONS.get(current, ()):
        raise ValidationException(
            f"Cannot change quotation status from {current} to {new}",
            details={"current_status": current, "requested_status": new}
        )
    return True
