# stock_api/validation.py
"""
Business rules for product payloads.

Pure functions: no I/O, no DB access. They either return a normalized value
ready to persist or raise a ``ValidationError`` subclass whose message is safe
to show to the client.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

# quantities at or below this value get a low-stock advisory
LOW_STOCK_THRESHOLD = 3

# largest value a 32-bit signed INTEGER column holds
MAX_QUANTITY = 2**31 - 1

# matches the products.name column width
MAX_NAME_LENGTH = 100

# optional sign + ASCII digits; no decimals, no exponent
_INT_RE = re.compile(r"^[+-]?[0-9]+$")


class ValidationError(ValueError):
    """Client-side problem with a product payload."""
    message = "Invalid product data."

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)


class MissingName(ValidationError):
    message = "Product name is required."


class MissingQuantity(ValidationError):
    message = "Quantity is required."


class InvalidQuantity(ValidationError):
    message = "Quantity must be a positive integer."


class NameTooLong(ValidationError):
    message = f"Product name must be at most {MAX_NAME_LENGTH} characters."


@dataclass(frozen=True)
class ValidatedQuantity:
    quantity: int

    @property
    def low_stock(self) -> bool:
        return is_low_stock(self.quantity)


@dataclass(frozen=True)
class ValidatedProduct(ValidatedQuantity):
    name: str = ""


def is_low_stock(quantity: int) -> bool:
    return quantity <= LOW_STOCK_THRESHOLD


def _is_absent(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def coerce_quantity(value: Any) -> int:
    """
    Accepts an int (bool excluded) or an integer numeric string such as ``"12"``.
    Floats are rejected even when integral; nothing is truncated.
    Values above MAX_QUANTITY are rejected instead of overflowing the column.
    """
    if isinstance(value, bool):
        raise InvalidQuantity()
    if isinstance(value, int):
        qty = value
    elif isinstance(value, str) and _INT_RE.match(value.strip()):
        digits = value.strip().lstrip("+-").lstrip("0")
        # bounded before int() so huge strings never reach the conversion
        if len(digits) > len(str(MAX_QUANTITY)):
            raise InvalidQuantity()
        qty = int(value.strip())
    else:
        raise InvalidQuantity()
    if qty <= 0 or qty > MAX_QUANTITY:
        raise InvalidQuantity()
    return qty


def validate_product(name: Any, quantity: Any) -> ValidatedProduct:
    """Validate a full (name, quantity) payload used by create and full update."""
    if not isinstance(name, str) or not name.strip():
        raise MissingName()
    name = name.strip()
    if len(name) > MAX_NAME_LENGTH:
        raise NameTooLong()
    if _is_absent(quantity):
        raise MissingQuantity()
    return ValidatedProduct(name=name, quantity=coerce_quantity(quantity))


def validate_quantity_only(quantity: Any) -> ValidatedQuantity:
    """Quantity-only path; absent counts as invalid here."""
    if _is_absent(quantity):
        raise InvalidQuantity()
    return ValidatedQuantity(quantity=coerce_quantity(quantity))
