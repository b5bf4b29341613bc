"""
Shared input bounds.

Every counter and amount is stored in a signed 64-bit INTEGER column, so
values above ``MAX_INT`` are rejected before they reach the database.
"""

from .errors import InvalidInput

MAX_INT = 2 ** 63 - 1


def check_int(name: str, value: int, minimum: int = 0, maximum: int = MAX_INT, error=InvalidInput) -> int:
    if value < minimum or value > maximum:
        raise error(f"{name} must be between {minimum} and {maximum}")
    return value


def check_sum(name: str, current: int, amount: int) -> int:
    """``current + amount``, rejected when it would not fit the column."""
    total = current + amount
    if total > MAX_INT:
        raise InvalidInput(f"{name} would exceed {MAX_INT}")
    return total


def utf8_size(value, error=InvalidInput) -> int:
    try:
        return len((value or "").encode("utf-8"))
    except UnicodeEncodeError:
        raise error("text is not valid UTF-8")
