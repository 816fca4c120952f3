"""Human-readable identifier generation."""

import secrets
import time

_BASE36_ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"


def to_base36(value: int) -> str:
    if value < 0:
        raise ValueError("base36 encoding requires a non-negative integer")
    if value == 0:
        return "0"
    digits: list[str] = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36_ALPHABET[remainder])
    return "".join(reversed(digits))


def generate_order_number() -> str:
    """Return an order number like ``ORD-LZ3K9Q1A-4F09C2``."""
    timestamp = to_base36(int(time.time() * 1000))
    random_part = secrets.token_hex(3).upper()
    return f"ORD-{timestamp}-{random_part}"
