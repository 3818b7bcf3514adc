"""Identifier, clock and decimal helpers shared across the package."""

from __future__ import annotations

import time
import uuid
from decimal import (
    MAX_EMAX,
    MIN_EMIN,
    ROUND_HALF_EVEN,
    Context,
    Decimal,
    InvalidOperation,
)

DEFAULT_PRECISION = 8


def generate_uuid_id() -> uuid.UUID:
    """Return a new random (version 4) UUID."""
    return uuid.uuid4()


def get_utc_now_millis() -> int:
    """Return the current UTC time in milliseconds since the Unix epoch."""
    return time.time_ns() // 1_000_000


def get_uuid_string() -> str:
    """Return a new random UUID in its canonical string form."""
    return str(uuid.uuid4())


def with_prec(value: Decimal, precision: int) -> Decimal:
    """Return ``value`` expressed with exactly ``precision`` significant digits.

    Extra digits are rounded half to even; missing digits are padded with
    trailing zeros, which leaves the numeric value unchanged.
    """
    if precision < 1:
        raise ValueError("precision must be at least 1")
    value = Decimal(value)
    if not value.is_finite():
        raise ValueError(f"cannot set precision of non-finite value {value}")
    sign, digits, exponent = value.as_tuple()
    count = len(digits)
    if count > precision:
        context = Context(
            prec=precision, rounding=ROUND_HALF_EVEN, Emax=MAX_EMAX, Emin=MIN_EMIN
        )
        return context.plus(value)
    if count < precision:
        pad = precision - count
        return Decimal((sign, digits + (0,) * pad, exponent - pad))
    return value


def is_zero(value: Decimal) -> bool:
    """Tell whether ``value`` is zero at the default precision of 8 digits."""
    return is_zero_with_precision(value, DEFAULT_PRECISION)


def is_zero_with_precision(value: Decimal, precision: int) -> bool:
    """Tell whether ``value`` is zero at the given precision."""
    return with_prec(value, precision) == 0


def bigdecimal_from_str(value: str, field_name: str) -> Decimal:
    """Parse ``value`` as a decimal number, raising ``ValueError`` if it is not one."""
    message = f"Failed to parse {field_name} as decimal"
    try:
        decimal = Decimal(value)
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise ValueError(message) from exc
    if not decimal.is_finite():
        raise ValueError(message)
    return decimal


def validate_positive_decimal(value: str, field_name: str) -> Decimal:
    """Parse ``value`` and require it to be strictly greater than zero."""
    decimal = bigdecimal_from_str(value, field_name)
    if decimal <= 0:
        raise ValueError(f"{field_name} must be greater than zero")
    return decimal