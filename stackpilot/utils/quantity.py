"""Kubernetes resource quantity parsing and formatting."""

import re
from decimal import Decimal, InvalidOperation
from typing import Optional, Union

BINARY_SUFFIXES = {
    "Ki": Decimal(1024),
    "Mi": Decimal(1024**2),
    "Gi": Decimal(1024**3),
    "Ti": Decimal(1024**4),
    "Pi": Decimal(1024**5),
    "Ei": Decimal(1024**6),
}

DECIMAL_SUFFIXES = {
    "n": Decimal("1e-9"),
    "u": Decimal("1e-6"),
    "m": Decimal("1e-3"),
    "": Decimal(1),
    "k": Decimal("1e3"),
    "M": Decimal("1e6"),
    "G": Decimal("1e9"),
    "T": Decimal("1e12"),
    "P": Decimal("1e15"),
    "E": Decimal("1e18"),
}

_QUANTITY_RE = re.compile(r"^([+-]?(?:\d+\.?\d*|\.\d+))(?:[eE]([+-]?\d+))?([a-zA-Z]*)$")

# Largest unit first so "2Gi" is preferred over "2048Mi"
_FORMAT_BINARY = ["Ei", "Pi", "Ti", "Gi", "Mi", "Ki"]


def parse_quantity(value: Optional[Union[str, int, float]]) -> Decimal:
    """Parse a quantity such as ``500m``, ``4``, ``16Gi`` or ``1e3`` into a Decimal.

    Missing values parse as zero. Raises ``ValueError`` on malformed input.
    """
    if value is None:
        return Decimal(0)
    if isinstance(value, (int, float)):
        return Decimal(str(value))

    text = value.strip()
    if not text:
        return Decimal(0)

    match = _QUANTITY_RE.match(text)
    if not match:
        raise ValueError(f"Invalid quantity: {value!r}")

    number, exponent, suffix = match.groups()
    try:
        amount = Decimal(number)
    except InvalidOperation as e:
        raise ValueError(f"Invalid quantity: {value!r}") from e

    if exponent is not None:
        if suffix:
            raise ValueError(f"Invalid quantity: {value!r}")
        return amount * (Decimal(10) ** int(exponent))

    if suffix in BINARY_SUFFIXES:
        return amount * BINARY_SUFFIXES[suffix]
    if suffix in DECIMAL_SUFFIXES:
        return amount * DECIMAL_SUFFIXES[suffix]
    raise ValueError(f"Unknown quantity suffix {suffix!r} in {value!r}")


def format_quantity(value: Decimal, resource: str = "cpu") -> str:
    """Format a Decimal back into a canonical quantity string.

    CPU values are rendered as whole cores when integral and as millicores
    otherwise. Byte-valued resources use the largest binary suffix that
    divides the value exactly.
    """
    if value == 0:
        return "0"

    if resource == "cpu":
        if value == value.to_integral_value():
            return str(int(value))
        return f"{int(value * 1000)}m"

    whole = int(value)
    for suffix in _FORMAT_BINARY:
        unit = int(BINARY_SUFFIXES[suffix])
        if whole % unit == 0:
            return f"{whole // unit}{suffix}"
    return str(whole)
