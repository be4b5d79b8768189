"""Conversion of broker JSON leaves into sample values"""
import math
import re
from typing import Union


_BYTE_UNITS = {
    "": 1,
    "K": 1024,
    "M": 1024 ** 2,
    "G": 1024 ** 3,
    "T": 1024 ** 4,
    "P": 1024 ** 5,
    "E": 1024 ** 6,
}

_BYTES_PATTERN = re.compile(r"^(-?\d+(?:\.\d+)?)\s?(?:([KMGTPE])(?:I?B)?|B)?$", re.IGNORECASE)

_FLOAT_PATTERN = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$")


def parse_float(text: str) -> float:
    """Strict decimal parse: no padding, separators or non-finite words"""
    if not _FLOAT_PATTERN.match(text):
        raise ValueError(f"not a decimal number: {text!r}")
    value = float(text)
    if not math.isfinite(value):
        raise ValueError(f"not a finite number: {text!r}")
    return value


def parse_bytes(text: str) -> float:
    """Parse a human readable byte size such as ``123.19M`` or ``4GiB``.

    Units are powers of 1024. The resulting byte count is truncated to a
    whole number of bytes.
    """
    match = _BYTES_PATTERN.match(text.strip())
    if not match:
        raise ValueError(f"byte quantity must be a positive number with a unit like K, M, G, T or P: {text!r}")

    quantity = float(match.group(1))
    if quantity <= 0:
        raise ValueError(f"byte quantity must be a positive number: {text!r}")

    unit = (match.group(2) or "").upper()
    total = quantity * _BYTE_UNITS[unit]
    if not math.isfinite(total):
        raise ValueError(f"byte quantity out of range: {text!r}")
    return float(int(total))


def parse_value(leaf: Union[str, int, float]) -> float:
    """Coerce a number or numeric string into a float sample value.

    Raises ValueError when a string is neither a decimal number nor a byte size,
    and for numbers that are not finite or do not fit in a float.
    """
    if not isinstance(leaf, str):
        try:
            value = float(leaf)
        except OverflowError:
            raise ValueError(f"number out of range: {leaf!r}") from None
        if not math.isfinite(value):
            raise ValueError(f"not a finite number: {leaf!r}")
        return value

    try:
        return parse_float(leaf)
    except ValueError:
        return parse_bytes(leaf)
