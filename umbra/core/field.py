"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
Umbra, a product of Garudex Labs

Field element handling for Umbra Ledger.

Every hash, commitment, nullifier hash, tree node and public input is an
element of the BN254 scalar field. Only canonical values (0 <= x < r) are
accepted, so that the ledger and the proof circuit never disagree about which
integer a value denotes.
"""

from typing import Union

from py_ecc.bn128 import curve_order

from umbra.exceptions import InvalidFieldElementError

FIELD_MODULUS: int = curve_order

# Width of a serialized field element in bytes
FIELD_ELEMENT_BYTES = 32

FieldLike = Union[int, str]


def is_canonical(value: int) -> bool:
    """Return True if value is an int in [0, r)."""
    return isinstance(value, int) and not isinstance(value, bool) and 0 <= value < FIELD_MODULUS


def to_field_element(value: FieldLike, name: str = "value") -> int:
    """
    Convert an int or hex string into a canonical field element.

    Args:
        value: Integer, or string in decimal or 0x-prefixed hex
        name: Argument name used in error messages

    Returns:
        The value as an int

    Raises:
        InvalidFieldElementError: If value is not a canonical field element
    """
    if isinstance(value, bool):
        raise InvalidFieldElementError(f"{name} must be an integer, got bool")

    if isinstance(value, str):
        text = value.strip()
        try:
            if text.lower().startswith("0x"):
                parsed = int(text[2:], 16)
            else:
                parsed = int(text, 10)
        except ValueError:
            raise InvalidFieldElementError(f"{name} is not a number: {value!r}")
        value = parsed

    if not isinstance(value, int):
        raise InvalidFieldElementError(
            f"{name} must be an int or string, got {type(value).__name__}"
        )

    if value < 0:
        raise InvalidFieldElementError(f"{name} must be non-negative, got {value}")

    if value >= FIELD_MODULUS:
        raise InvalidFieldElementError(
            f"{name} is not reduced modulo the field prime: {hex(value)}"
        )

    return value


def format_field_element(value: int) -> str:
    """Format a field element as a 0x-prefixed, 64-digit hex string."""
    return "0x" + format(value, "064x")


def field_element_to_bytes(value: int) -> bytes:
    """Encode a field element as 32 big-endian bytes."""
    return value.to_bytes(FIELD_ELEMENT_BYTES, "big")
