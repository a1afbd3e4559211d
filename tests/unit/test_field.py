"""
Unit tests for field element handling.
"""

import pytest

from umbra.core.field import (
    FIELD_MODULUS,
    field_element_to_bytes,
    format_field_element,
    is_canonical,
    to_field_element,
)
from umbra.exceptions import InvalidFieldElementError


BN254_R = 21888242871839275222246405745257275088548364400416034343698204186575808495617


class TestFieldModulus:

    def test_modulus_is_bn254_scalar_field(self):
        assert FIELD_MODULUS == BN254_R


class TestIsCanonical:

    @pytest.mark.parametrize("value", [0, 1, 12345, BN254_R - 1])
    def test_canonical_values(self, value):
        assert is_canonical(value)

    @pytest.mark.parametrize("value", [-1, BN254_R, BN254_R + 1, 2 ** 256])
    def test_out_of_range_values(self, value):
        assert not is_canonical(value)

    @pytest.mark.parametrize("value", [True, False, 1.0, "1", None, b"\x01"])
    def test_non_int_values(self, value):
        assert not is_canonical(value)


class TestToFieldElement:

    def test_int_passthrough(self):
        assert to_field_element(42) == 42

    def test_hex_string(self):
        assert to_field_element("0x2a") == 42
        assert to_field_element("0X2A") == 42

    def test_decimal_string(self):
        assert to_field_element("42") == 42

    def test_surrounding_whitespace(self):
        assert to_field_element("  0x2a\n") == 42

    def test_rejects_negative(self):
        with pytest.raises(InvalidFieldElementError, match="non-negative"):
            to_field_element(-5)

    def test_rejects_non_reduced(self):
        """The modulus itself denotes 0 but is not canonical."""
        with pytest.raises(InvalidFieldElementError, match="not reduced"):
            to_field_element(BN254_R)

    def test_rejects_non_reduced_hex(self):
        with pytest.raises(InvalidFieldElementError):
            to_field_element(hex(BN254_R + 7))

    def test_rejects_garbage_string(self):
        with pytest.raises(InvalidFieldElementError, match="not a number"):
            to_field_element("0xnothex", "commitment")

    def test_rejects_bool(self):
        with pytest.raises(InvalidFieldElementError, match="bool"):
            to_field_element(True)

    def test_rejects_float(self):
        with pytest.raises(InvalidFieldElementError):
            to_field_element(1.5)

    def test_error_names_argument(self):
        with pytest.raises(InvalidFieldElementError, match="fee"):
            to_field_element(-1, "fee")


class TestFormatting:

    def test_format_pads_to_64_digits(self):
        formatted = format_field_element(1)
        assert formatted == "0x" + "0" * 63 + "1"
        assert len(formatted) == 66

    def test_format_parse_identity(self):
        value = BN254_R - 12345
        assert to_field_element(format_field_element(value)) == value

    def test_to_bytes_is_32_byte_big_endian(self):
        encoded = field_element_to_bytes(0x0102)
        assert len(encoded) == 32
        assert encoded[-2:] == b"\x01\x02"
        assert encoded[:30] == b"\x00" * 30
