import pytest

from core.base_types import Address, hex_to_bytes, to_address, to_quantity, to_uint
from core.errors import EncodingError, ValidationError


def test_address_invalid_raises():
    with pytest.raises(ValidationError, match="Invalid Ethereum address"):
        Address("invalid")


def test_address_case_insensitive_equality():
    lower = Address("0x000000000000000000000000000000000000dead")
    upper = Address("0x000000000000000000000000000000000000DEAD")
    assert lower == upper
    assert hash(lower) == hash(upper)
    assert lower == "0x000000000000000000000000000000000000DEAD"


def test_address_zero_and_raw():
    zero = Address("0x" + "00" * 20)
    assert zero.is_zero
    assert zero.raw == b"\x00" * 20
    assert not Address("0x" + "11" * 20).is_zero


def test_to_address_names_field():
    with pytest.raises(ValidationError, match="sender is required"):
        to_address("", "sender")
    with pytest.raises(ValidationError, match="Invalid address for tokenIn"):
        to_address("0x1234", "tokenIn")


def test_to_uint_accepts_decimal_and_hex_strings():
    assert to_uint("1000000", "amountIn") == 1_000_000
    assert to_uint("0x10", "amountIn") == 16
    assert to_uint(2**200, "amountIn") == 2**200


def test_to_uint_rejects_float_and_bool():
    with pytest.raises(ValidationError, match="not float"):
        to_uint(1.5, "amountIn")
    with pytest.raises(ValidationError):
        to_uint(True, "amountIn")


def test_to_uint_rejects_negative_and_garbage():
    with pytest.raises(ValidationError, match="non-negative"):
        to_uint(-1, "amountIn")
    with pytest.raises(ValidationError, match="Invalid integer"):
        to_uint("1e18", "amountIn")


def test_to_uint_enforces_width():
    with pytest.raises(ValidationError, match="128 bits"):
        to_uint(2**128, "gas", max_value=2**128 - 1)


def test_hex_to_bytes_errors_are_encoding_errors():
    assert hex_to_bytes("0x", "data") == b""
    assert hex_to_bytes("0xabcd", "data") == b"\xab\xcd"
    with pytest.raises(EncodingError, match="Odd-length"):
        hex_to_bytes("0xabc", "data")
    with pytest.raises(EncodingError, match="Invalid hex"):
        hex_to_bytes("abcd", "data")


def test_to_quantity_has_no_leading_zeros():
    assert to_quantity(0) == "0x0"
    assert to_quantity(255) == "0xff"
