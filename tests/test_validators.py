import pytest

from app.core.units import format_ether, to_decimal_string
from app.core.validators import (
    MAX_PAGE,
    is_eth_address,
    is_tx_hash,
    parse_direction,
    parse_limit,
    parse_page,
    require_address,
)
from app.models.transaction import TransferDirection
from app.services.errors import InvalidInputError

CHECKSUMMED = "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"


@pytest.mark.parametrize(
    "wei, expected",
    [
        (0, "0.0"),
        (10**18, "1.0"),
        (1_234_500_000_000_000_000, "1.2345"),
        (1, "0.000000000000000001"),
        (25 * 10**18, "25.0"),
        (2**256 - 1, "115792089237316195423570985008687907853269984665640564039457.584007913129639935"),
    ],
)
def test_format_ether_is_exact(wei, expected):
    assert format_ether(wei) == expected


def test_to_decimal_string_handles_decimal_and_none():
    from decimal import Decimal

    assert to_decimal_string(Decimal("18000000")) == "18000000"
    assert to_decimal_string(2**200) == str(2**200)
    assert to_decimal_string(None) is None


def test_address_validation_follows_checksum_rules():
    assert is_eth_address(CHECKSUMMED)
    assert is_eth_address(CHECKSUMMED.lower())
    assert is_eth_address("0x" + CHECKSUMMED[2:].upper())
    # One flipped letter breaks the EIP-55 checksum.
    assert not is_eth_address("0x5AAeb6053F3E94C9b9A09f33669435E7Ef1BeAed")
    assert not is_eth_address("0x1234")
    assert not is_eth_address("not_an_address")
    assert not is_eth_address("")


def test_require_address_raises_invalid_input():
    with pytest.raises(InvalidInputError) as exc_info:
        require_address("0xzz")
    assert exc_info.value.status_code == 400
    assert exc_info.value.message == "Invalid wallet address"


def test_tx_hash_pattern():
    assert is_tx_hash("0x" + "a" * 64)
    assert is_tx_hash("0x" + "AbC0" * 16)
    assert not is_tx_hash("0x" + "a" * 63)
    assert not is_tx_hash("a" * 66)
    assert not is_tx_hash("0x" + "g" * 64)


def test_pagination_defaults_and_bounds():
    assert parse_page(None) == 1
    assert parse_page("3") == 3
    assert parse_limit(None) == 20
    assert parse_limit("100") == 100
    assert parse_limit(5) == 5

    assert parse_page(str(MAX_PAGE)) == MAX_PAGE

    for bad in ("0", "-1", "abc", "1.5", str(MAX_PAGE + 1), "99999999999999999999"):
        with pytest.raises(InvalidInputError, match="Invalid page number"):
            parse_page(bad)
    for bad in ("0", "101", "ten"):
        with pytest.raises(InvalidInputError, match=r"Invalid limit \(1-100\)"):
            parse_limit(bad)


def test_parse_direction():
    assert parse_direction(None) is TransferDirection.all
    assert parse_direction("all") is TransferDirection.all
    assert parse_direction("sent") is TransferDirection.sent
    assert parse_direction("RECEIVED") is TransferDirection.received
    with pytest.raises(InvalidInputError):
        parse_direction("incoming")
