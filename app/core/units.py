from decimal import Decimal

from eth_utils import from_wei


def format_ether(amount_wei: int) -> str:
    """Render a wei amount as an exact ether string.

    The result always carries a fractional part, so ``0`` becomes ``"0.0"``
    and one ether becomes ``"1.0"``.
    """
    text = format(Decimal(from_wei(int(amount_wei or 0), "ether")), "f")
    if "." not in text:
        return f"{text}.0"
    text = text.rstrip("0")
    if text.endswith("."):
        text += "0"
    return text


def to_decimal_string(value) -> str | None:
    """Serialize an integer-valued column (int or Decimal) without exponent or fraction."""
    if value is None:
        return None
    return str(int(value))
