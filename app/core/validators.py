import re
from typing import Optional

from eth_utils import is_checksum_address

from app.services.errors import InvalidInputError
from app.models.transaction import TransferDirection

MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 20
# Largest page whose offset still fits a signed 64-bit OFFSET.
MAX_PAGE = (2**63 - 1) // MAX_PAGE_SIZE + 1

_re_eth = re.compile(r"^0x[a-fA-F0-9]{40}$")
_re_tx_hash = re.compile(r"^0x[a-fA-F0-9]{64}$")


def is_eth_address(addr: str) -> bool:
    """Accept all-lower, all-upper or EIP-55 checksummed addresses."""
    if not _re_eth.match(addr or ""):
        return False
    body = addr[2:]
    if body == body.lower() or body == body.upper():
        return True
    return is_checksum_address(addr)


def is_tx_hash(value: str) -> bool:
    return bool(_re_tx_hash.match(value or ""))


def require_address(addr: str) -> str:
    if not is_eth_address(addr):
        raise InvalidInputError("Invalid wallet address")
    return addr


def require_tx_hash(value: str) -> str:
    if not is_tx_hash(value):
        raise InvalidInputError("Invalid transaction hash")
    return value


def _parse_int(raw, default: int) -> Optional[int]:
    if raw is None or raw == "":
        return default
    try:
        return int(str(raw).strip())
    except ValueError:
        return None


def parse_page(raw) -> int:
    page = _parse_int(raw, 1)
    if page is None or page < 1 or page > MAX_PAGE:
        raise InvalidInputError("Invalid page number")
    return page


def parse_limit(raw, default: int = DEFAULT_PAGE_SIZE) -> int:
    limit = _parse_int(raw, default)
    if limit is None or limit < 1 or limit > MAX_PAGE_SIZE:
        raise InvalidInputError(f"Invalid limit (1-{MAX_PAGE_SIZE})")
    return limit


def parse_direction(raw: Optional[str]) -> TransferDirection:
    if raw is None or raw == "":
        return TransferDirection.all
    try:
        return TransferDirection(raw.strip().lower())
    except ValueError as exc:
        raise InvalidInputError("Invalid transaction type") from exc
