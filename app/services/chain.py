"""Read-only Ethereum JSON-RPC access.

``ChainReader`` is the only place that talks to the node. It converts web3
responses into small frozen dataclasses so the rest of the service never
touches ``AttributeDict``/``HexBytes``, maps "not found" to ``None``, and
retries transient transport failures with exponential backoff.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Optional, Union

from cachetools import LRUCache
from fastapi import Request
from web3 import AsyncWeb3
from web3.exceptions import BlockNotFound, TransactionNotFound, Web3Exception
from web3.providers import AsyncHTTPProvider

from app.config import Settings

logger = logging.getLogger(__name__)

_NOT_FOUND = (BlockNotFound, TransactionNotFound)
_TRANSIENT = (Web3Exception, asyncio.TimeoutError, OSError)


class ChainReaderError(Exception):
    """Raised when an RPC call keeps failing after all retries."""


@dataclass(frozen=True)
class ChainTransaction:
    hash: str
    from_address: str
    to_address: Optional[str]  # None for contract creation
    value: int
    block_number: Optional[int]  # None while pending
    gas_price: Optional[int]


@dataclass(frozen=True)
class ChainReceipt:
    status: Optional[int]
    gas_used: Optional[int]


@dataclass(frozen=True)
class ChainBlock:
    number: int
    timestamp: int
    # Full bodies when fetched with ``full_transactions=True``, hashes otherwise.
    transactions: tuple[Union[ChainTransaction, str], ...] = ()


# -------------------
# Helpers
# -------------------

def _hex(value: Any) -> str:
    if isinstance(value, str):
        return value if value.startswith("0x") else f"0x{value}"
    return AsyncWeb3.to_hex(value)


def _optional_int(value: Any) -> Optional[int]:
    return int(value) if value is not None else None


def _to_transaction(raw: Any) -> ChainTransaction:
    return ChainTransaction(
        hash=_hex(raw["hash"]),
        from_address=raw.get("from") or "",
        to_address=raw.get("to"),
        value=int(raw.get("value") or 0),
        block_number=_optional_int(raw.get("blockNumber")),
        gas_price=_optional_int(raw.get("gasPrice")),
    )


def _to_receipt(raw: Any) -> ChainReceipt:
    return ChainReceipt(
        status=_optional_int(raw.get("status")),
        gas_used=_optional_int(raw.get("gasUsed")),
    )


def _to_block(raw: Any) -> ChainBlock:
    entries = []
    for entry in raw.get("transactions") or []:
        if isinstance(entry, (str, bytes, bytearray)):
            entries.append(_hex(entry))
        else:
            entries.append(_to_transaction(entry))
    return ChainBlock(
        number=int(raw["number"]),
        timestamp=int(raw.get("timestamp") or 0),
        transactions=tuple(entries),
    )


# -------------------
# Client
# -------------------

class ChainReader:
    """Thin async wrapper over ``AsyncWeb3`` with retry and a block cache."""

    def __init__(
        self,
        rpc_url: str,
        *,
        timeout_seconds: float = 30.0,
        max_retries: int = 3,
        retry_delay_seconds: float = 0.5,
        block_cache_size: int = 256,
        w3: Optional[AsyncWeb3] = None,
    ) -> None:
        self._rpc_url = rpc_url
        self._timeout = timeout_seconds
        self._max_retries = max(1, max_retries)
        self._retry_delay = retry_delay_seconds
        self._w3 = w3 or AsyncWeb3(AsyncHTTPProvider(rpc_url))
        # Blocks never change once fetched (reorgs are not handled).
        self._blocks: LRUCache = LRUCache(maxsize=max(1, block_cache_size))

    async def _execute_with_retry(self, func_name: str, *args: Any, **kwargs: Any) -> Any:
        delay = self._retry_delay
        last_error: Optional[BaseException] = None
        for attempt in range(self._max_retries):
            try:
                method = getattr(self._w3.eth, func_name)
                return await asyncio.wait_for(method(*args, **kwargs), timeout=self._timeout)
            except _NOT_FOUND:
                raise
            except _TRANSIENT as exc:
                last_error = exc
                logger.warning(
                    "RPC %s failed (attempt %d/%d): %s",
                    func_name,
                    attempt + 1,
                    self._max_retries,
                    exc,
                )
                if attempt < self._max_retries - 1:
                    await asyncio.sleep(delay)
                    delay *= 2
        raise ChainReaderError(
            f"RPC call {func_name} failed after {self._max_retries} attempts: {last_error}"
        ) from last_error

    async def get_balance(self, address: str) -> int:
        """Current balance of ``address`` in wei."""
        balance = await self._execute_with_retry(
            "get_balance", AsyncWeb3.to_checksum_address(address)
        )
        return int(balance)

    async def get_block_number(self) -> int:
        return int(await self._execute_with_retry("get_block_number"))

    async def get_block(self, number: int, full_transactions: bool = False) -> Optional[ChainBlock]:
        key = (int(number), bool(full_transactions))
        cached = self._blocks.get(key)
        if cached is not None:
            return cached
        try:
            raw = await self._execute_with_retry(
                "get_block", int(number), full_transactions=full_transactions
            )
        except BlockNotFound:
            return None
        block = _to_block(raw)
        self._blocks[key] = block
        return block

    async def get_transaction(self, tx_hash: str) -> Optional[ChainTransaction]:
        try:
            raw = await self._execute_with_retry("get_transaction", tx_hash)
        except TransactionNotFound:
            return None
        return _to_transaction(raw)

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[ChainReceipt]:
        try:
            raw = await self._execute_with_retry("get_transaction_receipt", tx_hash)
        except TransactionNotFound:
            return None
        return _to_receipt(raw)

    async def aclose(self) -> None:
        """Close the provider's HTTP session, if it opened one."""
        disconnect = getattr(self._w3.provider, "disconnect", None)
        if not callable(disconnect):
            return
        try:
            result = disconnect()
            if asyncio.iscoroutine(result):
                await result
        except Exception as e:
            logger.warning("Failed to close RPC provider session: %s", e)


def create_chain_reader(settings: Settings) -> ChainReader:
    if not settings.ETHEREUM_RPC_URL:
        logger.warning("ETHEREUM_RPC_URL not set, using default Sepolia RPC")
    return ChainReader(
        settings.rpc_url,
        timeout_seconds=settings.RPC_TIMEOUT_SECONDS,
        max_retries=settings.RPC_MAX_RETRIES,
        retry_delay_seconds=settings.RPC_RETRY_DELAY_SECONDS,
        block_cache_size=settings.BLOCK_CACHE_SIZE,
    )


def get_chain_reader(request: Request) -> ChainReader:
    """FastAPI dependency returning the process-wide reader built at startup."""
    return request.app.state.chain_reader
