"""Recent-history block scan for native transfers touching one address.

The scan walks backwards from the chain head, one block at a time, and stops
once ``limit`` matches are collected or the block window is used up. The
window is a density heuristic (``limit * blocks_per_result`` blocks, capped at
``max_blocks``), so sparse or old activity can be missed; the cap keeps the
RPC cost of a single sync bounded.

Receipt/detail lookups for matches in the same block are independent and run
concurrently behind a semaphore. Results keep head-first block order and the
block's own transaction order regardless of which lookup finishes first.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Sequence, Union

from app.core.units import format_ether
from app.models.transaction import TxStatus
from app.services.chain import ChainBlock, ChainReader, ChainReceipt, ChainTransaction

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScanPolicy:
    blocks_per_result: int = 10
    max_blocks: int = 1000
    concurrency: int = 5
    timeout_seconds: Optional[float] = 60.0

    def window(self, limit: int) -> int:
        return max(0, min(limit * self.blocks_per_result, self.max_blocks))

    @classmethod
    def from_settings(cls, settings) -> "ScanPolicy":
        return cls(
            blocks_per_result=settings.SCAN_BLOCKS_PER_RESULT,
            max_blocks=settings.SCAN_MAX_BLOCKS,
            concurrency=settings.SCAN_CONCURRENCY,
            timeout_seconds=settings.SCAN_TIMEOUT_SECONDS,
        )


def block_time(timestamp: Optional[int]) -> datetime:
    """Naive UTC datetime for a block timestamp; now when the block is unknown."""
    if timestamp is None:
        return datetime.utcnow()
    return datetime.fromtimestamp(int(timestamp), tz=timezone.utc).replace(tzinfo=None)


@dataclass(frozen=True)
class NormalizedTransaction:
    """Chain data reduced to the cached row's columns."""

    hash: str
    from_address: str
    to_address: str
    amount: str
    block_number: int
    gas_used: Optional[int]
    gas_price: Optional[int]
    timestamp: datetime
    status: TxStatus

    @classmethod
    def from_chain(
        cls,
        tx: ChainTransaction,
        receipt: Optional[ChainReceipt],
        *,
        timestamp: Optional[int],
        block_number: Optional[int] = None,
        gas_price: Optional[int] = None,
    ) -> "NormalizedTransaction":
        if block_number is None:
            block_number = tx.block_number or 0
        return cls(
            hash=tx.hash.lower(),
            from_address=(tx.from_address or "").lower(),
            to_address=(tx.to_address or "").lower(),
            amount=format_ether(tx.value),
            block_number=int(block_number),
            gas_used=receipt.gas_used if receipt else None,
            gas_price=gas_price if gas_price is not None else tx.gas_price,
            timestamp=block_time(timestamp),
            # A missing receipt counts as failed.
            status=TxStatus.success if receipt is not None and receipt.status == 1 else TxStatus.failed,
        )

    def as_fields(self) -> dict:
        return {
            "hash": self.hash,
            "from_address": self.from_address,
            "to_address": self.to_address,
            "amount": self.amount,
            "block_number": self.block_number,
            "gas_used": self.gas_used,
            "gas_price": self.gas_price,
            "timestamp": self.timestamp,
            "status": self.status,
        }


@dataclass
class ScanResult:
    transactions: list[NormalizedTransaction] = field(default_factory=list)
    blocks_scanned: int = 0
    # Matches dropped because their receipt/detail lookup failed.
    skipped: int = 0
    failed_blocks: int = 0
    timed_out: bool = False


def _touches(entry: Union[ChainTransaction, str], address: str) -> bool:
    if not isinstance(entry, ChainTransaction):
        return False
    sender = (entry.from_address or "").lower()
    recipient = (entry.to_address or "").lower()
    if address not in (sender, recipient):
        return False
    return entry.value > 0


async def _enrich(
    chain: ChainReader,
    block: ChainBlock,
    tx: ChainTransaction,
    semaphore: asyncio.Semaphore,
) -> Optional[NormalizedTransaction]:
    async with semaphore:
        receipt, detail = await asyncio.gather(
            chain.get_transaction_receipt(tx.hash),
            chain.get_transaction(tx.hash),
            return_exceptions=True,
        )
    for outcome in (receipt, detail):
        if isinstance(outcome, Exception):
            logger.warning("Error fetching receipt for %s: %s", tx.hash, outcome)
            return None
    return NormalizedTransaction.from_chain(
        tx,
        receipt,
        timestamp=block.timestamp,
        block_number=block.number,
        gas_price=detail.gas_price if detail is not None else None,
    )


async def _collect_from_block(
    chain: ChainReader,
    block: ChainBlock,
    candidates: Sequence[ChainTransaction],
    limit: int,
    semaphore: asyncio.Semaphore,
    result: ScanResult,
) -> None:
    pending = list(candidates)
    while pending and len(result.transactions) < limit:
        # Never look up more matches than can still be used.
        needed = limit - len(result.transactions)
        batch, pending = pending[:needed], pending[needed:]
        enriched = await asyncio.gather(*(_enrich(chain, block, tx, semaphore) for tx in batch))
        for item in enriched:
            if item is None:
                result.skipped += 1
            else:
                result.transactions.append(item)


async def collect_wallet_transactions(
    chain: ChainReader,
    address: str,
    limit: int,
    policy: Optional[ScanPolicy] = None,
) -> ScanResult:
    """Return up to ``limit`` non-zero native transfers to or from ``address``."""
    policy = policy or ScanPolicy()
    normalized = address.lower()
    result = ScanResult()
    if limit <= 0:
        return result

    head = await chain.get_block_number()
    budget = policy.window(limit)
    deadline = time.monotonic() + policy.timeout_seconds if policy.timeout_seconds else None
    semaphore = asyncio.Semaphore(max(1, policy.concurrency))

    for offset in range(budget):
        if len(result.transactions) >= limit:
            break
        number = head - offset
        if number < 0:
            break
        if deadline is not None and time.monotonic() >= deadline:
            result.timed_out = True
            logger.warning(
                "Scan for %s stopped after %d blocks: time budget of %ss exhausted",
                normalized,
                result.blocks_scanned,
                policy.timeout_seconds,
            )
            break

        result.blocks_scanned += 1
        try:
            block = await chain.get_block(number, full_transactions=True)
        except Exception as e:
            result.failed_blocks += 1
            logger.warning("Error fetching block %d: %s", number, e)
            continue
        if block is None:
            continue

        candidates = [entry for entry in block.transactions if _touches(entry, normalized)]
        if candidates:
            await _collect_from_block(chain, block, candidates, limit, semaphore, result)

    logger.debug(
        "Scanned %d blocks from %d for %s: %d found, %d skipped",
        result.blocks_scanned,
        head,
        normalized,
        len(result.transactions),
        result.skipped,
    )
    return result
