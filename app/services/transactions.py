from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import Optional, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from app.config import settings
from app.core.validators import require_address
from app.models.transaction import Transaction
from app.services.chain import ChainReader
from app.services.errors import TransactionNotFoundError, UpstreamError, WalletTrackerError
from app.services.scanner import NormalizedTransaction, ScanPolicy, collect_wallet_transactions
from app.services.wallets import ensure_wallet_record

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncSummary:
    synced: int
    new: int
    skipped: int = 0
    blocks_scanned: int = 0


async def find_transaction(db: AsyncSession, tx_hash: str) -> Optional[Transaction]:
    result = await db.execute(select(Transaction).where(Transaction.hash == tx_hash.lower()))
    return result.scalar_one_or_none()


def _apply_fields(row: Transaction, record: NormalizedTransaction) -> None:
    # The chain is authoritative: every refresh overwrites all chain-derived
    # columns. ``wallet_id`` keeps the value it got at creation.
    for key, value in record.as_fields().items():
        setattr(row, key, value)


async def _upsert_once(
    db: AsyncSession,
    record: NormalizedTransaction,
    wallet_id: Optional[uuid.UUID],
) -> tuple[Transaction, bool]:
    row = await find_transaction(db, record.hash)
    created = row is None
    if created:
        row = Transaction(**record.as_fields(), wallet_id=wallet_id)
        db.add(row)
    else:
        _apply_fields(row, record)
    await db.commit()
    await db.refresh(row)
    return row, created


async def upsert_transaction(
    db: AsyncSession,
    record: NormalizedTransaction,
    wallet_id: Optional[uuid.UUID],
) -> tuple[Transaction, bool]:
    """Insert or overwrite the row for ``record.hash``. Returns (row, created)."""
    try:
        return await _upsert_once(db, record, wallet_id)
    except IntegrityError:
        # Lost an insert race on the hash; the retry takes the update path.
        await db.rollback()
        return await _upsert_once(db, record, wallet_id)


async def _store_batch(
    db: AsyncSession,
    records: Sequence[NormalizedTransaction],
    wallet_id: uuid.UUID,
) -> int:
    """Upsert ``records`` in one round trip per phase; returns how many were new."""
    hashes = [record.hash for record in records]
    result = await db.execute(select(Transaction).where(Transaction.hash.in_(hashes)))
    existing = {row.hash: row for row in result.scalars().all()}

    created = 0
    for record in records:
        row = existing.get(record.hash)
        if row is None:
            row = Transaction(**record.as_fields(), wallet_id=wallet_id)
            db.add(row)
            existing[record.hash] = row
            created += 1
        else:
            _apply_fields(row, record)
    await db.commit()
    return created


async def lookup_transaction(db: AsyncSession, chain: ChainReader, tx_hash: str) -> Transaction:
    """Serve ``tx_hash`` from the cache, or fetch it from the chain and cache it.

    A cache hit is returned as-is: no freshness check and no chain reads.

    Raises:
        TransactionNotFoundError: the chain does not know the hash.
        UpstreamError: any chain or store failure.
    """
    tx_hash = tx_hash.lower()
    try:
        cached = await find_transaction(db, tx_hash)
        if cached is not None:
            return cached

        # Both calls settle before any failure propagates.
        tx, receipt = await asyncio.gather(
            chain.get_transaction(tx_hash),
            chain.get_transaction_receipt(tx_hash),
            return_exceptions=True,
        )
        for outcome in (tx, receipt):
            if isinstance(outcome, Exception):
                raise outcome
        if tx is None:
            raise TransactionNotFoundError("Transaction not found")

        # Pending transactions have no block yet; they get the current time.
        timestamp = None
        if tx.block_number is not None:
            block = await chain.get_block(tx.block_number)
            if block is not None:
                timestamp = block.timestamp

        record = NormalizedTransaction.from_chain(tx, receipt, timestamp=timestamp)
        wallet_id = None
        if record.from_address:
            wallet = await ensure_wallet_record(db, record.from_address)
            wallet_id = wallet.id

        row, _ = await upsert_transaction(db, record, wallet_id)
        return row
    except WalletTrackerError:
        raise
    except Exception as exc:
        logger.exception(f"Error fetching transaction {tx_hash}")
        await db.rollback()
        raise UpstreamError("Failed to fetch transaction") from exc


async def sync_wallet_transactions(
    db: AsyncSession,
    chain: ChainReader,
    address: str,
    limit: int = 20,
    policy: Optional[ScanPolicy] = None,
) -> SyncSummary:
    """Scan recent blocks for ``address`` and upsert what is found.

    Re-running with overlapping results refreshes rows in place and never
    duplicates them, so a repeat sync with no new activity reports ``new == 0``.
    """
    require_address(address)
    normalized = address.lower()
    policy = policy or ScanPolicy.from_settings(settings)

    try:
        wallet = await ensure_wallet_record(db, normalized)
        wallet_id = wallet.id

        scan = await collect_wallet_transactions(chain, normalized, limit, policy)
        records = list({record.hash: record for record in scan.transactions}.values())

        created = 0
        if records:
            try:
                created = await _store_batch(db, records, wallet_id)
            except IntegrityError:
                # A concurrent sync inserted some of the same hashes first.
                await db.rollback()
                logger.warning(f"Concurrent insert while syncing {normalized}; retrying batch")
                created = await _store_batch(db, records, wallet_id)
    except WalletTrackerError:
        raise
    except Exception as exc:
        logger.exception(f"Error syncing transactions for {normalized}")
        await db.rollback()
        raise UpstreamError("Failed to sync transactions") from exc

    summary = SyncSummary(
        synced=len(records),
        new=created,
        skipped=scan.skipped,
        blocks_scanned=scan.blocks_scanned,
    )
    logger.info(
        f"Synced {summary.synced} transactions for {normalized} "
        f"({summary.new} new, {summary.skipped} skipped, {summary.blocks_scanned} blocks)"
    )
    return summary
