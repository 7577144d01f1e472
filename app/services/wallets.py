import logging
from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from app.core.units import format_ether
from app.models.transaction import Transaction, TransferDirection
from app.models.wallet import Wallet
from app.services.chain import ChainReader
from app.services.errors import UpstreamError

logger = logging.getLogger(__name__)


async def find_wallet(db: AsyncSession, address: str) -> Optional[Wallet]:
    result = await db.execute(select(Wallet).where(Wallet.address == address.lower()))
    return result.scalar_one_or_none()


async def ensure_wallet_record(db: AsyncSession, address: str) -> Wallet:
    """Return the wallet row for ``address``, creating it on first reference."""
    normalized = address.lower()
    wallet = await find_wallet(db, normalized)
    if wallet is not None:
        return wallet

    wallet = Wallet(address=normalized)
    db.add(wallet)
    try:
        await db.commit()
    except IntegrityError:
        # Another request created the same wallet between our read and insert.
        await db.rollback()
        wallet = await find_wallet(db, normalized)
        if wallet is None:
            raise
        return wallet

    await db.refresh(wallet)
    logger.info(f"Created wallet record for {normalized}")
    return wallet


async def get_wallet_balance(chain: ChainReader, address: str) -> str:
    """Live native balance in ether. Always read from the chain, never cached."""
    try:
        balance_wei = await chain.get_balance(address)
    except Exception as exc:
        logger.exception(f"Error fetching balance for {address}")
        raise UpstreamError("Failed to fetch wallet balance") from exc
    return format_ether(balance_wei)


def direction_filter(address: str, direction: TransferDirection):
    """The single WHERE clause used by both the page query and its count."""
    if direction is TransferDirection.sent:
        return Transaction.from_address == address
    if direction is TransferDirection.received:
        return Transaction.to_address == address
    return or_(Transaction.from_address == address, Transaction.to_address == address)


async def list_wallet_transactions(
    db: AsyncSession,
    address: str,
    page: int = 1,
    limit: int = 20,
    direction: TransferDirection = TransferDirection.all,
) -> tuple[list[Transaction], int]:
    """Return one page of cached transactions (newest first) and the filter's total."""
    criteria = direction_filter(address.lower(), direction)
    skip = (page - 1) * limit

    rows = await db.execute(
        select(Transaction)
        .where(criteria)
        .order_by(Transaction.timestamp.desc(), Transaction.hash.desc())
        .offset(skip)
        .limit(limit)
    )
    total = await db.execute(select(func.count()).select_from(Transaction).where(criteria))
    return list(rows.scalars().all()), int(total.scalar_one())
