import logging
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.responses import raise_for_service_error
from app.core.validators import parse_direction, parse_limit, parse_page, require_address
from app.database import get_db
from app.schemas.transaction import TransactionOut
from app.schemas.wallet import TransactionList, WalletBalance
from app.services.chain import ChainReader, get_chain_reader
from app.services.errors import WalletTrackerError
from app.services.wallets import get_wallet_balance, list_wallet_transactions

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/wallet", tags=["Wallet"])


@router.get("/{address}/balance", response_model=WalletBalance)
async def wallet_balance(
    address: str,
    chain: ChainReader = Depends(get_chain_reader),
):
    """Return the live native balance of ``address`` in ether."""
    try:
        require_address(address)
        balance = await get_wallet_balance(chain, address)
    except WalletTrackerError as exc:
        raise_for_service_error(exc)

    return WalletBalance(address=address, balance=balance)


@router.get("/{address}/transactions", response_model=TransactionList)
async def wallet_transactions(
    address: str,
    page: Optional[str] = None,
    limit: Optional[str] = None,
    type: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
):
    """List cached transactions where ``address`` is sender and/or recipient.

    ``type`` narrows the listing to ``sent`` or ``received``; without it (or
    with ``all``) both directions are returned. Results are newest first.
    """
    try:
        require_address(address)
        page_num = parse_page(page)
        limit_num = parse_limit(limit)
        direction = parse_direction(type)
    except WalletTrackerError as exc:
        raise_for_service_error(exc)

    logger.debug(
        f"Listing transactions address={address} page={page_num} limit={limit_num} type={direction.value}"
    )
    rows, total = await list_wallet_transactions(db, address, page_num, limit_num, direction)

    return TransactionList(
        transactions=[TransactionOut.model_validate(row) for row in rows],
        total=total,
        page=page_num,
        limit=limit_num,
    )
