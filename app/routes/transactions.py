from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.limits import rate_limit_sync
from app.core.responses import err, raise_for_service_error
from app.core.validators import DEFAULT_PAGE_SIZE, parse_limit, require_address, require_tx_hash
from app.database import get_db
from app.schemas.transaction import SyncRequest, SyncResponse, TransactionOut
from app.services.chain import ChainReader, get_chain_reader
from app.services.errors import WalletTrackerError
from app.services.transactions import lookup_transaction, sync_wallet_transactions

router = APIRouter(tags=["Transactions"])


@router.get("/transaction/{tx_hash}", response_model=TransactionOut)
async def transaction_details(
    tx_hash: str,
    db: AsyncSession = Depends(get_db),
    chain: ChainReader = Depends(get_chain_reader),
):
    """Return one transaction, served from the cache when it has been seen before."""
    try:
        require_tx_hash(tx_hash)
        return await lookup_transaction(db, chain, tx_hash)
    except WalletTrackerError as exc:
        raise_for_service_error(exc)


@router.post("/transactions/sync", response_model=SyncResponse)
async def sync_transactions(
    payload: SyncRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    chain: ChainReader = Depends(get_chain_reader),
):
    """Scan recent blocks for the address and refresh the cache.

    ``limit`` (1-100, default 20) caps how many transactions are collected.
    """
    try:
        require_address(payload.address)
        limit = parse_limit(payload.limit, default=DEFAULT_PAGE_SIZE)
    except WalletTrackerError as exc:
        raise_for_service_error(exc)

    key = request.client.host if request.client else "anon"
    if not rate_limit_sync.allow(key):
        err("Too many sync requests. Please slow down.", http_status=429)

    try:
        summary = await sync_wallet_transactions(db, chain, payload.address, limit)
    except WalletTrackerError as exc:
        raise_for_service_error(exc)

    return SyncResponse(
        synced=summary.synced,
        new=summary.new,
        skipped=summary.skipped,
        blocks_scanned=summary.blocks_scanned,
    )
