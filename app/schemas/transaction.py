from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, validator
from pydantic.alias_generators import to_camel

from app.core.units import to_decimal_string
from app.models.transaction import TxStatus


class CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


class TransactionOut(CamelModel):
    id: UUID
    hash: str
    from_address: str
    to_address: str
    amount: str
    # uint256-sized values travel as decimal strings
    block_number: str
    gas_used: Optional[str] = None
    gas_price: Optional[str] = None
    timestamp: datetime
    status: TxStatus
    wallet_id: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime

    @validator("block_number", "gas_used", "gas_price", pre=True)
    def _integer_as_string(cls, v):
        return to_decimal_string(v)

    @validator("timestamp", "created_at", "updated_at")
    def _as_utc(cls, v):
        # Stored naive in UTC; sent with an explicit zone.
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


class SyncRequest(BaseModel):
    address: str
    limit: Optional[int] = None


class SyncResponse(CamelModel):
    synced: int
    new: int
    skipped: int = 0
    blocks_scanned: int = 0
