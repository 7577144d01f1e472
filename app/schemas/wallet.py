from pydantic import BaseModel

from app.schemas.transaction import TransactionOut


class WalletBalance(BaseModel):
    address: str
    balance: str


class TransactionList(BaseModel):
    transactions: list[TransactionOut]
    total: int
    page: int
    limit: int
