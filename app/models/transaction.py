from sqlalchemy import Column, String, DateTime, Enum, Numeric, ForeignKey, Index
from sqlalchemy.types import TypeDecorator
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship
from enum import Enum as PyEnum
import uuid
from datetime import datetime
from decimal import Decimal

from app.database import Base


class Uint256(TypeDecorator):
    """uint256 column read back as ``int``.

    Postgres keeps it as ``NUMERIC(78, 0)``. SQLite has no exact type that
    wide, so there the value is stored as decimal text.
    """

    impl = Numeric(78, 0)
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "sqlite":
            return dialect.type_descriptor(String(78))
        return dialect.type_descriptor(Numeric(78, 0))

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if dialect.name == "sqlite":
            return str(int(value))
        return Decimal(int(value))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return int(value)


UINT256 = Uint256()


class TxStatus(PyEnum):
    """Outcome of a mined transaction, taken from its receipt."""

    success = "success"
    failed = "failed"


class TransferDirection(str, PyEnum):
    """Which side of a transfer a wallet must be on to match a listing."""

    all = "all"
    sent = "sent"
    received = "received"


class Transaction(Base):
    """Read-through copy of an on-chain native transfer, keyed by hash."""

    __tablename__ = "transactions"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, index=True)
    hash = Column(String(66), unique=True, index=True, nullable=False)
    from_address = Column(String(42), nullable=False)
    to_address = Column(String(42), nullable=False)
    amount = Column(String, nullable=False)  # ether, decimal string
    block_number = Column(UINT256, nullable=False)
    gas_used = Column(UINT256)
    gas_price = Column(UINT256)
    timestamp = Column(DateTime, nullable=False)
    status = Column(Enum(TxStatus, name="tx_status"), nullable=False)

    wallet_id = Column(UUID(as_uuid=True), ForeignKey("wallets.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    wallet = relationship("Wallet", back_populates="transactions")

    __table_args__ = (
        Index("ix_transactions_from_timestamp", "from_address", "timestamp"),
        Index("ix_transactions_to_timestamp", "to_address", "timestamp"),
        Index("ix_transactions_wallet_id", "wallet_id"),
    )

    def __repr__(self):
        return f"<Transaction hash={self.hash} block={self.block_number} status={self.status}>"
