import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from app import models  # noqa: F401
from app.database import Base
from app.models.transaction import Transaction, TxStatus
from app.services.chain import ChainBlock, ChainReaderError, ChainReceipt, ChainTransaction

WALLET = "0x" + "ab" * 20
OTHER = "0x" + "cd" * 20
THIRD = "0x" + "ef" * 20
GENESIS_TS = 1_700_000_000


@asynccontextmanager
async def memory_session():
    """A fresh in-memory database for one test, torn down afterwards."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    SessionLocal = sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    try:
        async with SessionLocal() as session:
            yield session
    finally:
        await engine.dispose()


class FakeChain:
    """In-memory stand-in for ``ChainReader`` that records every call."""

    def __init__(self, head: int = 100):
        self.head = head
        self.blocks: dict[int, ChainBlock] = {}
        self.transactions: dict[str, ChainTransaction] = {}
        self.receipts: dict[str, ChainReceipt] = {}
        self.balances: dict[str, int] = {}
        self.failing_receipts: set[str] = set()
        self.failing_blocks: set[int] = set()
        self.receipt_delays: dict[str, float] = {}
        self.calls: list[tuple] = []
        self._counter = 0

    def next_hash(self) -> str:
        self._counter += 1
        return "0x" + f"{self._counter:064x}"

    def block_timestamp(self, number: int) -> int:
        return GENESIS_TS + number * 12

    def add_transfer(
        self,
        block_number: int,
        sender: str,
        recipient: Optional[str],
        value: int,
        *,
        status: Optional[int] = 1,
        gas_used: int = 21000,
        gas_price: int = 2_000_000_000,
        with_receipt: bool = True,
    ) -> ChainTransaction:
        tx = ChainTransaction(
            hash=self.next_hash(),
            from_address=sender,
            to_address=recipient,
            value=value,
            block_number=block_number,
            gas_price=gas_price,
        )
        self.transactions[tx.hash] = tx
        if with_receipt:
            self.receipts[tx.hash] = ChainReceipt(status=status, gas_used=gas_used)
        self.append_to_block(block_number, tx)
        return tx

    def append_to_block(self, block_number: int, entry) -> None:
        block = self.blocks.get(block_number) or ChainBlock(
            number=block_number, timestamp=self.block_timestamp(block_number)
        )
        self.blocks[block_number] = ChainBlock(
            number=block.number,
            timestamp=block.timestamp,
            transactions=block.transactions + (entry,),
        )

    def count(self, name: str) -> int:
        return sum(1 for call in self.calls if call[0] == name)

    async def get_block_number(self) -> int:
        self.calls.append(("get_block_number",))
        return self.head

    async def get_block(self, number: int, full_transactions: bool = False):
        self.calls.append(("get_block", number, full_transactions))
        if number in self.failing_blocks:
            raise ChainReaderError(f"block {number} unavailable")
        if number < 0 or number > self.head:
            return None
        block = self.blocks.get(number) or ChainBlock(
            number=number, timestamp=self.block_timestamp(number)
        )
        if full_transactions:
            return block
        hashes = tuple(e.hash if isinstance(e, ChainTransaction) else e for e in block.transactions)
        return ChainBlock(number=block.number, timestamp=block.timestamp, transactions=hashes)

    async def get_transaction(self, tx_hash: str):
        self.calls.append(("get_transaction", tx_hash))
        return self.transactions.get(tx_hash)

    async def get_transaction_receipt(self, tx_hash: str):
        self.calls.append(("get_transaction_receipt", tx_hash))
        delay = self.receipt_delays.get(tx_hash)
        if delay:
            await asyncio.sleep(delay)
        if tx_hash in self.failing_receipts:
            raise ChainReaderError(f"receipt for {tx_hash} unavailable")
        return self.receipts.get(tx_hash)

    async def get_balance(self, address: str) -> int:
        self.calls.append(("get_balance", address))
        return self.balances.get(address.lower(), 0)

    async def aclose(self) -> None:
        pass


def make_transaction(
    tx_hash: str,
    sender: str,
    recipient: str,
    *,
    minutes_ago: int = 0,
    block_number: int = 1,
    amount: str = "1.0",
) -> Transaction:
    return Transaction(
        hash=tx_hash,
        from_address=sender,
        to_address=recipient,
        amount=amount,
        block_number=block_number,
        gas_used=21000,
        gas_price=1_000_000_000,
        timestamp=datetime(2026, 1, 1, 12, 0) - timedelta(minutes=minutes_ago),
        status=TxStatus.success,
    )


@pytest.fixture
def client(monkeypatch):
    """TestClient over the real app with an in-memory store and a fake chain."""
    from app import main
    from app.core.limits import rate_limit_sync
    from app.database import get_db, init_models

    chain = FakeChain(head=100)
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    SessionLocal = sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    created = []

    async def override_get_db():
        # Tables are created on first use, inside the client's event loop.
        if not created:
            await init_models(engine)
            created.append(True)
        async with SessionLocal() as session:
            yield session

    monkeypatch.setattr(main.settings, "DB_AUTO_CREATE", False)
    monkeypatch.setattr(main, "create_chain_reader", lambda settings: chain)
    main.app.dependency_overrides[get_db] = override_get_db
    rate_limit_sync.reset()

    with TestClient(main.app) as c:
        c.chain = chain
        yield c

    main.app.dependency_overrides.clear()
    rate_limit_sync.reset()
    asyncio.run(engine.dispose())
