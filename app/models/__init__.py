from . import wallet, transaction
from .wallet import Wallet
from .transaction import Transaction, TxStatus, TransferDirection

__all__ = [
    "wallet",
    "transaction",
    "Wallet",
    "Transaction",
    "TxStatus",
    "TransferDirection",
]
