"""Domain types: transactions, event identifiers, decoded events."""

from __future__ import annotations

from .events import LedgerEvent, TransactionContext
from .identifiers import EventTypeID, normalize_address
from .transactions import (
    RawEvent,
    Transaction,
    TransactionBatch,
    TransactionKind,
    UserTransactionPayload,
)

__all__ = [
    "EventTypeID",
    "LedgerEvent",
    "RawEvent",
    "Transaction",
    "TransactionBatch",
    "TransactionContext",
    "TransactionKind",
    "UserTransactionPayload",
    "normalize_address",
]
