"""Decoded ledger events and the transaction context handed to handlers."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict

from .identifiers import EventTypeID

if TYPE_CHECKING:
    from .transactions import Transaction


class TransactionContext(BaseModel):
    """The slice of a transaction event handlers may depend on."""

    model_config = ConfigDict(frozen=True)

    version: int
    block_height: int
    timestamp: datetime

    @classmethod
    def from_transaction(cls, transaction: Transaction) -> TransactionContext:
        return cls(
            version=transaction.version,
            block_height=transaction.block_height,
            timestamp=transaction.timestamp,
        )


class LedgerEvent(BaseModel):
    """A dispatched event.

    ``data`` is the parsed JSON payload, or an instance of the handler's
    registered data model when one was given.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    type_id: EventTypeID
    sequence_number: int
    creation_number: int
    account_address: str
    event_index: int
    data: Any
