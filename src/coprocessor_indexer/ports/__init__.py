"""Ports: checkpoint store, upstream stream, unit of work."""

from __future__ import annotations

from .checkpoint import ICheckpointStore
from .stream import ITransactionStream
from .unit_of_work import UnitOfWork

__all__ = [
    "ICheckpointStore",
    "ITransactionStream",
    "UnitOfWork",
]
