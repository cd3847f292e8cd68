"""In-memory adapters for tests and dry runs."""

from __future__ import annotations

from .checkpoint import InMemoryCheckpointStore
from .stream import InMemoryTransactionStream, build_batches
from .unit_of_work import (
    InMemoryDatabase,
    InMemoryUnitOfWork,
    in_memory_unit_of_work_factory,
)

__all__ = [
    "InMemoryCheckpointStore",
    "InMemoryDatabase",
    "InMemoryTransactionStream",
    "InMemoryUnitOfWork",
    "build_batches",
    "in_memory_unit_of_work_factory",
]
