"""Coprocessor indexer: one shared ledger stream, many checkpointed coprocessors."""

from __future__ import annotations

from .coprocessor import Coprocessor
from .exceptions import (
    AlreadyRunningError,
    CatchUpIncompleteError,
    CatchUpInvariantError,
    CheckpointError,
    ConfigurationError,
    EventDecodeError,
    HandlerRegistrationError,
    IndexerError,
    InvariantViolationError,
    PersistenceError,
    ProcessingError,
    RetryExhaustedError,
    TransactionDataError,
    UnsupportedChainError,
    VersionGapError,
)
from .manager import ProcessorManager
from .processing import Failed, Outcome, ProcessingContext, Progressed, Synced
from .retry import RetryPolicy
from .super_processor import SuperProcessor
from .supervisor import ErrorChannel, Supervisor, SupervisorState
from .sync import CatchUpRun, SyncCoordinator, SyncReport

__version__ = "0.1.0"

__all__ = [
    "AlreadyRunningError",
    "CatchUpIncompleteError",
    "CatchUpInvariantError",
    "CatchUpRun",
    "CheckpointError",
    "ConfigurationError",
    "Coprocessor",
    "ErrorChannel",
    "EventDecodeError",
    "Failed",
    "HandlerRegistrationError",
    "IndexerError",
    "InvariantViolationError",
    "Outcome",
    "PersistenceError",
    "ProcessingContext",
    "ProcessingError",
    "ProcessorManager",
    "Progressed",
    "RetryExhaustedError",
    "RetryPolicy",
    "SuperProcessor",
    "Supervisor",
    "SupervisorState",
    "Synced",
    "SyncCoordinator",
    "SyncReport",
    "TransactionDataError",
    "UnsupportedChainError",
    "VersionGapError",
    "__version__",
]
