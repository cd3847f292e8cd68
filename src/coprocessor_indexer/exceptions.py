"""Exceptions for the coprocessor indexer."""

from __future__ import annotations


class IndexerError(Exception):
    """Root exception for the entire coprocessor indexer."""


# ── Configuration ────────────────────────────────────────────────────


class ConfigurationError(IndexerError):
    """Raised when settings or coprocessor wiring are invalid.

    Detected once at startup; the supervisor never retries these.
    """


class HandlerRegistrationError(ConfigurationError):
    """Raised when a handler registration conflict is detected.

    Usage: the strict ``EventHandlerRegistry`` raises this when a second
    handler is registered for an event type that is already bound.
    """


class UnsupportedChainError(ConfigurationError):
    """Raised when a coprocessor has no deployment on the requested chain."""

    def __init__(self, name: str, chain_id: int) -> None:
        self.name = name
        self.chain_id = chain_id
        super().__init__(f"{name} unsupported on chain: {chain_id}")


# ── Invariants ───────────────────────────────────────────────────────


class InvariantViolationError(IndexerError):
    """Raised when a processing invariant is violated. Fatal, never retried."""


class CatchUpInvariantError(InvariantViolationError):
    """Raised when a catch-up batch starts beyond the shared ceiling version."""

    def __init__(self, name: str, start_version: int, ceiling_version: int) -> None:
        self.name = name
        self.start_version = start_version
        self.ceiling_version = ceiling_version
        super().__init__(
            f"coprocessor {name} received batch starting at {start_version} "
            f"past ceiling {ceiling_version}"
        )


# ── Persistence ──────────────────────────────────────────────────────


class PersistenceError(IndexerError):
    """Base class for all persistence-related errors."""


class CheckpointError(PersistenceError):
    """Raised when checkpoint read/write fails or would regress."""


class SessionManagementError(PersistenceError):
    """Raised when session creation or management fails."""


class UnitOfWorkError(PersistenceError):
    """Raised when Unit of Work operations fail."""


# ── Processing ───────────────────────────────────────────────────────


class ProcessingError(IndexerError):
    """Base for errors raised while processing a transaction batch."""


class EventDecodeError(ProcessingError):
    """Raised when an event payload cannot be parsed into its data model."""

    def __init__(self, type_str: str, reason: str) -> None:
        self.type_str = type_str
        self.reason = reason
        super().__init__(f"Failed to decode event {type_str}: {reason}")


class TransactionDataError(ProcessingError):
    """Raised when a user transaction arrives without its user payload."""

    def __init__(self, version: int) -> None:
        self.version = version
        super().__init__(f"user transaction {version} has no user payload")


class VersionGapError(ProcessingError):
    """Raised when a stream batch starts after the next expected version."""

    def __init__(self, name: str, expected_version: int, start_version: int) -> None:
        self.name = name
        self.expected_version = expected_version
        self.start_version = start_version
        super().__init__(
            f"{name} expected version {expected_version} "
            f"but stream batch starts at {start_version}"
        )


class CatchUpIncompleteError(ProcessingError):
    """Raised when a catch-up stream ends before reaching the ceiling."""

    def __init__(self, name: str, next_version: int, ceiling_version: int) -> None:
        self.name = name
        self.next_version = next_version
        self.ceiling_version = ceiling_version
        super().__init__(
            f"catch-up stream for {name} ended at {next_version} "
            f"before reaching {ceiling_version}"
        )


# ── Supervisor ───────────────────────────────────────────────────────


class AlreadyRunningError(IndexerError):
    """Raised when a pipeline is started while a previous run is active."""


class RetryExhaustedError(IndexerError):
    """Raised when the supervisor exceeds its retry ceiling."""

    def __init__(self, attempts: int, last_error: BaseException | None) -> None:
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"Gave up after {attempts} attempts. Last error: {last_error!r}"
        )


FATAL_ERRORS: tuple[type[IndexerError], ...] = (
    ConfigurationError,
    InvariantViolationError,
)
