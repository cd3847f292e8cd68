"""In-memory checkpoint store."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ...correlation import get_correlation_id
from ...exceptions import CheckpointError
from ...instrumentation import get_hook_registry
from ...ports.checkpoint import ICheckpointStore

if TYPE_CHECKING:
    from ...ports.unit_of_work import UnitOfWork


class InMemoryCheckpointStore(ICheckpointStore):
    """In-memory checkpoint store.

    With a unit of work the write is deferred to its ``on_commit`` hooks, so
    a rolled-back batch leaves the checkpoint untouched.
    """

    def __init__(self, initial: dict[str, int] | None = None) -> None:
        self._versions: dict[str, int] = dict(initial or {})
        self.history: list[tuple[str, int]] = []

    async def get_next_version(
        self,
        consumer_name: str,
        *,
        uow: UnitOfWork | None = None,
    ) -> int | None:
        return self._versions.get(consumer_name)

    async def save_next_version(
        self,
        consumer_name: str,
        next_version: int,
        *,
        uow: UnitOfWork | None = None,
    ) -> None:
        self._check_monotonic(consumer_name, next_version)
        registry = get_hook_registry()
        await registry.execute_all(
            f"checkpoint.save.{consumer_name}",
            {
                "consumer.name": consumer_name,
                "checkpoint.next_version": next_version,
                "correlation_id": get_correlation_id(),
            },
            lambda: self._stage(consumer_name, next_version, uow),
        )

    async def _stage(
        self, consumer_name: str, next_version: int, uow: UnitOfWork | None
    ) -> None:
        if uow is None:
            self._write(consumer_name, next_version)
            return

        async def apply() -> None:
            self._write(consumer_name, next_version)

        uow.on_commit(apply)

    def _write(self, consumer_name: str, next_version: int) -> None:
        self._check_monotonic(consumer_name, next_version)
        self._versions[consumer_name] = next_version
        self.history.append((consumer_name, next_version))

    def _check_monotonic(self, consumer_name: str, next_version: int) -> None:
        current = self._versions.get(consumer_name)
        if current is not None and next_version < current:
            raise CheckpointError(
                f"checkpoint for {consumer_name} would regress "
                f"from {current} to {next_version}"
            )

    async def reset(
        self,
        consumer_name: str,
        *,
        uow: UnitOfWork | None = None,
    ) -> None:
        self._versions.pop(consumer_name, None)

    def clear(self) -> None:
        """Reset all checkpoints (for tests)."""
        self._versions.clear()
        self.history.clear()
