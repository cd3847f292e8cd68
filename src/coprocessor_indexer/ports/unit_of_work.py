"""UnitOfWork: the transactional write port every batch is processed through."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections import deque
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Mapping, Sequence

logger = logging.getLogger(__name__)


class UnitOfWork(ABC):
    """
    Abstract base class for the write port used by event handlers.

    One unit of work spans one transaction batch: all handler writes and the
    checkpoint rows for that batch commit together or not at all.

    Write operations are deliberately small:

    * ``insert_many(model, rows)``: batch insert of new rows
    * ``upsert(model, values, index_elements)``: insert or update on conflict
    * ``get(model, key)``: read one row (sees this unit's own writes)

    ``model`` is an implementation-level table handle (a SQLAlchemy declarative
    class for the relational adapter); handlers never see sessions directly.

    **Lifecycle**: ``__aexit__`` commits on success and then runs ``on_commit``
    hooks; on exception it rolls back and the hooks are discarded.
    """

    def __init__(self) -> None:
        self._on_commit_hooks: deque[Callable[[], Awaitable[Any]]] = deque()

    def on_commit(self, callback: Callable[[], Awaitable[Any]]) -> None:
        """Register an async callback to be executed after a successful commit."""
        self._on_commit_hooks.append(callback)

    async def trigger_commit_hooks(self) -> None:
        """Execute all registered on_commit hooks.

        Called automatically by __aexit__ AFTER commit completes. Hook errors
        propagate: a hook that persists state must not fail silently.
        """
        while self._on_commit_hooks:
            callback = self._on_commit_hooks.popleft()
            await callback()

    @abstractmethod
    async def commit(self) -> None:
        """Commit the transaction."""
        ...

    @abstractmethod
    async def rollback(self) -> None:
        """Rollback the transaction."""
        ...

    @abstractmethod
    async def insert_many(
        self, model: type[Any], rows: Sequence[Mapping[str, Any]]
    ) -> None:
        """Insert ``rows`` into ``model``'s table."""
        ...

    @abstractmethod
    async def upsert(
        self,
        model: type[Any],
        values: Mapping[str, Any],
        index_elements: Sequence[str],
    ) -> None:
        """Insert ``values``, or update the row matching ``index_elements``."""
        ...

    @abstractmethod
    async def get(
        self, model: type[Any], key: Mapping[str, Any]
    ) -> dict[str, Any] | None:
        """Return the row whose columns equal ``key``, or None."""
        ...

    async def __aenter__(self) -> UnitOfWork:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        """
        Exit the context manager.

        CRITICAL ORDER:
        1. If successful (exc_type is None): commit() first
        2. Then trigger_commit_hooks()
        3. If exception: rollback() and drop hooks
        """
        if exc_type is None:
            await self.commit()
            await self.trigger_commit_hooks()
        else:
            self._on_commit_hooks.clear()
            await self.rollback()
