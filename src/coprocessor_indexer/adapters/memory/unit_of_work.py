"""InMemoryUnitOfWork: transactional table snapshots for tests and dry runs."""

from __future__ import annotations

import copy
from typing import TYPE_CHECKING, Any

from ...ports.unit_of_work import UnitOfWork

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence


def table_name(model: type[Any]) -> str:
    return str(getattr(model, "__tablename__", model.__name__))


class InMemoryDatabase:
    """Committed rows per table name."""

    def __init__(self) -> None:
        self.tables: dict[str, list[dict[str, Any]]] = {}

    def rows(self, model: type[Any]) -> list[dict[str, Any]]:
        return [dict(row) for row in self.tables.get(table_name(model), [])]

    def clear(self) -> None:
        self.tables.clear()


def _matches(row: Mapping[str, Any], key: Mapping[str, Any]) -> bool:
    return all(row.get(column) == value for column, value in key.items())


class InMemoryUnitOfWork(UnitOfWork):
    """In-memory implementation of UnitOfWork.

    Works on a copy of the database tables taken on ``__aenter__``; commit
    swaps the copy in, rollback drops it. Records commit/rollback calls for
    assertions.
    """

    def __init__(self, database: InMemoryDatabase | None = None) -> None:
        super().__init__()
        self.database = database or InMemoryDatabase()
        self._working: dict[str, list[dict[str, Any]]] | None = None
        self.commit_count: int = 0
        self.rollback_count: int = 0

    async def __aenter__(self) -> InMemoryUnitOfWork:
        self._working = copy.deepcopy(self.database.tables)
        return self

    def _table(self, model: type[Any]) -> list[dict[str, Any]]:
        if self._working is None:
            self._working = copy.deepcopy(self.database.tables)
        return self._working.setdefault(table_name(model), [])

    async def insert_many(
        self, model: type[Any], rows: Sequence[Mapping[str, Any]]
    ) -> None:
        self._table(model).extend(dict(row) for row in rows)

    async def upsert(
        self,
        model: type[Any],
        values: Mapping[str, Any],
        index_elements: Sequence[str],
    ) -> None:
        table = self._table(model)
        key = {column: values[column] for column in index_elements}
        for row in table:
            if _matches(row, key):
                row.update(values)
                return
        table.append(dict(values))

    async def get(
        self, model: type[Any], key: Mapping[str, Any]
    ) -> dict[str, Any] | None:
        for row in self._table(model):
            if _matches(row, key):
                return dict(row)
        return None

    async def commit(self) -> None:
        if self._working is not None:
            self.database.tables = self._working
            self._working = None
        self.commit_count += 1

    async def rollback(self) -> None:
        self._working = None
        self.rollback_count += 1


def in_memory_unit_of_work_factory(
    database: InMemoryDatabase,
) -> Callable[[], InMemoryUnitOfWork]:
    """Return a zero-argument factory producing units of work on ``database``."""

    def factory() -> InMemoryUnitOfWork:
        return InMemoryUnitOfWork(database)

    return factory
