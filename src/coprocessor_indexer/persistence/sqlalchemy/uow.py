"""
SQLAlchemy implementation of the Unit of Work write port.
"""

from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING, Any

from sqlalchemy import insert, select
from sqlalchemy.dialects import postgresql, sqlite

from ...exceptions import SessionManagementError, UnitOfWorkError
from ...ports.unit_of_work import UnitOfWork

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence
    from types import TracebackType

    from sqlalchemy import Table
    from sqlalchemy.ext.asyncio import AsyncSession

    AsyncSessionFactory = Callable[[], AsyncSession]

INSERT_CHUNK_SIZE = 100

_UPSERT_DIALECTS: dict[str, Any] = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def _table(model: Any) -> Table:
    table = getattr(model, "__table__", None)
    if table is None:
        raise UnitOfWorkError(f"{model!r} is not a mapped SQLAlchemy model")
    return table  # type: ignore[no-any-return]


class SQLAlchemyUnitOfWork(UnitOfWork):
    """
    Unit of Work implementation using SQLAlchemy AsyncSession.

    Supports two usage patterns:

    1. **Caller-Managed Sessions**:
       ```python
       async with SQLAlchemyUnitOfWork(session=session) as uow:
           await uow.insert_many(CoinFlipEventModel, rows)
       ```

    2. **Self-Managed Sessions** (what the pipeline uses, one per batch):
       ```python
       factory = async_sessionmaker(engine, expire_on_commit=False)
       async with SQLAlchemyUnitOfWork(session_factory=factory) as uow:
           await uow.upsert(CoinFlipStatModel, values, ["chain_id"])
       ```

    **Important:** Exactly one of `session` or `session_factory` must be provided.
    """

    def __init__(
        self,
        session: AsyncSession | None = None,
        session_factory: AsyncSessionFactory | None = None,
    ) -> None:
        if session is not None and session_factory is not None:
            raise SessionManagementError(
                "Cannot provide both 'session' and 'session_factory'."
            )
        if session is None and session_factory is None:
            raise SessionManagementError(
                "Must provide either 'session' or 'session_factory'."
            )

        self._session: AsyncSession | None = session
        self._session_factory = session_factory
        self._owns_session = session_factory is not None and session is None
        super().__init__()

    @property
    def session(self) -> AsyncSession:
        """Get the active session. Raises if session not yet created."""
        if self._session is None:
            raise UnitOfWorkError(
                "Session not yet created. Ensure __aenter__ was called."
            )
        return self._session

    async def __aenter__(self) -> SQLAlchemyUnitOfWork:
        try:
            if self._owns_session and self._session_factory:
                self._session = self._session_factory()

            if not self.session.in_transaction():
                await self.session.begin()

            return self
        except Exception as e:  # noqa: BLE001
            if isinstance(e, SessionManagementError | UnitOfWorkError):
                raise
            raise SessionManagementError(f"Failed to initialize UoW: {e}") from e

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        try:
            await super().__aexit__(exc_type, exc_val, exc_tb)
        finally:
            if self._owns_session and self._session is not None:
                try:
                    await self._session.close()
                except Exception as e:  # noqa: BLE001
                    raise SessionManagementError(f"Failed to close session: {e}") from e
                self._session = None

    async def commit(self) -> None:
        try:
            await self.session.commit()
        except Exception as e:  # noqa: BLE001
            with contextlib.suppress(Exception):
                await self.rollback()
            raise UnitOfWorkError(f"Failed to commit transaction: {e}") from e

    async def rollback(self) -> None:
        try:
            if self.session.in_transaction():
                await self.session.rollback()
        except Exception as e:  # noqa: BLE001
            raise UnitOfWorkError(f"Failed to rollback transaction: {e}") from e

    async def insert_many(
        self, model: type[Any], rows: Sequence[Mapping[str, Any]]
    ) -> None:
        """Insert in chunks of ``INSERT_CHUNK_SIZE`` rows per statement."""
        if not rows:
            return
        table = _table(model)
        for start in range(0, len(rows), INSERT_CHUNK_SIZE):
            chunk = [dict(row) for row in rows[start : start + INSERT_CHUNK_SIZE]]
            await self.session.execute(insert(table), chunk)

    async def upsert(
        self,
        model: type[Any],
        values: Mapping[str, Any],
        index_elements: Sequence[str],
    ) -> None:
        dialect = self.session.get_bind().dialect.name
        dialect_insert = _UPSERT_DIALECTS.get(dialect)
        if dialect_insert is None:
            raise UnitOfWorkError(f"upsert is not supported on dialect {dialect}")

        stmt = dialect_insert(_table(model)).values(**values)
        update_columns = {
            column: stmt.excluded[column]
            for column in values
            if column not in index_elements
        }
        if update_columns:
            stmt = stmt.on_conflict_do_update(
                index_elements=list(index_elements), set_=update_columns
            )
        else:
            stmt = stmt.on_conflict_do_nothing(index_elements=list(index_elements))
        await self.session.execute(stmt)

    async def get(
        self, model: type[Any], key: Mapping[str, Any]
    ) -> dict[str, Any] | None:
        table = _table(model)
        stmt = select(table).where(
            *(table.c[column] == value for column, value in key.items())
        )
        result = await self.session.execute(stmt)
        row = result.mappings().first()
        return dict(row) if row is not None else None


def sqlalchemy_unit_of_work_factory(
    session_factory: AsyncSessionFactory,
) -> Callable[[], SQLAlchemyUnitOfWork]:
    """Return a zero-argument factory, one self-managed session per unit."""

    def factory() -> SQLAlchemyUnitOfWork:
        return SQLAlchemyUnitOfWork(session_factory=session_factory)

    return factory
