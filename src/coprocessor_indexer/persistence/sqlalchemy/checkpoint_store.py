"""SQLAlchemy implementation of ICheckpointStore."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, bindparam, text

from ...correlation import get_correlation_id
from ...exceptions import CheckpointError
from ...instrumentation import get_hook_registry
from ...ports.checkpoint import ICheckpointStore
from .models import CHECKPOINT_TABLE
from .uow import SQLAlchemyUnitOfWork

if TYPE_CHECKING:
    from collections.abc import Callable

    from sqlalchemy.ext.asyncio import AsyncSession

    from ...ports.unit_of_work import UnitOfWork

    AsyncSessionFactory = Callable[[], AsyncSession]

logger = logging.getLogger(__name__)


class SQLAlchemyCheckpointStore(ICheckpointStore):
    """
    Stores checkpoints in ``next_versions_to_process`` (one row per consumer).

    Uses ``uow.session`` when a SQLAlchemy unit of work is provided so the
    checkpoint commits with the batch's rows; otherwise opens and commits its
    own session. The upsert only applies when the stored version does not
    exceed the new one, so a regression raises ``CheckpointError``.
    """

    def __init__(
        self,
        session_factory: AsyncSessionFactory,
        *,
        table_name: str = CHECKPOINT_TABLE,
    ) -> None:
        self._session_factory = session_factory
        self._table = table_name

    def _get_session(self, uow: UnitOfWork | None) -> AsyncSession | None:
        if isinstance(uow, SQLAlchemyUnitOfWork):
            return uow.session
        return None

    async def get_next_version(
        self,
        consumer_name: str,
        *,
        uow: UnitOfWork | None = None,
    ) -> int | None:
        stmt = text(
            f"SELECT next_version FROM {self._table} "
            "WHERE indexer_name = :name ORDER BY next_version DESC LIMIT 1"
        )
        session = self._get_session(uow)
        if session is not None:
            r = await session.execute(stmt, {"name": consumer_name})
            row = r.fetchone()
            return int(row[0]) if row else None
        async with self._session_factory() as session:
            r = await session.execute(stmt, {"name": consumer_name})
            row = r.fetchone()
            return int(row[0]) if row else None

    async def save_next_version(
        self,
        consumer_name: str,
        next_version: int,
        *,
        uow: UnitOfWork | None = None,
    ) -> None:
        registry = get_hook_registry()
        await registry.execute_all(
            f"checkpoint.save.{consumer_name}",
            {
                "consumer.name": consumer_name,
                "checkpoint.next_version": next_version,
                "correlation_id": get_correlation_id(),
            },
            lambda: self._save(consumer_name, next_version, uow),
        )

    async def _save(
        self, consumer_name: str, next_version: int, uow: UnitOfWork | None
    ) -> None:
        stmt = text(
            f"""
            INSERT INTO {self._table} (indexer_name, next_version, updated_at)
            VALUES (:name, :next_version, :updated_at)
            ON CONFLICT (indexer_name) DO UPDATE
            SET next_version = excluded.next_version,
                updated_at = excluded.updated_at
            WHERE {self._table}.next_version <= excluded.next_version
            """
        ).bindparams(bindparam("updated_at", type_=DateTime(timezone=True)))
        params = {
            "name": consumer_name,
            "next_version": next_version,
            "updated_at": datetime.now(timezone.utc),
        }

        session = self._get_session(uow)
        if session is not None:
            result = await session.execute(stmt, params)
            self._check_applied(
                result.rowcount, consumer_name, next_version  # type: ignore[attr-defined]
            )
            return
        async with self._session_factory() as session:
            result = await session.execute(stmt, params)
            self._check_applied(
                result.rowcount, consumer_name, next_version  # type: ignore[attr-defined]
            )
            await session.commit()

    @staticmethod
    def _check_applied(rowcount: int, consumer_name: str, next_version: int) -> None:
        if rowcount == 0:
            raise CheckpointError(
                f"checkpoint for {consumer_name} would regress to {next_version}"
            )

    async def reset(
        self,
        consumer_name: str,
        *,
        uow: UnitOfWork | None = None,
    ) -> None:
        stmt = text(f"DELETE FROM {self._table} WHERE indexer_name = :name")
        session = self._get_session(uow)
        if session is not None:
            await session.execute(stmt, {"name": consumer_name})
            return
        async with self._session_factory() as session:
            await session.execute(stmt, {"name": consumer_name})
            await session.commit()
        logger.info("checkpoint for %s reset", consumer_name)
