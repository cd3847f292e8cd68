"""Declarative base and the checkpoint table."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import BigInteger, DateTime, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

CHECKPOINT_TABLE = "next_versions_to_process"


class Base(DeclarativeBase):
    """Declarative base shared by the checkpoint table and coprocessor models.

    ``create_schema`` creates every table registered on this metadata, so a
    coprocessor's models must subclass it.
    """


class NextVersionToProcess(Base):
    """Next unprocessed ledger version per named consumer."""

    __tablename__ = CHECKPOINT_TABLE

    indexer_name: Mapped[str] = mapped_column(String(255), primary_key=True)
    next_version: Mapped[int] = mapped_column(BigInteger, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
