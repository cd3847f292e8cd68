"""Tables written by the coin flip coprocessor."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import BigInteger, Boolean, DateTime, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from ...persistence.sqlalchemy.models import Base

WIN_PERCENTAGE = Numeric(5, 2, asdecimal=False)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CoinFlipEventModel(Base):
    __tablename__ = "coin_flip_events"

    chain_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    sequence_number: Mapped[int] = mapped_column(
        BigInteger, primary_key=True, autoincrement=False
    )
    creation_number: Mapped[int] = mapped_column(
        BigInteger, primary_key=True, autoincrement=False
    )
    account_address: Mapped[str] = mapped_column(String(66), primary_key=True)
    prediction: Mapped[bool] = mapped_column(Boolean, nullable=False)
    result: Mapped[bool] = mapped_column(Boolean, nullable=False)
    wins: Mapped[int] = mapped_column(BigInteger, nullable=False)
    losses: Mapped[int] = mapped_column(BigInteger, nullable=False)
    win_percentage: Mapped[float] = mapped_column(WIN_PERCENTAGE, nullable=False)
    transaction_version: Mapped[int] = mapped_column(BigInteger, nullable=False)
    transaction_timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    inserted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )
    event_index: Mapped[int] = mapped_column(BigInteger, nullable=False)


class CoinFlipStatModel(Base):
    """One running total per chain."""

    __tablename__ = "coin_flip_stats"

    chain_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    total_wins: Mapped[int] = mapped_column(BigInteger, nullable=False)
    total_losses: Mapped[int] = mapped_column(BigInteger, nullable=False)
    win_percentage: Mapped[float] = mapped_column(WIN_PERCENTAGE, nullable=False)
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )
