"""CoinFlipProcessor: indexes ``coin_flip::CoinFlipEvent`` and running stats."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from ...coprocessor import Coprocessor
from ...domain.identifiers import EventTypeID
from ...exceptions import UnsupportedChainError
from .config import (
    CHAIN_CONFIGS,
    COIN_FLIP_EVENT_NAME,
    COIN_FLIP_MODULE_NAME,
    CoinFlipEventData,
)
from .models import CoinFlipEventModel, CoinFlipStatModel

if TYPE_CHECKING:
    from ...domain.events import LedgerEvent, TransactionContext
    from ...ports.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)


def win_percentage(wins: int, losses: int) -> float:
    total = wins + losses
    return wins / total if total else 0.0


class CoinFlipProcessor(Coprocessor):
    # Checkpoint key suffix; never rename once deployed.
    base_name = "coin_flip_processor"

    def __init__(
        self,
        chain_id: int,
        *,
        genesis_version: int | None = None,
        strict_registry: bool = True,
    ) -> None:
        config = CHAIN_CONFIGS.get(chain_id)
        if config is None:
            raise UnsupportedChainError(
                self.construct_name(chain_id, self.base_name), chain_id
            )
        self.module_publisher = config.module_publisher
        super().__init__(
            chain_id,
            config.genesis_version if genesis_version is None else genesis_version,
            strict_registry=strict_registry,
        )
        self.models = [CoinFlipEventModel, CoinFlipStatModel]

    @property
    def coin_flip_event_id(self) -> EventTypeID:
        return EventTypeID(
            module_address=self.module_publisher,
            module_name=COIN_FLIP_MODULE_NAME,
            event_name=COIN_FLIP_EVENT_NAME,
        )

    def register_event_handlers(self) -> None:
        self.registry.register(
            self.coin_flip_event_id,
            self.handle_coin_flip_event,
            data_model=CoinFlipEventData,
        )

    async def handle_coin_flip_event(
        self,
        transaction: TransactionContext,
        event: LedgerEvent,
        uow: UnitOfWork,
    ) -> None:
        data = event.data
        if not isinstance(data, CoinFlipEventData):
            data = CoinFlipEventData.model_validate(data)

        await uow.insert_many(
            CoinFlipEventModel,
            [
                {
                    "chain_id": self.chain_id,
                    "account_address": event.account_address,
                    "sequence_number": event.sequence_number,
                    "creation_number": event.creation_number,
                    "prediction": data.prediction,
                    "result": data.result,
                    "wins": data.wins,
                    "losses": data.losses,
                    "win_percentage": win_percentage(data.wins, data.losses),
                    "transaction_version": transaction.version,
                    "transaction_timestamp": transaction.timestamp,
                    "event_index": event.event_index,
                }
            ],
        )

        stats = await uow.get(CoinFlipStatModel, {"chain_id": self.chain_id})
        total_wins = int(stats["total_wins"]) if stats else 0
        total_losses = int(stats["total_losses"]) if stats else 0
        if data.won:
            total_wins += 1
        else:
            total_losses += 1

        await uow.upsert(
            CoinFlipStatModel,
            {
                "chain_id": self.chain_id,
                "total_wins": total_wins,
                "total_losses": total_losses,
                "win_percentage": win_percentage(total_wins, total_losses),
                "last_updated": datetime.now(timezone.utc),
            },
            index_elements=["chain_id"],
        )
