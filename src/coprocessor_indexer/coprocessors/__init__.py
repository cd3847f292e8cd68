"""Coprocessors shipped with the indexer."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..exceptions import UnsupportedChainError
from .coin_flip import CoinFlipProcessor

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from ..coprocessor import Coprocessor

logger = logging.getLogger(__name__)

COPROCESSOR_TYPES: tuple[Callable[[int], Coprocessor], ...] = (CoinFlipProcessor,)


def build_coprocessors(
    chain_id: int,
    types: Sequence[Callable[[int], Coprocessor]] = COPROCESSOR_TYPES,
) -> list[Coprocessor]:
    """Instantiate every coprocessor deployed on ``chain_id``, in order."""
    coprocessors: list[Coprocessor] = []
    for factory in types:
        try:
            coprocessors.append(factory(chain_id))
        except UnsupportedChainError as e:
            logger.warning("skipping coprocessor: %s", e)
    return coprocessors


__all__ = ["COPROCESSOR_TYPES", "CoinFlipProcessor", "build_coprocessors"]
