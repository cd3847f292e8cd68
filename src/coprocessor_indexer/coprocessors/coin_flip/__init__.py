from __future__ import annotations

from .config import CHAIN_CONFIGS, CoinFlipChainConfig, CoinFlipEventData
from .models import CoinFlipEventModel, CoinFlipStatModel
from .processor import CoinFlipProcessor, win_percentage

__all__ = [
    "CHAIN_CONFIGS",
    "CoinFlipChainConfig",
    "CoinFlipEventData",
    "CoinFlipEventModel",
    "CoinFlipProcessor",
    "CoinFlipStatModel",
    "win_percentage",
]
