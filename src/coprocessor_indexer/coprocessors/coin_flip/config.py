"""Per-chain deployments of the coin flip module."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict, Field

from ...chains import SupportedChainId

COIN_FLIP_MODULE_NAME = "coin_flip"
COIN_FLIP_EVENT_NAME = "CoinFlipEvent"


@dataclass(frozen=True)
class CoinFlipChainConfig:
    module_publisher: str
    genesis_version: int


CHAIN_CONFIGS: dict[int, CoinFlipChainConfig] = {
    SupportedChainId.APTOS_TESTNET: CoinFlipChainConfig(
        module_publisher="0xe57752173bc7c57e9b61c84895a75e53cd7c0ef0855acd81d31cb39b0e87e1d0",
        genesis_version=635_567_537,
    ),
    # local tests
    SupportedChainId.JESTNET: CoinFlipChainConfig(
        module_publisher="0xe57752173bc7c57e9b61c84895a75e53cd7c0ef0855acd81d31cb39b0e87e1d0",
        genesis_version=635_567_537,
    ),
}


class CoinFlipEventData(BaseModel):
    """Payload of ``coin_flip::CoinFlipEvent``; u64 counters arrive as strings."""

    model_config = ConfigDict(frozen=True)

    prediction: bool
    result: bool
    wins: int = Field(ge=0)
    losses: int = Field(ge=0)

    @property
    def won(self) -> bool:
        return self.prediction == self.result
