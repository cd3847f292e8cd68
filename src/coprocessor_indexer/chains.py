"""Supported chains and their upstream data stream endpoints."""

from __future__ import annotations

from enum import IntEnum

from .exceptions import ConfigurationError


class SupportedChainId(IntEnum):
    JESTNET = 0  # local tests only
    APTOS_MAINNET = 1
    APTOS_TESTNET = 2
    APTOS_DEVNET = 148


GRPC_DATA_STREAM_ENDPOINTS: dict[SupportedChainId, str] = {
    SupportedChainId.APTOS_MAINNET: "grpc.mainnet.aptoslabs.com:443",
    SupportedChainId.APTOS_TESTNET: "grpc.testnet.aptoslabs.com:443",
    SupportedChainId.APTOS_DEVNET: "grpc.devnet.aptoslabs.com:443",
}


def is_supported_chain_id(value: int | None) -> bool:
    return value is not None and value in SupportedChainId._value2member_map_


def get_supported_chain_id(value: int | None) -> SupportedChainId:
    if value is None or not is_supported_chain_id(value):
        raise ConfigurationError(f"chain id {value} is invalid")
    return SupportedChainId(value)


def grpc_endpoint_for(chain_id: int) -> str | None:
    return GRPC_DATA_STREAM_ENDPOINTS.get(get_supported_chain_id(chain_id))
