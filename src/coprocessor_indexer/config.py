"""Indexer settings loaded from a YAML file or from the environment."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from .chains import get_supported_chain_id, grpc_endpoint_for
from .exceptions import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Mapping

logger = logging.getLogger(__name__)

API_KEY_ENV_PREFIX = "GRPC_API_KEY_"
GENESIS_VERSION_ENV_PREFIX = "GENESIS_VERSION_"
DB_ENV_VARS = ("DB_HOST", "DB_PORT", "DB_USERNAME", "DB_PASSWORD", "DB_NAME")

_ASYNC_DRIVERS = {
    "postgresql": "postgresql+asyncpg",
    "postgres": "postgresql+asyncpg",
    "sqlite": "sqlite+aiosqlite",
}


def parse_underscore_number(value: str) -> int:
    """Parse an integer written with ``_`` digit separators (``635_567_537``)."""
    cleaned = value.strip().replace("_", "")
    if not cleaned.isdigit():
        raise ConfigurationError(f"Invalid number format: {value}")
    return int(cleaned)


def to_async_uri(uri: str) -> str:
    """Map a plain database URI onto the asyncio driver SQLAlchemy needs."""
    scheme, sep, rest = uri.partition("://")
    if not sep or "+" in scheme:
        return uri
    driver = _ASYNC_DRIVERS.get(scheme)
    return f"{driver}://{rest}" if driver else uri


class IndexerSettings(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    chain_id: int
    grpc_data_stream_endpoint: str | None = None
    grpc_data_stream_api_key: str | None = None
    starting_version: int = Field(ge=0)
    db_connection_uri: str
    stream_provider: str | None = None
    max_attempts: int = Field(default=6, ge=1)
    retry_base_delay: float = Field(default=1.0, ge=0)
    retry_max_delay: float = Field(default=30.0, ge=0)

    @field_validator("chain_id")
    @classmethod
    def _supported_chain(cls, value: int) -> int:
        try:
            return int(get_supported_chain_id(value))
        except ConfigurationError as e:
            raise ValueError(str(e)) from e

    @field_validator("db_connection_uri")
    @classmethod
    def _async_driver(cls, value: str) -> str:
        return to_async_uri(value)

    @model_validator(mode="after")
    def _retry_delays(self) -> IndexerSettings:
        if self.retry_base_delay > self.retry_max_delay:
            raise ValueError("retry_base_delay must be <= retry_max_delay")
        return self

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> IndexerSettings:
        """Build settings, accepting the nested ``server_config`` layout too."""
        values = dict(data)
        server_config = values.pop("server_config", None)
        if isinstance(server_config, dict):
            values = {**server_config, **values}
        starting = values.get("starting_version")
        if isinstance(starting, str):
            values["starting_version"] = parse_underscore_number(starting)
        try:
            return cls.model_validate(values)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid indexer settings: {e}") from e

    @classmethod
    def from_yaml_file(cls, path: str | Path) -> IndexerSettings:
        config_path = Path(path)
        try:
            with config_path.open() as f:
                loaded = yaml.safe_load(f)
        except FileNotFoundError as e:
            raise ConfigurationError(f"Settings file not found: {config_path}") from e
        except yaml.YAMLError as e:
            raise ConfigurationError(f"YAML syntax error in {config_path}: {e}") from e
        if not isinstance(loaded, dict):
            raise ConfigurationError(
                f"{config_path} must contain a YAML mapping, got {type(loaded).__name__}"
            )
        logger.info("Loaded configuration from %s", config_path)
        return cls.from_mapping(loaded)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> IndexerSettings:
        """Build settings from ``CHAIN_ID``, ``DB_*`` and per-chain variables."""
        env = os.environ if environ is None else environ
        missing = [name for name in ("CHAIN_ID", *DB_ENV_VARS) if not env.get(name)]
        if missing:
            raise ConfigurationError(
                f"Missing required environment variables: {', '.join(missing)}"
            )

        chain_id = get_supported_chain_id(parse_underscore_number(env["CHAIN_ID"]))
        api_key = env.get(f"{API_KEY_ENV_PREFIX}{int(chain_id)}")
        if not api_key:
            raise ConfigurationError(
                f"{API_KEY_ENV_PREFIX}{int(chain_id)} is not defined"
            )
        genesis = env.get(f"{GENESIS_VERSION_ENV_PREFIX}{int(chain_id)}")
        if not genesis:
            raise ConfigurationError(
                f"{GENESIS_VERSION_ENV_PREFIX}{int(chain_id)} is not defined"
            )

        uri = (
            f"postgresql://{env['DB_USERNAME']}:{env['DB_PASSWORD']}"
            f"@{env['DB_HOST']}:{env['DB_PORT']}/{env['DB_NAME']}"
        )
        logger.info("Using configuration from environment variables")
        return cls.from_mapping(
            {
                "chain_id": int(chain_id),
                "grpc_data_stream_endpoint": grpc_endpoint_for(chain_id),
                "grpc_data_stream_api_key": api_key,
                "starting_version": parse_underscore_number(genesis),
                "db_connection_uri": uri,
                "stream_provider": env.get("STREAM_PROVIDER") or None,
            }
        )
