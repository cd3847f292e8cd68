"""JSON Lines transaction stream and stream provider loading.

Each line of the file is one :class:`TransactionBatch` serialized as JSON::

    {"start_version": 100, "end_version": 199, "transactions": [...]}
"""

from __future__ import annotations

import asyncio
import importlib
import logging
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import ValidationError

from ..domain.transactions import TransactionBatch
from ..exceptions import ConfigurationError, ProcessingError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable

    from ..ports.stream import ITransactionStream

logger = logging.getLogger(__name__)

JSONL_PREFIX = "jsonl:"


class JsonLinesTransactionStream:
    """Replays batches recorded in a JSON Lines file.

    Batches ending before the requested version are skipped and a batch
    straddling it is trimmed, so the first yielded batch starts exactly at
    ``starting_version``.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    async def stream(self, starting_version: int) -> AsyncIterator[TransactionBatch]:
        logger.info("replaying %s from version %d", self.path, starting_version)
        with self.path.open(encoding="utf-8") as f:
            for line_number, line in enumerate(f, start=1):
                if not line.strip():
                    continue
                try:
                    batch = TransactionBatch.model_validate_json(line)
                except ValidationError as e:
                    raise ProcessingError(
                        f"{self.path}:{line_number}: invalid batch: {e}"
                    ) from e
                if batch.end_version < starting_version:
                    continue
                if batch.start_version < starting_version:
                    batch = TransactionBatch(
                        transactions=tuple(
                            tx
                            for tx in batch.transactions
                            if tx.version >= starting_version
                        ),
                        start_version=starting_version,
                        end_version=batch.end_version,
                    )
                yield batch
                await asyncio.sleep(0)


def load_stream_provider(provider: str) -> Callable[[], ITransactionStream]:
    """Resolve a ``jsonl:<path>`` or ``module:attribute`` provider string.

    ``module:attribute`` must name a zero-argument callable (typically a
    class) returning an object with a ``stream(starting_version)`` method.
    """
    if provider.startswith(JSONL_PREFIX):
        path = Path(provider[len(JSONL_PREFIX) :])
        if not path.is_file():
            raise ConfigurationError(f"stream file not found: {path}")
        return lambda: JsonLinesTransactionStream(path)

    module_name, sep, attribute = provider.partition(":")
    if not sep or not module_name or not attribute:
        raise ConfigurationError(
            f"stream provider must be 'jsonl:<path>' or 'module:attribute', "
            f"got {provider!r}"
        )
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigurationError(f"cannot import stream provider {provider}: {e}") from e
    factory = getattr(module, attribute, None)
    if factory is None or not callable(factory):
        raise ConfigurationError(f"stream provider {provider} is not callable")
    return factory  # type: ignore[no-any-return]
