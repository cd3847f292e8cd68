"""ProcessingContext: passed into every coprocessor call instead of global flags."""

from __future__ import annotations

import enum
from dataclasses import dataclass

from ..exceptions import ConfigurationError


class Phase(str, enum.Enum):
    CATCH_UP = "catch_up"
    JOINED = "joined"


@dataclass(frozen=True)
class ProcessingContext:
    """Where a coprocessor is in its lifecycle while handling a batch.

    ``ceiling_version`` is the super stream's checkpoint a catch-up run may
    not reach; it is ``None`` once the coprocessor rides the shared stream.
    """

    phase: Phase
    genesis_version: int
    ceiling_version: int | None = None

    def __post_init__(self) -> None:
        if self.phase is Phase.CATCH_UP and self.ceiling_version is None:
            raise ConfigurationError("catch-up processing requires a ceiling version")

    @classmethod
    def catch_up(cls, *, genesis_version: int, ceiling_version: int) -> ProcessingContext:
        return cls(Phase.CATCH_UP, genesis_version, ceiling_version)

    @classmethod
    def joined(cls, *, genesis_version: int) -> ProcessingContext:
        return cls(Phase.JOINED, genesis_version)

    @property
    def joined_shared_stream(self) -> bool:
        return self.phase is Phase.JOINED
