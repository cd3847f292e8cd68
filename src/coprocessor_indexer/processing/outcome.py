"""Tagged results of processing a batch or a whole catch-up run."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class Synced:
    """The coprocessor reached the super stream's checkpoint."""

    next_version: int


@dataclass(frozen=True)
class Progressed:
    """A batch was committed; ``next_version`` is the stored checkpoint."""

    next_version: int


@dataclass(frozen=True)
class Failed:
    error: BaseException


Outcome = Union[Synced, Progressed, Failed]
