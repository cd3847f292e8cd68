"""Batch processing primitives shared by coprocessors and the super processor."""

from __future__ import annotations

from .batch import (
    PreProcessResult,
    align_to_checkpoint,
    next_version_after,
    post_process,
    pre_process,
)
from .context import Phase, ProcessingContext
from .outcome import Failed, Outcome, Progressed, Synced

__all__ = [
    "Failed",
    "Outcome",
    "Phase",
    "PreProcessResult",
    "ProcessingContext",
    "Progressed",
    "Synced",
    "align_to_checkpoint",
    "next_version_after",
    "post_process",
    "pre_process",
]
