"""Adapters for the checkpoint, stream and unit-of-work ports."""

from __future__ import annotations

from .jsonl import JsonLinesTransactionStream, load_stream_provider

__all__ = [
    "JsonLinesTransactionStream",
    "load_stream_provider",
]
