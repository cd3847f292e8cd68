"""Event dispatch: event type identifiers routed to registered handlers."""

from __future__ import annotations

from .registry import EventHandlerRegistry, HandlerRegistration

__all__ = [
    "EventHandlerRegistry",
    "HandlerRegistration",
]
