"""EventHandlerRegistry: maps event type identifiers to async handlers."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ValidationError

from ..correlation import get_correlation_id
from ..domain.events import LedgerEvent
from ..domain.identifiers import EventTypeID, normalize_address
from ..exceptions import EventDecodeError, HandlerRegistrationError
from ..instrumentation import get_hook_registry
from ..log import TRACE

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from ..domain.events import TransactionContext
    from ..domain.transactions import RawEvent
    from ..ports.unit_of_work import UnitOfWork

    EventHandler = Callable[
        [TransactionContext, LedgerEvent, UnitOfWork], Awaitable[None]
    ]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HandlerRegistration:
    event_type_id: EventTypeID
    handler: EventHandler
    data_model: type[BaseModel] | None = None


class EventHandlerRegistry:
    """At most one handler per event type identifier.

    The registry is keyed by :class:`EventTypeID` values, so two spellings of
    the same module address resolve to the same handler.

    **Conflict detection:** with ``strict=True`` (the default) registering a
    second handler for an identifier raises ``HandlerRegistrationError``.
    With ``strict=False`` the later registration replaces the earlier one.
    """

    def __init__(self, *, strict: bool = True) -> None:
        self._strict = strict
        self._registrations: dict[EventTypeID, HandlerRegistration] = {}

    # ── Registration ─────────────────────────────────────────────

    def register(
        self,
        event_type_id: EventTypeID,
        handler: EventHandler,
        *,
        data_model: type[BaseModel] | None = None,
    ) -> None:
        existing = self._registrations.get(event_type_id)
        if existing is not None:
            if self._strict:
                raise HandlerRegistrationError(
                    f"Duplicate event handler for {event_type_id}: "
                    f"{_handler_name(existing.handler)} already registered, "
                    f"cannot register {_handler_name(handler)}"
                )
            logger.warning(
                "Replacing event handler for %s: %s -> %s",
                event_type_id,
                _handler_name(existing.handler),
                _handler_name(handler),
            )
        self._registrations[event_type_id] = HandlerRegistration(
            event_type_id, handler, data_model
        )
        logger.debug(
            "Registered event handler %s -> %s", event_type_id, _handler_name(handler)
        )

    # ── Lookup ───────────────────────────────────────────────────

    def get_registration(self, event_type_id: EventTypeID) -> HandlerRegistration | None:
        return self._registrations.get(event_type_id)

    def registered_ids(self) -> list[EventTypeID]:
        """Return registered identifiers in registration order."""
        return list(self._registrations)

    def get_registered_id(self, index: int) -> EventTypeID:
        ids = self.registered_ids()
        if not 0 <= index < len(ids):
            raise IndexError(f"no registration at index {index} ({len(ids)} registered)")
        return ids[index]

    def __len__(self) -> int:
        return len(self._registrations)

    def __contains__(self, event_type_id: object) -> bool:
        return event_type_id in self._registrations

    # ── Dispatch ─────────────────────────────────────────────────

    async def dispatch(
        self,
        tx_context: TransactionContext,
        raw_event: RawEvent,
        event_index: int,
        uow: UnitOfWork,
    ) -> bool:
        """Route one raw event to its handler.

        Returns False when no handler is registered; misses are expected and
        frequent, so they are logged at TRACE level only.
        """
        event_type_id = EventTypeID.parse(raw_event.type_str)
        registration = (
            self._registrations.get(event_type_id) if event_type_id is not None else None
        )
        if registration is None:
            if logger.isEnabledFor(TRACE):
                logger.log(
                    TRACE,
                    "No handler for %s (tx %d, event %d)",
                    raw_event.type_str,
                    tx_context.version,
                    event_index,
                )
            return False

        event = self.decode(registration, raw_event, event_index)
        await self._invoke(registration, tx_context, event, uow)
        return True

    async def call_handler(
        self,
        event_type_id: EventTypeID,
        tx_context: TransactionContext,
        event: LedgerEvent,
        uow: UnitOfWork,
    ) -> None:
        """Invoke the handler for ``event_type_id`` with an already built event."""
        registration = self._registrations.get(event_type_id)
        if registration is None:
            raise KeyError(f"No handler registered for {event_type_id}")
        await self._invoke(registration, tx_context, event, uow)

    @staticmethod
    def decode(
        registration: HandlerRegistration, raw_event: RawEvent, event_index: int
    ) -> LedgerEvent:
        """Parse the raw JSON payload into a :class:`LedgerEvent`."""
        try:
            payload: Any = json.loads(raw_event.data)
        except json.JSONDecodeError as e:
            raise EventDecodeError(raw_event.type_str, f"invalid JSON: {e}") from e

        if registration.data_model is not None:
            try:
                payload = registration.data_model.model_validate(payload)
            except ValidationError as e:
                raise EventDecodeError(raw_event.type_str, str(e)) from e

        try:
            account_address = normalize_address(raw_event.account_address)
        except ValueError as e:
            raise EventDecodeError(raw_event.type_str, str(e)) from e

        return LedgerEvent(
            type_id=registration.event_type_id,
            sequence_number=raw_event.sequence_number,
            creation_number=raw_event.creation_number,
            account_address=account_address,
            event_index=event_index,
            data=payload,
        )

    async def _invoke(
        self,
        registration: HandlerRegistration,
        tx_context: TransactionContext,
        event: LedgerEvent,
        uow: UnitOfWork,
    ) -> None:
        registry = get_hook_registry()
        await registry.execute_all(
            f"dispatch.{registration.event_type_id.event_name}",
            {
                "event.type": str(registration.event_type_id),
                "transaction.version": tx_context.version,
                "event.index": event.event_index,
                "handler.name": _handler_name(registration.handler),
                "correlation_id": get_correlation_id(),
            },
            lambda: registration.handler(tx_context, event, uow),
        )


def _handler_name(handler: Any) -> str:
    return str(getattr(handler, "__qualname__", None) or type(handler).__name__)
