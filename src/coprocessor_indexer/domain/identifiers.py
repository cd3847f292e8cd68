"""Event type identifier: the dispatch key of the event handler registry."""

from __future__ import annotations

import re

from pydantic import BaseModel, ConfigDict, field_validator

ADDRESS_HEX_WIDTH = 64

_HEX_RE = re.compile(r"^[0-9a-fA-F]+$")


def normalize_address(address: str) -> str:
    """Return ``address`` as ``0x`` followed by 64 lowercase hex digits.

    Raises ``ValueError`` for anything that is not a hex account address.
    """
    raw = address.strip()
    if raw[:2].lower() == "0x":
        raw = raw[2:]
    if not raw or len(raw) > ADDRESS_HEX_WIDTH or not _HEX_RE.match(raw):
        raise ValueError(f"Invalid account address: {address!r}")
    return "0x" + raw.lower().rjust(ADDRESS_HEX_WIDTH, "0")


class EventTypeID(BaseModel):
    """``<module_address>::<module_name>::<event_name>`` with a normalized address.

    Two identifiers are equal iff all three fields match after address
    normalization, so ``0x1::coin::DepositEvent`` and
    ``0x0000...0001::coin::DepositEvent`` are the same key. Frozen, so the
    generated ``__eq__`` and ``__hash__`` compare the normalized fields.
    """

    model_config = ConfigDict(frozen=True)

    module_address: str
    module_name: str
    event_name: str

    @field_validator("module_address")
    @classmethod
    def _normalize_module_address(cls, value: str) -> str:
        return normalize_address(value)

    @field_validator("module_name", "event_name")
    @classmethod
    def _non_empty(cls, value: str) -> str:
        if not value:
            raise ValueError("module and event names must be non-empty")
        return value

    @classmethod
    def parse(cls, type_str: str) -> EventTypeID | None:
        """Parse an on-chain event type string.

        Returns ``None`` for type strings that do not name a module struct
        (primitives, vectors, malformed addresses); those never dispatch.
        Generic parameters stay part of the event name.
        """
        parts = type_str.split("::", 2)
        if len(parts) != 3:
            return None
        address, module_name, event_name = parts
        try:
            return cls(
                module_address=address,
                module_name=module_name,
                event_name=event_name,
            )
        except ValueError:
            return None

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.module_address, self.module_name, self.event_name)

    def __str__(self) -> str:
        return f"{self.module_address}::{self.module_name}::{self.event_name}"
