"""Events and the pending-event queue."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterator, Mapping, Optional

from factrule.values import FactValue

EVENT_FACT_PREFIX = "event."


@dataclass(frozen=True)
class Event:
    """A named signal with an optional payload.

    ``root`` names the externally emitted event a cascade started from and
    ``cause`` the rule whose output produced this event.
    """

    id: str
    payload: Mapping[str, FactValue] = field(default_factory=dict)
    root: str = ""
    cause: Optional[str] = None

    def __post_init__(self) -> None:
        if not isinstance(self.id, str) or not self.id:
            raise ValueError("Event id must be a non-empty string")
        payload = {str(k): FactValue.of(v) for k, v in dict(self.payload).items()}
        object.__setattr__(self, "payload", MappingProxyType(payload))
        if not self.root:
            object.__setattr__(self, "root", self.id)

    def fact(self, key: str) -> Optional[FactValue]:
        """Resolve ``event.<name>`` keys against the payload."""
        if key.startswith(EVENT_FACT_PREFIX):
            return self.payload.get(key[len(EVENT_FACT_PREFIX):])
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "payload": {k: v.to_dict() for k, v in self.payload.items()},
            "root": self.root,
            "cause": self.cause,
        }


class EventQueue:
    """FIFO of pending events drained one snapshot at a time."""

    def __init__(self) -> None:
        self._pending: deque[Event] = deque()

    def emit(self, event: Event) -> None:
        self._pending.append(event)

    def drain_snapshot(self) -> list[Event]:
        """Remove and return everything pending right now, in enqueue order."""
        snapshot = list(self._pending)
        self._pending.clear()
        return snapshot

    def peek(self) -> list[Event]:
        return list(self._pending)

    def clear(self) -> int:
        dropped = len(self._pending)
        self._pending.clear()
        return dropped

    def __len__(self) -> int:
        return len(self._pending)

    def __bool__(self) -> bool:
        return bool(self._pending)

    def __iter__(self) -> Iterator[Event]:
        return iter(list(self._pending))
