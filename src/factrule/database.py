"""Flat key-value fact database."""

from __future__ import annotations

from types import MappingProxyType
from typing import Iterator, Mapping, Optional

from factrule.errors import TypeMismatchError
from factrule.values import FactValue


class FactReader:
    """Typed read accessors shared by every fact store.

    Subclasses implement ``get`` and ``contains``. The narrowing accessors
    return ``None`` on a type mismatch so callers decide whether that is fatal.
    """

    def get(self, key: str) -> Optional[FactValue]:  # pragma: no cover - interface
        raise NotImplementedError

    def contains(self, key: str) -> bool:  # pragma: no cover - interface
        raise NotImplementedError

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.contains(key)

    def get_int(self, key: str) -> Optional[int]:
        value = self.get(key)
        return value.as_int() if value is not None else None

    def get_int_or(self, key: str, default: int) -> int:
        value = self.get_int(key)
        return default if value is None else value

    def get_float(self, key: str) -> Optional[float]:
        value = self.get(key)
        return value.as_float() if value is not None else None

    def get_bool(self, key: str) -> Optional[bool]:
        value = self.get(key)
        return value.as_bool() if value is not None else None

    def get_string(self, key: str) -> Optional[str]:
        value = self.get(key)
        return value.as_string() if value is not None else None

    def get_int_list(self, key: str) -> Optional[tuple[int, ...]]:
        value = self.get(key)
        return value.as_int_list() if value is not None else None

    def get_string_list(self, key: str) -> Optional[tuple[str, ...]]:
        value = self.get(key)
        return value.as_string_list() if value is not None else None


class UndoLog:
    """Prior values of every key written while the log is attached.

    ``rollback`` replays the entries newest first, so each key ends up with the
    value it had before its first recorded write.
    """

    def __init__(self) -> None:
        self._entries: list[tuple[FactDatabase, str, Optional[FactValue]]] = []

    def record(self, store: "FactDatabase", key: str, previous: Optional[FactValue]) -> None:
        self._entries.append((store, key, previous))

    def rollback(self) -> None:
        for store, key, previous in reversed(self._entries):
            store._put(key, previous)
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class FactDatabase(FactReader):
    """Mapping from fact key to ``FactValue``."""

    def __init__(self, initial: Mapping[str, object] | None = None) -> None:
        self._facts: dict[str, FactValue] = {}
        self._journal: Optional[UndoLog] = None
        if initial:
            for key, value in initial.items():
                self.set(key, value)

    def get(self, key: str) -> Optional[FactValue]:
        return self._facts.get(key)

    def contains(self, key: str) -> bool:
        return key in self._facts

    def set(self, key: str, value: object) -> None:
        """Overwrite ``key``; the stored variant may change."""
        if not isinstance(key, str) or not key:
            raise TypeMismatchError("Fact key must be a non-empty string.")
        new_value = FactValue.of(value)
        self._record(key)
        self._facts[key] = new_value

    def set_if_changed(self, key: str, value: object) -> bool:
        """Write only when the stored value differs structurally; report the write."""
        new_value = FactValue.of(value)
        if self._facts.get(key) == new_value:
            return False
        self.set(key, new_value)
        return True

    def increment(self, key: str, amount: int = 1) -> None:
        current = self._facts.get(key)
        if current is None:
            self.set(key, FactValue("int", amount))
            return
        if current.kind != "int":
            raise TypeMismatchError(f"Cannot increment {current.kind} fact {key!r}.")
        self.set(key, FactValue("int", current.value + amount))  # type: ignore[operator]

    def remove(self, key: str) -> Optional[FactValue]:
        self._record(key)
        return self._facts.pop(key, None)

    def clear(self) -> None:
        for key in self._facts:
            self._record(key)
        self._facts.clear()

    def attach_journal(self, journal: Optional[UndoLog]) -> None:
        """Record prior values into ``journal``; ``None`` stops recording."""
        self._journal = journal

    def _record(self, key: str) -> None:
        if self._journal is not None:
            self._journal.record(self, key, self._facts.get(key))

    def _put(self, key: str, value: Optional[FactValue]) -> None:
        if value is None:
            self._facts.pop(key, None)
        else:
            self._facts[key] = value

    def items(self) -> Iterator[tuple[str, FactValue]]:
        return iter(list(self._facts.items()))

    def keys(self) -> list[str]:
        return list(self._facts)

    def view(self) -> Mapping[str, FactValue]:
        """Read-only live view of the stored facts."""
        return MappingProxyType(self._facts)

    def to_dict(self) -> dict[str, dict[str, object]]:
        return {key: value.to_dict() for key, value in self._facts.items()}

    def copy(self) -> "FactDatabase":
        clone = FactDatabase()
        clone._facts = dict(self._facts)
        return clone

    def __len__(self) -> int:
        return len(self._facts)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._facts))

    def __repr__(self) -> str:
        return f"FactDatabase({len(self._facts)} facts)"
