"""Layered fact database with a global layer and a stack of local layers.

Reads resolve from the most local layer down to the global layer. Writes always
name their target: ``set``/``set_local`` hit the innermost local layer,
``set_global`` hits the global layer. The bottom local layer always exists;
``push_scope``/``pop_scope`` manage the nested layers above it.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Iterator, Literal, Mapping, Optional

from factrule.database import FactDatabase, FactReader, UndoLog
from factrule.errors import (
    EngineStateError,
    InvalidScopePopError,
    TypeMismatchError,
    UnknownFactError,
)
from factrule.expr.evaluator import arithmetic
from factrule.values import FactValue


LayerName = Literal["local", "global"]

BASE_SCOPE = "base"


class LayeredFactDatabase(FactReader):
    def __init__(self, global_facts: Mapping[str, object] | None = None) -> None:
        self._global = FactDatabase(global_facts)
        self._locals: list[tuple[str, FactDatabase]] = [(BASE_SCOPE, FactDatabase())]
        self._journal: Optional[UndoLog] = None

    # Reads

    def get(self, key: str) -> Optional[FactValue]:
        for _, layer in reversed(self._locals):
            value = layer.get(key)
            if value is not None:
                return value
        return self._global.get(key)

    def contains(self, key: str) -> bool:
        return self.get(key) is not None

    def contains_local(self, key: str) -> bool:
        """True if the innermost local layer holds ``key``."""
        return self._top.contains(key)

    def contains_global(self, key: str) -> bool:
        return self._global.contains(key)

    # Writes

    def set(self, key: str, value: object) -> None:
        self._top.set(key, value)

    def set_local(self, key: str, value: object) -> None:
        self._top.set(key, value)

    def set_global(self, key: str, value: object) -> None:
        self._global.set(key, value)

    def set_if_changed(self, key: str, value: object, layer: LayerName = "local") -> bool:
        """Write unless ``key`` already reads as ``value``.

        A local write compares against the visible value, so re-asserting a
        global fact does not shadow it. A global write compares against the
        global layer.
        """
        if layer == "local" and self.get(key) == FactValue.of(value):
            return False
        return self.layer(layer).set_if_changed(key, value)

    def set_global_if_changed(self, key: str, value: object) -> bool:
        return self._global.set_if_changed(key, value)

    def write(self, key: str, value: object, layer: LayerName = "local") -> None:
        self.layer(layer).set(key, value)

    def increment(self, key: str, amount: int = 1, layer: LayerName = "local") -> None:
        """Add ``amount`` to an int fact, starting from 0 when it is absent."""
        current = self.get(key)
        if current is None:
            current = FactValue("int", 0)
        if current.kind != "int":
            raise TypeMismatchError(f"Cannot increment {current.kind} fact {key!r}.")
        self.layer(layer).set(key, FactValue("int", current.value + amount))  # type: ignore[operator]

    def increment_global(self, key: str, amount: int = 1) -> None:
        self.increment(key, amount, layer="global")

    def add(self, key: str, amount: int | float, layer: LayerName = "local") -> None:
        current = self.get(key)
        if current is None:
            self.layer(layer).set(key, FactValue.of(amount))
            return
        self.layer(layer).set(key, arithmetic("add", current, FactValue.of(amount)))

    def sub(self, key: str, amount: int | float, layer: LayerName = "local") -> None:
        self.add(key, -amount, layer=layer)

    def mul(self, key: str, factor: int | float, layer: LayerName = "local") -> None:
        current = self._require(key)
        self.layer(layer).set(key, arithmetic("mul", current, FactValue.of(factor)))

    def div(self, key: str, divisor: int | float, layer: LayerName = "local") -> None:
        current = self._require(key)
        self.layer(layer).set(key, arithmetic("div", current, FactValue.of(divisor)))

    def modulo(self, key: str, divisor: int, layer: LayerName = "local") -> None:
        current = self._require(key)
        self.layer(layer).set(key, arithmetic("mod", current, FactValue.of(divisor)))

    def clamp(
        self, key: str, low: int | float, high: int | float, layer: LayerName = "local"
    ) -> None:
        if high < low:
            raise ValueError("clamp requires low <= high")
        current = self._require(key)
        number = current.as_number()
        clamped = max(low, min(high, number))
        if current.kind == "float":
            self.layer(layer).set(key, FactValue("float", clamped))
        else:
            self.layer(layer).set(key, FactValue.of(clamped))

    def wrap(self, key: str, low: int, high: int, layer: LayerName = "local") -> None:
        """Wrap an int fact into ``[low, high)``."""
        if high <= low:
            raise ValueError("wrap requires low < high")
        current = self._require(key)
        if current.kind != "int":
            raise TypeMismatchError(f"Cannot wrap {current.kind} fact {key!r}.")
        wrapped = (current.value - low) % (high - low) + low  # type: ignore[operator]
        self.layer(layer).set(key, FactValue("int", wrapped))

    def remove(self, key: str) -> Optional[FactValue]:
        return self._top.remove(key)

    def remove_global(self, key: str) -> Optional[FactValue]:
        return self._global.remove(key)

    # Moving facts between layers

    def promote_to_global(self, key: str) -> bool:
        value = self._top.remove(key)
        if value is None:
            return False
        self._global.set(key, value)
        return True

    def copy_to_global(self, key: str) -> bool:
        value = self._top.get(key)
        if value is None:
            return False
        self._global.set(key, value)
        return True

    def demote_to_local(self, key: str) -> bool:
        value = self._global.remove(key)
        if value is None:
            return False
        self._top.set(key, value)
        return True

    # Layer management

    def push_scope(self, scope_id: str) -> None:
        if not isinstance(scope_id, str) or not scope_id:
            raise ValueError("scope_id must be a non-empty string")
        layer = FactDatabase()
        layer.attach_journal(self._journal)
        self._locals.append((scope_id, layer))

    def pop_scope(self, scope_id: str | None = None) -> dict[str, FactValue]:
        """Discard the innermost pushed layer and return its facts."""
        if len(self._locals) == 1:
            raise InvalidScopePopError("pop_scope called with no pushed scope.")
        top_id, top = self._locals[-1]
        if scope_id is not None and scope_id != top_id:
            raise InvalidScopePopError(
                f"Cannot pop scope {scope_id!r}: innermost scope is {top_id!r}."
            )
        self._locals.pop()
        top.attach_journal(None)
        return dict(top.view())

    @property
    def scopes(self) -> list[str]:
        """Pushed scope ids, outermost first."""
        return [scope_id for scope_id, _ in self._locals[1:]]

    @property
    def current_scope(self) -> str:
        return self._locals[-1][0]

    def clear_local(self) -> None:
        """Empty the innermost local layer; the global layer is untouched."""
        self._top.clear()

    def clear_global(self) -> None:
        self._global.clear()

    def clear_all(self) -> None:
        for _, layer in self._locals:
            layer.clear()
        self._global.clear()

    def layer(self, name: LayerName) -> FactDatabase:
        if name == "local":
            return self._top
        if name == "global":
            return self._global
        raise ValueError(f"layer must be 'local' or 'global', got {name!r}")

    def local_view(self) -> Mapping[str, FactValue]:
        return self._top.view()

    def global_view(self) -> Mapping[str, FactValue]:
        return self._global.view()

    def snapshot(self) -> Mapping[str, FactValue]:
        """Frozen merged view of every visible fact."""
        return MappingProxyType(dict(self.items()))

    def checkpoint(self) -> UndoLog:
        """Start recording writes so they can be undone with ``restore``.

        Only the keys written after this call are tracked. Call ``commit`` to
        keep the writes or ``restore`` to undo them; either ends the recording.
        """
        if self._journal is not None:
            raise EngineStateError("A checkpoint is already open.")
        journal = UndoLog()
        self._attach(journal)
        return journal

    def commit(self, checkpoint: UndoLog) -> None:
        if checkpoint is self._journal:
            self._attach(None)

    def restore(self, checkpoint: UndoLog) -> None:
        """Undo every write recorded since ``checkpoint``, in place."""
        self.commit(checkpoint)
        checkpoint.rollback()

    def _attach(self, journal: Optional[UndoLog]) -> None:
        self._journal = journal
        self._global.attach_journal(journal)
        for _, layer in self._locals:
            layer.attach_journal(journal)

    # Statistics

    def items(self) -> Iterator[tuple[str, FactValue]]:
        merged: dict[str, FactValue] = dict(self._global.view())
        for _, layer in self._locals:
            merged.update(layer.view())
        return iter(list(merged.items()))

    def local_len(self) -> int:
        return len(self._top)

    def global_len(self) -> int:
        return len(self._global)

    def __len__(self) -> int:
        return sum(1 for _ in self.items())

    def is_empty(self) -> bool:
        return len(self._global) == 0 and all(len(layer) == 0 for _, layer in self._locals)

    @property
    def _top(self) -> FactDatabase:
        return self._locals[-1][1]

    def _require(self, key: str) -> FactValue:
        value = self.get(key)
        if value is None:
            raise UnknownFactError(key)
        return value
