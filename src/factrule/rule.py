"""Rule record binding an event to a condition and its effects."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any

from factrule.condition import Always, Condition, ConditionLike, as_condition, condition_from_dict
from factrule.errors import RuleLoadError
from factrule.modifications import Modification, modification_from_dict


@dataclass(frozen=True)
class Rule:
    """A named ``event -> condition -> modifications/actions/outputs`` binding."""

    id: str
    event: str
    condition: Condition = field(default_factory=Always)
    modifications: tuple[Modification, ...] = field(default_factory=tuple)
    actions: tuple[str, ...] = field(default_factory=tuple)
    outputs: tuple[str, ...] = field(default_factory=tuple)
    consume_event: bool = False
    priority: int = 0
    enabled: bool = True

    def __post_init__(self) -> None:
        if not isinstance(self.id, str) or not self.id:
            raise RuleLoadError("Rule id must be a non-empty string.")
        if not isinstance(self.event, str) or not self.event:
            raise RuleLoadError(f"Rule {self.id!r}: event must be a non-empty string.")
        object.__setattr__(self, "condition", as_condition(self.condition))
        mods = tuple(self.modifications)
        for mod in mods:
            if not isinstance(mod, Modification):
                raise RuleLoadError(f"Rule {self.id!r}: invalid modification {mod!r}.")
            if mod.layer not in (None, "local", "global"):
                raise RuleLoadError(f"Rule {self.id!r}: unknown layer {mod.layer!r}.")
        object.__setattr__(self, "modifications", mods)
        for name in ("actions", "outputs"):
            items = tuple(getattr(self, name))
            if not all(isinstance(item, str) and item for item in items):
                raise RuleLoadError(f"Rule {self.id!r}: {name} must be non-empty strings.")
            object.__setattr__(self, name, items)

    def with_id(self, rule_id: str) -> "Rule":
        return replace(self, id=rule_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "event": self.event,
            "condition": self.condition.to_dict(),
            "modifications": [mod.to_dict() for mod in self.modifications],
            "actions": list(self.actions),
            "outputs": list(self.outputs),
            "consume_event": self.consume_event,
            "priority": self.priority,
            "enabled": self.enabled,
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "Rule":
        condition: ConditionLike = None
        if data.get("condition") is not None:
            condition = condition_from_dict(data["condition"])
        return Rule(
            id=data["id"],
            event=data["event"],
            condition=condition,  # type: ignore[arg-type]
            modifications=tuple(
                modification_from_dict(item) for item in data.get("modifications", [])
            ),
            actions=tuple(data.get("actions", [])),
            outputs=tuple(data.get("outputs", [])),
            consume_event=bool(data.get("consume_event", False)),
            priority=int(data.get("priority", 0)),
            enabled=bool(data.get("enabled", True)),
        )
