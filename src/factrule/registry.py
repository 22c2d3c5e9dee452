"""Rule registry partitioned into a global scope and named context scopes."""

from __future__ import annotations

from collections import Counter
from dataclasses import replace
from typing import Iterable, Literal, Optional

from factrule.errors import DuplicateRuleIdError
from factrule.rule import Rule


GLOBAL_SCOPE = "global"

DuplicateIdPolicy = Literal["error", "suffix"]


class RuleRegistry:
    """Ordered rule storage with duplicate-id detection.

    Global rules always match. Rules of any other scope match only while that
    scope is active; deactivating a scope keeps its rules for the next activation.
    """

    def __init__(self) -> None:
        self._scopes: dict[str, list[Rule]] = {GLOBAL_SCOPE: []}
        self._active: list[str] = []

    @property
    def scopes(self) -> list[str]:
        return list(self._scopes)

    @property
    def active_scopes(self) -> list[str]:
        return list(self._active)

    def register(self, rule: Rule, scope: str = GLOBAL_SCOPE) -> Rule:
        bucket = self._scopes.setdefault(scope, [])
        if any(existing.id == rule.id for existing in bucket):
            raise DuplicateRuleIdError(rule.id, scope)
        bucket.append(rule)
        return rule

    def register_batch(
        self,
        rules: Iterable[Rule],
        scope: str = GLOBAL_SCOPE,
        policy: DuplicateIdPolicy = "error",
    ) -> list[Rule]:
        """Register ``rules`` all-or-nothing.

        With ``policy="suffix"`` ids repeated inside the batch become ``id-0``,
        ``id-1``... A collision with a rule already in ``scope`` is always an error.
        """
        if policy not in ("error", "suffix"):
            raise ValueError(f"Unknown duplicate id policy: {policy!r}")
        batch = list(rules)
        counts = Counter(rule.id for rule in batch)
        seen: dict[str, int] = {}
        resolved: list[Rule] = []
        for rule in batch:
            if counts[rule.id] > 1:
                if policy == "error":
                    raise DuplicateRuleIdError(rule.id, scope)
                index = seen.get(rule.id, 0)
                seen[rule.id] = index + 1
                rule = rule.with_id(f"{rule.id}-{index}")
            resolved.append(rule)

        existing = {rule.id for rule in self._scopes.get(scope, [])}
        taken: set[str] = set()
        for rule in resolved:
            if rule.id in existing or rule.id in taken:
                raise DuplicateRuleIdError(rule.id, scope)
            taken.add(rule.id)

        self._scopes.setdefault(scope, []).extend(resolved)
        return resolved

    def unregister(self, rule_id: str, scope: str = GLOBAL_SCOPE) -> Optional[Rule]:
        bucket = self._scopes.get(scope, [])
        for index, rule in enumerate(bucket):
            if rule.id == rule_id:
                return bucket.pop(index)
        return None

    def get(self, rule_id: str, scope: str = GLOBAL_SCOPE) -> Optional[Rule]:
        for rule in self._scopes.get(scope, []):
            if rule.id == rule_id:
                return rule
        return None

    def set_enabled(self, rule_id: str, enabled: bool, scope: str = GLOBAL_SCOPE) -> bool:
        bucket = self._scopes.get(scope, [])
        for index, rule in enumerate(bucket):
            if rule.id == rule_id:
                bucket[index] = replace(rule, enabled=enabled)
                return True
        return False

    def scope_rules(self, scope: str = GLOBAL_SCOPE) -> list[Rule]:
        return list(self._scopes.get(scope, []))

    def clear_scope(self, scope: str) -> None:
        if scope == GLOBAL_SCOPE:
            self._scopes[GLOBAL_SCOPE] = []
        else:
            self._scopes.pop(scope, None)

    def activate_scope(self, scope: str) -> None:
        if scope == GLOBAL_SCOPE:
            return
        self._scopes.setdefault(scope, [])
        if scope not in self._active:
            self._active.append(scope)

    def deactivate_scope(self, scope: str) -> None:
        if scope in self._active:
            self._active.remove(scope)

    def is_active(self, scope: str) -> bool:
        return scope == GLOBAL_SCOPE or scope in self._active

    def rules_for_event(
        self, event_id: str, active_scopes: Iterable[str] | None = None
    ) -> list[Rule]:
        """Enabled rules for ``event_id``: global scope first, then active scopes.

        Higher ``priority`` runs first; equal priorities keep registration order.
        """
        scopes = self._active if active_scopes is None else list(active_scopes)
        matched: list[Rule] = []
        for scope in [GLOBAL_SCOPE, *[s for s in scopes if s != GLOBAL_SCOPE]]:
            for rule in self._scopes.get(scope, []):
                if rule.enabled and rule.event == event_id:
                    matched.append(rule)
        return sorted(matched, key=lambda rule: -rule.priority)

    def to_dict(self) -> dict[str, object]:
        return {
            "scopes": {
                scope: [rule.to_dict() for rule in rules] for scope, rules in self._scopes.items()
            },
            "active": list(self._active),
        }

    def __len__(self) -> int:
        return sum(len(rules) for rules in self._scopes.values())
