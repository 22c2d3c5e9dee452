"""Dispatch of opaque action identifiers to host handlers."""

from __future__ import annotations

from typing import Callable, Mapping, Optional

from factrule.errors import FactRuleError
from factrule.values import FactValue


ActionHandler = Callable[[str, str, Mapping[str, FactValue]], None]


class ActionDispatcher:
    """Registry of action handlers keyed by action id.

    Handlers receive ``(action_id, rule_id, fact_snapshot)`` and return nothing.
    Actions without a handler go to the fallback handler, or are ignored.
    """

    def __init__(self, fallback: Optional[ActionHandler] = None) -> None:
        self._handlers: dict[str, ActionHandler] = {}
        self._fallback = fallback

    def register(self, action_id: str, handler: ActionHandler) -> None:
        if not isinstance(action_id, str) or not action_id:
            raise FactRuleError("Action id must be a non-empty string.")
        if action_id in self._handlers:
            raise FactRuleError(f"Action handler already registered: {action_id}")
        self._handlers[action_id] = handler

    def unregister(self, action_id: str) -> Optional[ActionHandler]:
        return self._handlers.pop(action_id, None)

    def set_fallback(self, handler: Optional[ActionHandler]) -> None:
        self._fallback = handler

    def get(self, action_id: str) -> Optional[ActionHandler]:
        return self._handlers.get(action_id, self._fallback)

    def dispatch(self, action_id: str, rule_id: str, snapshot: Mapping[str, FactValue]) -> bool:
        """Call the handler for ``action_id``; returns False when nothing handled it.

        Handler exceptions propagate to the caller.
        """
        handler = self.get(action_id)
        if handler is None:
            return False
        handler(action_id, rule_id, snapshot)
        return True

    def __contains__(self, action_id: object) -> bool:
        return action_id in self._handlers
