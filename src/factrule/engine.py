"""Rule engine: event intake, drain passes, cascade control and contexts."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Mapping, Optional

import structlog

from factrule.actions import ActionDispatcher
from factrule.config import EngineConfig
from factrule.errors import (
    CascadeDepthExceededError,
    EngineStateError,
    EvaluationError,
    InvalidScopePopError,
)
from factrule.events import Event, EventQueue
from factrule.layered import LayeredFactDatabase
from factrule.loader import RuleSet
from factrule.observability import EngineIssue, IssueSink, LoggingSink
from factrule.registry import GLOBAL_SCOPE, RuleRegistry
from factrule.rule import Rule
from factrule.values import FactValue


logger = structlog.get_logger(__name__)


@dataclass
class TickReport:
    """What one call to ``RuleEngine.tick`` did."""

    events_processed: int = 0
    rules_fired: int = 0
    passes: int = 0
    issues: list[EngineIssue] = field(default_factory=list)
    cascade_exceeded: bool = False
    dropped: int = 0
    deferred: int = 0

    @property
    def idle(self) -> bool:
        return self.passes == 0


class RuleEngine:
    """Owns the fact database, the rule registry and the pending-event queue.

    ``tick`` drains a snapshot of the queue; events emitted by fired rules
    are handled in follow-on passes of the same tick, at most
    ``config.max_cascade_depth`` of them. With a depth of 0 they simply wait
    for the next tick.
    """

    def __init__(
        self,
        db: Optional[LayeredFactDatabase] = None,
        registry: Optional[RuleRegistry] = None,
        config: Optional[EngineConfig] = None,
        actions: Optional[ActionDispatcher] = None,
        sink: Optional[IssueSink] = None,
    ) -> None:
        self.config = config or EngineConfig()
        self.db = db if db is not None else LayeredFactDatabase()
        self.registry = registry if registry is not None else RuleRegistry()
        self.actions = actions if actions is not None else ActionDispatcher()
        self.sink: IssueSink = sink if sink is not None else LoggingSink()
        self._queue = EventQueue()
        self._contexts: list[str] = []
        self._context_facts: dict[str, dict[str, FactValue]] = {}
        self._draining = False

    @classmethod
    def from_rule_set(cls, rule_set: RuleSet, **kwargs) -> "RuleEngine":
        engine = cls(**kwargs)
        engine.load(rule_set)
        return engine

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        json_logs: bool = False,
        **kwargs,
    ) -> "RuleEngine":
        """Build an engine configured from ``FACTRULE_*`` variables.

        Logging is configured at the resulting ``log_level``.
        """
        config = EngineConfig.from_env(environ)
        config.apply_logging(json=json_logs)
        return cls(config=config, **kwargs)

    # Loading

    def load(self, rule_set: RuleSet, scope: str = GLOBAL_SCOPE) -> list[Rule]:
        """Register every rule of ``rule_set`` in ``scope`` and seed its facts.

        Registration is all-or-nothing; facts are only seeded once it succeeded.
        Facts of a context scope are seeded into that context's local layer each
        time it is entered.
        """
        registered = self.registry.register_batch(
            rule_set.rules, scope, policy=self.config.duplicate_id_policy
        )
        if scope == GLOBAL_SCOPE:
            for key, value in rule_set.facts.items():
                self.db.set_global(key, value)
        else:
            self._context_facts.setdefault(scope, {}).update(rule_set.facts)
            if self.current_context == scope:
                for key, value in rule_set.facts.items():
                    self.db.set_local(key, value)
        logger.debug("rule set loaded", scope=scope, rules=len(registered), facts=len(rule_set.facts))
        return registered

    def register_rule(self, rule: Rule, scope: str = GLOBAL_SCOPE) -> Rule:
        return self.registry.register(rule, scope)

    def register_action(self, action_id: str, handler: Callable[[str, str, Mapping[str, FactValue]], None]) -> None:
        self.actions.register(action_id, handler)

    # Contexts

    @property
    def contexts(self) -> list[str]:
        return list(self._contexts)

    @property
    def current_context(self) -> Optional[str]:
        return self._contexts[-1] if self._contexts else None

    def enter_context(self, scope_id: str) -> None:
        self.db.push_scope(scope_id)
        self._contexts.append(scope_id)
        self.registry.activate_scope(scope_id)
        for key, value in self._context_facts.get(scope_id, {}).items():
            self.db.set_local(key, value)
        logger.info("context entered", scope=scope_id, depth=len(self._contexts))

    def exit_context(self, scope_id: str) -> None:
        """Leave the innermost context; its local facts are discarded."""
        if not self._contexts:
            raise InvalidScopePopError(f"exit_context({scope_id!r}) with no context entered.")
        if self._contexts[-1] != scope_id:
            raise InvalidScopePopError(
                f"exit_context({scope_id!r}) does not match current context {self._contexts[-1]!r}."
            )
        self.db.pop_scope(scope_id)
        self._contexts.pop()
        if scope_id not in self._contexts:
            self.registry.deactivate_scope(scope_id)
        logger.info("context exited", scope=scope_id, depth=len(self._contexts))

    # Events

    def emit(self, event_id: str, payload: Optional[Mapping[str, object]] = None) -> Event:
        event = Event(event_id, payload or {})
        self._queue.emit(event)
        return event

    @property
    def pending(self) -> list[Event]:
        return self._queue.peek()

    def tick(self) -> TickReport:
        """Drain pending events; recoverable problems go to the sink and the report."""
        if self._draining:
            raise EngineStateError("tick() called while the engine is already draining.")
        self._draining = True
        report = TickReport()
        try:
            batch = self._queue.drain_snapshot()
            follow_on = 0
            while batch:
                report.passes += 1
                for event in batch:
                    self._process(event, report)
                if not self._queue or self.config.max_cascade_depth == 0:
                    break
                if follow_on >= self.config.max_cascade_depth:
                    self._overflow(report)
                    break
                follow_on += 1
                batch = self._queue.drain_snapshot()
        finally:
            self._draining = False
        return report

    # Internals

    def _lookup_for(self, event: Event) -> Callable[[str], Optional[FactValue]]:
        db_get = self.db.get
        if not event.payload:
            return db_get

        def lookup(key: str) -> Optional[FactValue]:
            value = event.fact(key)
            return value if value is not None else db_get(key)

        return lookup

    def _process(self, event: Event, report: TickReport) -> None:
        report.events_processed += 1
        lookup = self._lookup_for(event)
        for rule in self.registry.rules_for_event(event.id):
            try:
                matched = rule.condition.check(lookup)
            except EvaluationError as exc:
                self._report_error(exc, rule, event, report)
                continue
            if not matched:
                continue

            checkpoint = self.db.checkpoint()
            outputs: list[str] = []
            try:
                for mod in rule.modifications:
                    changed = mod.apply(self.db, lookup, default_layer=self.config.default_write_layer)
                    outputs.extend(mod.outputs(changed))
            except EvaluationError as exc:
                self.db.restore(checkpoint)
                self._report_error(exc, rule, event, report)
                continue
            finally:
                self.db.commit(checkpoint)

            report.rules_fired += 1
            logger.debug("rule fired", rule_id=rule.id, event_id=event.id)
            if rule.actions:
                self._dispatch_actions(rule, event, report)
            for output in (*outputs, *rule.outputs):
                self._queue.emit(Event(output, root=event.root, cause=rule.id))
            if rule.consume_event:
                break

    def _dispatch_actions(self, rule: Rule, event: Event, report: TickReport) -> None:
        snapshot = self.db.snapshot()
        for action_id in rule.actions:
            try:
                handled = self.actions.dispatch(action_id, rule.id, snapshot)
            except Exception as exc:  # host handlers may raise anything
                self._report(
                    EngineIssue(
                        kind="action_failed",
                        message=f"Action {action_id!r} failed: {exc}",
                        rule_id=rule.id,
                        event_id=event.id,
                        detail=exc,
                    ),
                    report,
                )
                continue
            if not handled:
                logger.debug("action unhandled", action_id=action_id, rule_id=rule.id)

    def _overflow(self, report: TickReport) -> None:
        pending = self._queue.peek()
        roots: list[str] = []
        for event in pending:
            if event.root not in roots:
                roots.append(event.root)
        error = CascadeDepthExceededError(
            self.config.max_cascade_depth, [event.id for event in pending], roots
        )
        report.cascade_exceeded = True
        if self.config.overflow_policy == "drop":
            report.dropped = self._queue.clear()
        else:
            report.deferred = len(self._queue)
        self._report(
            EngineIssue(
                kind="cascade_depth_exceeded",
                message=str(error),
                event_id=roots[0] if roots else None,
                detail=error,
            ),
            report,
        )

    def _report_error(
        self, exc: EvaluationError, rule: Rule, event: Event, report: TickReport
    ) -> None:
        self._report(
            EngineIssue(
                kind=exc.kind,  # type: ignore[arg-type]
                message=str(exc),
                rule_id=rule.id,
                event_id=event.id,
                detail=exc,
            ),
            report,
        )

    def _report(self, issue: EngineIssue, report: TickReport) -> None:
        report.issues.append(issue)
        self.sink.report(issue)
