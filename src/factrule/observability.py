"""Structured issue reporting and logging configuration."""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass, field
from typing import Any, Iterable, Literal, Optional, Protocol

import structlog


IssueKind = Literal[
    "unknown_fact",
    "type_mismatch",
    "division_by_zero",
    "cascade_depth_exceeded",
    "action_failed",
]

ISSUE_KINDS: tuple[str, ...] = (
    "unknown_fact",
    "type_mismatch",
    "division_by_zero",
    "cascade_depth_exceeded",
    "action_failed",
)

logger = structlog.get_logger(__name__)


def configure_logging(level: str = "info", json: bool = False) -> None:
    """Route structlog through the standard ``logging`` module."""
    numeric_level = getattr(logging, level.upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level!r}")
    renderer: Any
    if json:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=numeric_level)
    logging.getLogger("factrule").setLevel(numeric_level)


@dataclass(frozen=True)
class EngineIssue:
    """A recoverable problem noticed while draining events."""

    kind: IssueKind
    message: str
    rule_id: Optional[str] = None
    event_id: Optional[str] = None
    detail: Any = field(default=None, compare=False)

    def __post_init__(self) -> None:
        if self.kind not in ISSUE_KINDS:
            raise ValueError(f"Unknown issue kind: {self.kind!r}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "message": self.message,
            "rule_id": self.rule_id,
            "event_id": self.event_id,
        }


class IssueSink(Protocol):
    def report(self, issue: EngineIssue) -> None: ...


class LoggingSink:
    """Log issues through structlog; cascade overflows are errors, the rest warnings."""

    def __init__(self, log: Any = None) -> None:
        self._log = log if log is not None else logger

    def report(self, issue: EngineIssue) -> None:
        fields = {k: v for k, v in issue.to_dict().items() if v is not None and k != "message"}
        if issue.kind == "cascade_depth_exceeded":
            self._log.error(issue.message, **fields)
        else:
            self._log.warning(issue.message, **fields)


class CollectingSink:
    """Keep every reported issue in memory."""

    def __init__(self) -> None:
        self.issues: list[EngineIssue] = []

    def report(self, issue: EngineIssue) -> None:
        self.issues.append(issue)

    def kinds(self) -> list[str]:
        return [issue.kind for issue in self.issues]

    def clear(self) -> None:
        self.issues.clear()


class FanOutSink:
    def __init__(self, sinks: Iterable[IssueSink]) -> None:
        self.sinks = list(sinks)

    def report(self, issue: EngineIssue) -> None:
        for sink in self.sinks:
            sink.report(issue)
