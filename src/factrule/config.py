"""Engine configuration with environment overrides."""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from typing import Literal, Mapping, Optional

from factrule.errors import ConfigError
from factrule.observability import configure_logging


OverflowPolicy = Literal["drop", "defer"]

_ENV_PREFIX = "FACTRULE_"
_LOG_LEVELS = ("debug", "info", "warning", "error", "critical")


@dataclass(frozen=True)
class EngineConfig:
    """Tuning knobs for ``RuleEngine``.

    ``max_cascade_depth`` counts the follow-on drain passes allowed after the
    initial pass of a tick; 0 processes a single queue generation per tick.
    """

    max_cascade_depth: int = 16
    overflow_policy: OverflowPolicy = "drop"
    duplicate_id_policy: Literal["error", "suffix"] = "error"
    default_write_layer: Literal["local", "global"] = "local"
    log_level: str = "info"

    def __post_init__(self) -> None:
        depth = self.max_cascade_depth
        if not isinstance(depth, int) or isinstance(depth, bool) or depth < 0:
            raise ConfigError("max_cascade_depth must be a non-negative int")
        if self.overflow_policy not in ("drop", "defer"):
            raise ConfigError("overflow_policy must be 'drop' or 'defer'")
        if self.duplicate_id_policy not in ("error", "suffix"):
            raise ConfigError("duplicate_id_policy must be 'error' or 'suffix'")
        if self.default_write_layer not in ("local", "global"):
            raise ConfigError("default_write_layer must be 'local' or 'global'")
        level = str(self.log_level).lower()
        if level not in _LOG_LEVELS:
            raise ConfigError(f"log_level must be one of {', '.join(_LOG_LEVELS)}")
        object.__setattr__(self, "log_level", level)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "EngineConfig":
        """Build a config from ``FACTRULE_*`` variables, defaulting the rest."""
        env = os.environ if environ is None else environ
        overrides: dict[str, object] = {}
        for item in fields(cls):
            raw = env.get(_ENV_PREFIX + item.name.upper())
            if raw is None or raw.strip() == "":
                continue
            raw = raw.strip()
            if item.name == "max_cascade_depth":
                try:
                    overrides[item.name] = int(raw)
                except ValueError as exc:
                    raise ConfigError(f"{_ENV_PREFIX}MAX_CASCADE_DEPTH must be an int: {raw!r}") from exc
            else:
                overrides[item.name] = raw.lower()
        return cls(**overrides)  # type: ignore[arg-type]

    def apply_logging(self, json: bool = False) -> None:
        """Configure structlog output at ``log_level``."""
        configure_logging(self.log_level, json=json)
