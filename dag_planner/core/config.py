from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml


DEFAULT_PRIORITY_LEVELS: dict[str, int] = {
    "P0": 0,
    "P1": 1,
    "P2": 2,
    "P3": 3,
}

# Executors elsewhere in the pipeline run at most this many items at once.
DEFAULT_MAX_WORKERS = 5


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class PlannerConfig:
    priority_levels: dict[str, int] = field(default_factory=lambda: dict(DEFAULT_PRIORITY_LEVELS))
    default_priority: str = "P2"
    max_workers: int = DEFAULT_MAX_WORKERS

    def priority_ordinal(self, label: str) -> int:
        try:
            return self.priority_levels[label]
        except KeyError:
            raise ConfigError(
                f"unknown priority: {label} (choose one of: {', '.join(sorted(self.priority_levels))})"
            ) from None

    @property
    def default_priority_ordinal(self) -> int:
        return self.priority_ordinal(self.default_priority)


def load_config_file(path: str | Path) -> dict[str, Any]:
    """Load planner overrides from a YAML file.

    Format:
      priority_levels: {P0: 0, P1: 1, ...}
      default_priority: P2
      max_workers: 5

    Every key is optional.
    """
    p = Path(path)
    raw = yaml.safe_load(p.read_text(encoding="utf-8"))
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError("config file must be a mapping")

    unknown = sorted(set(raw) - {"priority_levels", "default_priority", "max_workers"})
    if unknown:
        raise ConfigError(f"unknown config keys: {', '.join(unknown)}")

    out: dict[str, Any] = {}
    if "priority_levels" in raw:
        levels = raw["priority_levels"]
        if not isinstance(levels, dict) or not levels:
            raise ConfigError("priority_levels must be a non-empty mapping of label -> int")
        for k, v in levels.items():
            if not isinstance(k, str) or not k.strip():
                raise ConfigError("priority labels must be non-empty strings")
            if not isinstance(v, int) or isinstance(v, bool) or v < 0:
                raise ConfigError(f"priority '{k}' must be a non-negative integer")
        out["priority_levels"] = {k.strip(): v for k, v in levels.items()}

    if "default_priority" in raw:
        dp = raw["default_priority"]
        if not isinstance(dp, str) or not dp.strip():
            raise ConfigError("default_priority must be a non-empty string")
        out["default_priority"] = dp.strip()

    if "max_workers" in raw:
        mw = raw["max_workers"]
        if not isinstance(mw, int) or isinstance(mw, bool) or mw < 1:
            raise ConfigError("max_workers must be a positive integer")
        out["max_workers"] = mw

    return out


def load_config(config_file: str | None) -> PlannerConfig:
    if not config_file:
        return PlannerConfig()
    overrides = load_config_file(config_file)
    config = PlannerConfig(**overrides)
    if config.default_priority not in config.priority_levels:
        raise ConfigError(f"default_priority {config.default_priority} is not a defined priority level")
    return config
