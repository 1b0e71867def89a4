"""
Configuration for cmdclock.

Loads from the [cmdclock] section of cmdclock.toml, then applies
CMDCLOCK_* environment overrides. ENV beats TOML, TOML beats defaults.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import os
from pathlib import Path
import tomllib
from typing import Any

from cmdclock.core import data_home, find_config_path
from cmdclock.errors import ConfigError

# Output, logging and introspection primitives the instrumentation leans on.
# Timing them would start a new measurement from inside our own code path.
DEFAULT_EXCLUDED_COMMANDS = frozenset(
    {
        "echo",
        "printf",
        "test",
        "[",
        "callstack",
        "help",
        "history",
        "insights",
        "health",
        "clear-stats",
    }
)

MAX_VERBOSITY = 3


@dataclass
class HistoryConfig:
    """Optional SQLite command history."""

    enabled: bool = False
    path: str = ""

    def resolved_path(self) -> Path:
        if self.path:
            return Path(self.path).expanduser()
        return data_home() / "history.db"


@dataclass
class ClockConfig:
    """cmdclock runtime configuration."""

    verbosity: int = 0
    history_size: int = 100
    slow_threshold_ms: float = 1000.0
    suspicious_threshold_ms: float = 5000.0
    max_stack_depth: int = 3
    excluded_commands: frozenset[str] = DEFAULT_EXCLUDED_COMMANDS
    log_format: str = "text"  # "text" | "json"
    log_path: str = ""
    history: HistoryConfig = field(default_factory=HistoryConfig)

    def validate(self) -> None:
        if self.history_size < 1:
            raise ConfigError(f"history_size must be >= 1, got {self.history_size}")
        if self.max_stack_depth < 1:
            raise ConfigError(f"max_stack_depth must be >= 1, got {self.max_stack_depth}")
        if self.log_format not in ("text", "json"):
            raise ConfigError(f"log_format must be 'text' or 'json', got {self.log_format!r}")


def parse_verbosity(raw: str | None) -> int:
    """Parse a 0-3 verbosity level; junk means quiet."""
    if not raw:
        return 0
    try:
        level = int(raw.strip())
    except ValueError:
        return 0
    return max(0, min(MAX_VERBOSITY, level))


def _truthy(raw: str) -> bool:
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _apply_env_overrides(cfg: ClockConfig) -> ClockConfig:
    """Apply environment variable overrides. ENV beats TOML."""
    # CMDCLOCK_DEBUG (0-3)
    if os.getenv("CMDCLOCK_DEBUG") is not None:
        cfg.verbosity = parse_verbosity(os.getenv("CMDCLOCK_DEBUG"))

    if os.getenv("CMDCLOCK_HISTORY"):
        cfg.history.enabled = _truthy(os.getenv("CMDCLOCK_HISTORY", ""))
    if os.getenv("CMDCLOCK_HISTORY_PATH"):
        cfg.history.path = os.getenv("CMDCLOCK_HISTORY_PATH", cfg.history.path)

    if os.getenv("CMDCLOCK_MAX_DEPTH"):
        try:
            cfg.max_stack_depth = int(os.getenv("CMDCLOCK_MAX_DEPTH", ""))
        except ValueError:
            pass

    return cfg


def _table(data: dict[str, Any], key: str, prefix: str = "") -> dict[str, Any]:
    value = data.get(key, {})
    if not isinstance(value, dict):
        raise ConfigError(f"[{prefix}{key}] must be a table, got {type(value).__name__}")
    return value


def _flag(value: Any, key: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return _truthy(value)
    raise ConfigError(f"{key} must be true or false, got {value!r}")


def _from_table(data: dict[str, Any]) -> ClockConfig:
    cfg = ClockConfig()
    section = _table(data, "cmdclock")

    cfg.verbosity = parse_verbosity(str(section.get("verbosity", cfg.verbosity)))
    cfg.history_size = int(section.get("history_size", cfg.history_size))
    cfg.slow_threshold_ms = float(section.get("slow_threshold_ms", cfg.slow_threshold_ms))
    cfg.suspicious_threshold_ms = float(
        section.get("suspicious_threshold_ms", cfg.suspicious_threshold_ms)
    )
    cfg.max_stack_depth = int(section.get("max_stack_depth", cfg.max_stack_depth))
    cfg.log_format = section.get("log_format", cfg.log_format)
    cfg.log_path = section.get("log_path", cfg.log_path)

    extra = section.get("excluded_commands", [])
    if not isinstance(extra, list):
        raise ConfigError("excluded_commands must be a list of command names")
    cfg.excluded_commands = DEFAULT_EXCLUDED_COMMANDS | {str(name) for name in extra}

    hist = _table(section, "history", prefix="cmdclock.")
    cfg.history.enabled = _flag(hist.get("enabled", cfg.history.enabled), "history.enabled")
    cfg.history.path = hist.get("path", cfg.history.path)
    if not isinstance(cfg.history.path, str):
        raise ConfigError("history.path must be a string")
    return cfg


def load_config(config_path: str | Path | None = None) -> ClockConfig:
    """
    Load cmdclock config with ENV overrides.

    Precedence: ENV → TOML → defaults

    Args:
        config_path: Path to cmdclock.toml. If None, searches:
            1. CMDCLOCK_CONFIG env var
            2. ./cmdclock.toml
            3. $XDG_CONFIG_HOME/cmdclock/cmdclock.toml

    Raises:
        ConfigError: the file exists but is not valid TOML, or holds bad values.
    """
    path = Path(config_path) if config_path is not None else find_config_path()

    if path is not None and path.exists():
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"{path}: {e}") from e
        try:
            cfg = _from_table(data)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"{path}: {e}") from e
    else:
        cfg = ClockConfig()

    cfg = _apply_env_overrides(cfg)
    cfg.validate()
    return cfg
