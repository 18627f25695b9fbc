"""Configuration management for loom-window.

Parses loom-window.toml files with support for:
- Default truncation strategy and its options
- Completion token reservation
- Named model definitions

Example loom-window.toml structure:

    [window]
    strategy = "smart_truncate"
    provider = "anthropic"
    reserve_completion = 2000
    overlap = 2
    preserve_first = true

    [telemetry]
    service_name = "chat-gateway"
    otlp_endpoint = "http://collector:4317"

    [models.claude]
    provider = "anthropic"
    model = "claude-3-5-sonnet"
    context_length = 200000
    max_completion_tokens = 8192

Values may reference environment variables as ${VAR} or $VAR.
"""

from __future__ import annotations

import logging
import os
import re
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from .model import Endpoint, ModelSpec
from .options import Strategy, StrategyOptions, options_for

if sys.version_info >= (3, 11):
    import tomllib as toml  # type: ignore
else:
    import tomli as toml  # type: ignore

CONFIG_FILE_NAME = "loom-window.toml"


def _load_env_file(env_path: Path) -> None:
    """Load environment variables from .env file."""
    if not env_path.exists():
        return

    try:
        with open(env_path, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line or line.startswith("#"):
                    continue

                # KEY=VALUE, KEY='VALUE' or KEY="VALUE"
                if "=" in line:
                    key, _, value = line.partition("=")
                    key = key.strip()
                    value = value.strip()

                    if value and value[0] in ('"', "'") and value[-1] == value[0]:
                        value = value[1:-1]

                    # Never override the real environment
                    if key and key not in os.environ:
                        os.environ[key] = value
    except OSError as e:
        logging.warning("[loom-window] Failed to load .env file %s: %s", env_path, e)


def _expand_env_vars(value: Any) -> Any:
    """Recursively expand ${VAR} and $VAR environment variable references."""
    if isinstance(value, str):

        def replace_var(match):
            var_name = match.group(1) or match.group(2)
            return os.environ.get(var_name, match.group(0))

        pattern = r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}|\$([A-Za-z_][A-Za-z0-9_]*)"
        return re.sub(pattern, replace_var, value)
    elif isinstance(value, dict):
        return {k: _expand_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [_expand_env_vars(item) for item in value]
    else:
        return value


def _optional_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    return int(value)


def _optional_str(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


@dataclass
class WindowConfig:
    """Complete loom-window configuration."""

    # Truncation defaults
    strategy: str = Strategy.KEEP_RECENT.value
    provider: str = "default"
    reserve_completion: Optional[int] = None
    count: Optional[int] = None
    overlap: int = 2
    preserve_first: bool = True

    # Telemetry ([telemetry] table)
    service_name: Optional[str] = None
    otlp_endpoint: Optional[str] = None

    # Named models (key = model alias)
    models: dict[str, ModelSpec] = field(default_factory=dict)

    @classmethod
    def load(cls, path: Path = Path(CONFIG_FILE_NAME)) -> WindowConfig:
        """Load configuration from a loom-window.toml file.

        Loads the first .env found next to the file, in a parent directory,
        or in the current working directory, then expands environment
        variable references. A missing file yields the defaults.
        """
        if not path.exists():
            return cls()

        env_search_paths = [
            path.parent / ".env",
            Path.cwd() / ".env",
        ]
        current = path.parent
        while current != current.parent:
            env_search_paths.append(current / ".env")
            current = current.parent

        for env_path in env_search_paths:
            if env_path.exists():
                _load_env_file(env_path)
                break

        try:
            raw_data = toml.loads(path.read_text(encoding="utf-8"))
            data = _expand_env_vars(raw_data)
            return cls.from_dict(data)
        except Exception as e:
            raise RuntimeError(f"Failed to parse {path}: {e}") from e

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WindowConfig:
        """Build configuration from parsed TOML data."""
        config = cls()

        window = data.get("window", {})
        if isinstance(window, dict):
            config.strategy = str(window.get("strategy", config.strategy))
            config.provider = str(window.get("provider", config.provider))
            config.reserve_completion = _optional_int(window.get("reserve_completion"))
            config.count = _optional_int(window.get("count"))
            config.overlap = int(window.get("overlap", config.overlap))
            config.preserve_first = _as_bool(window.get("preserve_first", True))

        telemetry = data.get("telemetry", {})
        if isinstance(telemetry, dict):
            config.service_name = _optional_str(telemetry.get("service_name"))
            config.otlp_endpoint = _optional_str(telemetry.get("otlp_endpoint"))

        for alias, model_data in data.get("models", {}).items():
            if not isinstance(model_data, dict):
                # Skip invalid entries - TOML should provide tables
                continue

            endpoints: tuple[Endpoint, ...] = ()
            if "context_length" in model_data or "max_completion_tokens" in model_data:
                endpoints = (
                    Endpoint(
                        context_length=_optional_int(model_data.get("context_length")),
                        max_completion_tokens=_optional_int(
                            model_data.get("max_completion_tokens")
                        ),
                    ),
                )

            config.models[alias] = ModelSpec(
                provider=str(model_data.get("provider", config.provider)),
                model=str(model_data.get("model", alias)),
                endpoints=endpoints,
            )

        return config

    def model(self, name: str) -> ModelSpec:
        """Get a configured model by alias."""
        try:
            return self.models[name]
        except KeyError:
            raise KeyError(
                f"Unknown model: {name}. Choose from: {list(self.models.keys())}"
            ) from None

    def options_for(self, strategy: Strategy) -> StrategyOptions:
        """Build the options for a strategy from the configured defaults."""
        values: dict[str, Any] = {"count": self.count}
        if strategy is Strategy.SLIDING_WINDOW:
            values["overlap"] = self.overlap
        elif strategy is Strategy.SMART_TRUNCATE:
            values["preserve_first"] = self.preserve_first
        return options_for(strategy, values)


def load_window_config(start_dir: Path = Path(".")) -> WindowConfig:
    """Load configuration, searching up from start_dir."""
    current = start_dir.resolve()
    while current != current.parent:
        config_path = current / CONFIG_FILE_NAME
        if config_path.exists():
            return WindowConfig.load(config_path)
        current = current.parent

    # No config found, return defaults
    return WindowConfig()


__all__ = [
    "CONFIG_FILE_NAME",
    "WindowConfig",
    "load_window_config",
]
