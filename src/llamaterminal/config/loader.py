"""Configuration file loading and caching.

Handles:
- YAML file parsing
- Environment variable overrides
- Config caching with reload support
- Conversion from dict to typed Config dataclass
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from pathlib import Path
from typing import Any

import yaml

from llamaterminal.config.merge import merge_configs
from llamaterminal.config.paths import get_config_paths
from llamaterminal.config.schema import (
    Config,
    LLMConfig,
    LoggingConfig,
    SafetyConfig,
    SafetyRuleConfig,
    SessionConfig,
)

# Module logger (may not be configured yet at import time)
_log = logging.getLogger("llamaterminal.config")

_cached_config: Config | None = None

_reload_callbacks: list[Callable[[Config], None]] = []


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file, returning empty dict if not found or invalid."""
    if not path.exists():
        return {}

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
            return data if isinstance(data, dict) else {}
    except yaml.YAMLError as e:
        _log.warning("Invalid YAML in %s: %s", path, e)
        return {}
    except PermissionError:
        _log.debug("Permission denied reading %s", path)
        return {}
    except OSError as e:
        _log.warning("Error reading %s: %s", path, e)
        return {}


def env_overrides() -> dict[str, Any]:
    """Build config dict from environment variables (highest priority)."""
    overrides: dict[str, Any] = {}

    log_path = os.environ.get("LLAMATERM_LOG")
    if log_path:
        overrides.setdefault("logging", {})["file"] = log_path

    model = os.environ.get("LLAMATERM_MODEL")
    if model:
        overrides.setdefault("llm", {})["model"] = model

    api_base = os.environ.get("LLAMATERM_API_BASE")
    if api_base:
        overrides.setdefault("llm", {})["api_base"] = api_base

    mode = os.environ.get("LLAMATERM_MODE")
    if mode:
        overrides.setdefault("session", {})["default_mode"] = mode

    return overrides


def _section(data: dict[str, Any], key: str) -> dict[str, Any]:
    value = data.get(key)
    return value if isinstance(value, dict) else {}


def dict_to_config(data: dict[str, Any]) -> Config:
    """Convert merged dict to typed Config dataclass."""
    llm_defaults = LLMConfig()
    llm_data = _section(data, "llm")
    llm = LLMConfig(
        model=llm_data.get("model", llm_defaults.model),
        api_base=llm_data.get("api_base", llm_defaults.api_base),
        max_tokens=int(llm_data.get("max_tokens", llm_defaults.max_tokens)),
        temperature=float(llm_data.get("temperature", llm_defaults.temperature)),
        context_items=int(llm_data.get("context_items", llm_defaults.context_items)),
    )

    session_defaults = SessionConfig()
    session_data = _section(data, "session")
    shell_args = session_data.get("shell_args", [])
    command_timeout = session_data.get("command_timeout", session_defaults.command_timeout)
    session = SessionConfig(
        default_mode=str(session_data.get("default_mode", session_defaults.default_mode)),
        cols=int(session_data.get("cols", session_defaults.cols)),
        rows=int(session_data.get("rows", session_defaults.rows)),
        theme=str(session_data.get("theme", session_defaults.theme)),
        syntax_highlighting=bool(
            session_data.get("syntax_highlighting", session_defaults.syntax_highlighting)
        ),
        shell=session_data.get("shell"),
        shell_args=[str(a) for a in shell_args] if isinstance(shell_args, list) else [],
        command_timeout=float(command_timeout) if command_timeout is not None else None,
    )

    safety_data = _section(data, "safety")
    rules = [
        SafetyRuleConfig(
            pattern=r.get("pattern", ""),
            verdict=r.get("verdict", "needsConfirmation"),
            reason=r.get("reason", ""),
        )
        for r in safety_data.get("rules", [])
        if isinstance(r, dict) and r.get("pattern")
    ]
    safety = SafetyConfig(
        confirmation_timeout=float(
            safety_data.get("confirmation_timeout", SafetyConfig().confirmation_timeout)
        ),
        rules=rules,
    )

    log_data = _section(data, "logging")
    logging_config = LoggingConfig(
        level=log_data.get("level"),
        verbose=log_data.get("verbose"),
        file=log_data.get("file"),
        audit_file=log_data.get("audit_file"),
    )

    known_keys = {"llm", "session", "safety", "logging"}
    extra = {k: v for k, v in data.items() if k not in known_keys}

    return Config(
        llm=llm,
        session=session,
        safety=safety,
        logging=logging_config,
        extra=extra,
    )


def load_config(project_root: str | None = None, reload: bool = False) -> Config:
    """Load and merge config from all sources.

    Priority order (highest to lowest):
    1. Environment variables
    2. Project config ($project_root/.llamaterm/config.yaml)
    3. User config (~/.config/llamaterminal/ or %APPDATA%)
    4. System config (/etc/llamaterminal/ or %PROGRAMDATA%)

    Args:
        project_root: Project directory for project-level config.
        reload: Force reload even if cached.
    """
    global _cached_config

    if _cached_config is not None and not reload and project_root is None:
        return _cached_config

    configs: list[dict[str, Any]] = []

    for path in get_config_paths(project_root):
        config_data = load_yaml_file(path)
        if config_data:
            _log.debug("Loaded config from %s", path)
            configs.append(config_data)

    env_config = env_overrides()
    if env_config:
        configs.append(env_config)

    config = dict_to_config(merge_configs(*configs))

    # Cache only global config (no project_root)
    if project_root is None:
        _cached_config = config

    return config


def get_config() -> Config:
    """Get the cached global config, loading it if needed."""
    if _cached_config is None:
        return load_config()
    return _cached_config


def reset_config() -> None:
    """Reset cached config."""
    global _cached_config
    _cached_config = None


def reload_config(project_root: str | None = None) -> Config:
    """Reload config from files and notify callbacks."""
    config = load_config(project_root=project_root, reload=True)

    for callback in _reload_callbacks:
        try:
            callback(config)
        except Exception as e:
            _log.warning("Config reload callback error: %s", e)

    return config


def on_config_reload(callback: Callable[[Config], None]) -> Callable[[], None]:
    """Register a callback to be called when config is reloaded.

    Returns:
        A function to unregister the callback.
    """
    _reload_callbacks.append(callback)

    def unregister() -> None:
        if callback in _reload_callbacks:
            _reload_callbacks.remove(callback)

    return unregister
