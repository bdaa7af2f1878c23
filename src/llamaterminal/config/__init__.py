"""Configuration management for LlamaTerminal.

Provides hierarchical YAML-based configuration with:
- System-level config (/etc/llamaterminal/ or %PROGRAMDATA%)
- User-level config (~/.config/llamaterminal/ or %APPDATA%)
- Project-level config ($cwd/.llamaterm/)
- Environment variable overrides (highest priority)

Example usage:
    from llamaterminal.config import load_config

    config = load_config(project_root="/path/to/project")
    print(config.llm.model)
    print(config.safety.confirmation_timeout)
"""

from llamaterminal.config.loader import (
    get_config,
    load_config,
    on_config_reload,
    reload_config,
    reset_config,
)
from llamaterminal.config.paths import (
    get_config_paths,
    get_project_config_path,
    get_system_config_path,
    get_user_config_path,
)
from llamaterminal.config.schema import (
    Config,
    LLMConfig,
    LoggingConfig,
    SafetyConfig,
    SafetyRuleConfig,
    SessionConfig,
)

__all__ = [
    # Main API
    "Config",
    "load_config",
    "get_config",
    "reload_config",
    "reset_config",
    "on_config_reload",
    # Schema types
    "LLMConfig",
    "LoggingConfig",
    "SafetyConfig",
    "SafetyRuleConfig",
    "SessionConfig",
    # Path utilities
    "get_config_paths",
    "get_system_config_path",
    "get_user_config_path",
    "get_project_config_path",
]
