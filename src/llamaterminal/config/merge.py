"""Deep merge algorithm for configuration cascading.

Later configs override earlier ones, with special handling for nested dicts
and None values.
"""

from __future__ import annotations

from typing import Any


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries.

    Rules:
    - Nested dicts are recursively merged
    - Lists are replaced entirely (safety rules from a project config replace
      the user's list rather than extending it)
    - None values in override do NOT override base
    - Other values are replaced

    Returns:
        A new dictionary with merged values.
    """
    result = base.copy()

    for key, override_value in override.items():
        if override_value is None:
            continue

        base_value = result.get(key)
        if isinstance(base_value, dict) and isinstance(override_value, dict):
            result[key] = deep_merge(base_value, override_value)
        else:
            result[key] = override_value

    return result


def merge_configs(*configs: dict[str, Any]) -> dict[str, Any]:
    """Merge multiple configs in order (later overrides earlier)."""
    result: dict[str, Any] = {}
    for config in configs:
        if config:
            result = deep_merge(result, config)
    return result
