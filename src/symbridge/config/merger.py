"""
Layering of configuration sources.

Defaults, the YAML file and environment overrides are plain dictionaries
until the final pydantic validation; these helpers combine them.
"""

from typing import Any


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Overlay ``override`` onto ``base`` without mutating either.

    Sections (nested dicts) merge key by key; any other value replaces the
    base value. ``None`` deletes the key so the schema default applies
    again, which lets a YAML file write ``agent_host: null`` to undo an
    earlier layer.

    Args:
        base: Lower-priority layer.
        override: Higher-priority layer.

    Returns:
        A new merged dictionary.
    """
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if value is None:
            merged.pop(key, None)
        elif isinstance(value, dict) and isinstance(current, dict):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = value
    return merged


def set_nested_value(config: dict[str, Any], key_path: str, value: Any) -> dict[str, Any]:
    """
    Assign ``value`` at a dotted path such as ``"adapter.fail_connect_after"``.

    Missing sections, or sections holding a non-dict value, become empty
    dicts. ``config`` is modified in place and returned.
    """
    *sections, leaf = key_path.split(".")
    node = config
    for section in sections:
        child = node.get(section)
        if not isinstance(child, dict):
            child = node[section] = {}
        node = child
    node[leaf] = value
    return config
