"""Values documents: the configuration handed to the package manager."""

from typing import Any, Dict, List, Union

import yaml

from ..errors import RenderError

Scalar = Union[str, int, float, bool, None]
Value = Union[Scalar, Dict[str, "Value"], List["Value"]]
ValueMap = Dict[str, Value]


def is_mapping(value: Any) -> bool:
    """Return True when the value is a values-document mapping."""
    return isinstance(value, dict)


def validate_values(value: Any, path: str = "") -> Value:
    """Check that a document only holds scalars, string-keyed mappings and lists.

    Returns a deep copy so callers never share nested containers.
    """
    if value is None or isinstance(value, (str, bool, int, float)):
        return value
    if isinstance(value, dict):
        result: ValueMap = {}
        for key, item in value.items():
            if not isinstance(key, str):
                raise RenderError(
                    f"Values key must be a string at '{path or '.'}', got {type(key).__name__}"
                )
            result[key] = validate_values(item, f"{path}.{key}" if path else key)
        return result
    if isinstance(value, (list, tuple)):
        return [validate_values(item, f"{path}[{i}]") for i, item in enumerate(value)]
    raise RenderError(f"Unsupported value type {type(value).__name__} at '{path or '.'}'")


def merge(target: ValueMap, source: ValueMap) -> ValueMap:
    """Merge ``source`` into ``target`` and return the result as a new mapping.

    For every key in ``source``: when both sides are mappings they are merged
    recursively, otherwise the source value replaces the target value.
    Lists are replaced, never concatenated. Neither argument is modified.
    """
    result: ValueMap = validate_values(target or {})
    for key, value in (source or {}).items():
        existing = result.get(key)
        if is_mapping(existing) and is_mapping(value):
            result[key] = merge(existing, value)
        else:
            result[key] = validate_values(value, key)
    return result


def load_values(text: str) -> ValueMap:
    """Parse a YAML values document."""
    try:
        data = yaml.safe_load(text) if text else None
    except yaml.YAMLError as e:
        raise RenderError(f"Invalid values document: {e}") from e

    if data is None:
        return {}
    if not is_mapping(data):
        raise RenderError(f"Values document must be a mapping, got {type(data).__name__}")
    return validate_values(data)


def dump_values(values: ValueMap) -> str:
    """Serialize a values document to YAML, preserving key order."""
    try:
        return yaml.safe_dump(
            validate_values(values), default_flow_style=False, sort_keys=False
        )
    except yaml.YAMLError as e:
        raise RenderError(f"Failed to serialize values: {e}") from e
