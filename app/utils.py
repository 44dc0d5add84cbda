"""Utility helpers for the SIMKL receiver service."""

from __future__ import annotations

from typing import Any, Mapping


def drop_none(value: Any) -> Any:
    """Return ``value`` with ``None`` entries removed from every mapping.

    Lists keep their length; only dictionary keys are pruned.
    """

    if isinstance(value, Mapping):
        return {
            key: drop_none(item) for key, item in value.items() if item is not None
        }
    if isinstance(value, list):
        return [drop_none(item) for item in value]
    return value


def deep_merge(base: Mapping[str, Any], update: Mapping[str, Any]) -> dict[str, Any]:
    """Recursively merge ``update`` into a copy of ``base``.

    A ``None`` in ``update`` removes the key from the result.
    """

    merged: dict[str, Any] = dict(base)
    for key, value in update.items():
        if value is None:
            merged.pop(key, None)
            continue
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = value
    return merged
