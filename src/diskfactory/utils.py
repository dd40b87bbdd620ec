# SPDX-License-Identifier: MIT
"""Helpers for dot-notation lookups over nested settings mappings."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

_MISSING = object()


def dot_get(settings: Mapping[str, Any], key: str, default: Any = None) -> Any:
    """Look up ``key`` (e.g. ``"credentials.key"``) in nested mappings.

    Examples::

        >>> dot_get({"credentials": {"key": "abc"}}, "credentials.key")
        'abc'
        >>> dot_get({"credentials": {}}, "credentials.key", "none")
        'none'
    """
    value = _lookup(settings, key)
    return default if value is _MISSING else value


def missing_keys(settings: Mapping[str, Any], required: Iterable[str]) -> list[str]:
    """Return the required dot-path keys absent from ``settings``, in order."""
    return [key for key in required if _lookup(settings, key) is _MISSING]


def _lookup(settings: Mapping[str, Any], key: str) -> Any:
    node: Any = settings
    for part in key.split("."):
        if not isinstance(node, Mapping) or part not in node:
            return _MISSING
        node = node[part]
    return node
