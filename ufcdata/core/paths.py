"""Dot-path access over JSON-shaped records."""

from __future__ import annotations

from typing import Any, Final, TypeAlias

JsonValue: TypeAlias = None | bool | int | float | str | list["JsonValue"] | dict[str, "JsonValue"]


class _Missing:
    """Marker for an absent value, distinct from JSON null (``None``)."""

    _instance: _Missing | None = None

    def __new__(cls) -> _Missing:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False

    def __copy__(self) -> _Missing:
        return self

    def __deepcopy__(self, memo: dict[int, Any]) -> _Missing:
        return self


MISSING: Final = _Missing()


def has_value(value: object) -> bool:
    return value is not MISSING


def _step(current: Any, key: str) -> Any:
    if isinstance(current, dict):
        return current.get(key, MISSING)
    if isinstance(current, list):
        try:
            index = int(key)
        except ValueError:
            return MISSING
        if -len(current) <= index < len(current):
            return current[index]
        return MISSING
    return MISSING


def get_nested_value(record: Any, path: str) -> Any:
    """Read ``path`` (``"a.b.0.c"``) from ``record``.

    Any absent or non-container intermediate segment yields ``MISSING``.
    """

    current = record
    for key in path.split("."):
        current = _step(current, key)
        if current is MISSING:
            return MISSING
    return current


def set_nested_value(record: dict[str, Any], path: str, value: Any) -> None:
    """Write ``value`` at ``path``, creating empty dicts for absent segments.

    An intermediate segment holding a non-dict value is replaced by a dict.
    """

    *parents, last = path.split(".")
    target = record
    for key in parents:
        child = target.get(key)
        if not isinstance(child, dict):
            child = {}
            target[key] = child
        target = child
    target[last] = value


__all__ = ["JsonValue", "MISSING", "get_nested_value", "has_value", "set_nested_value"]
