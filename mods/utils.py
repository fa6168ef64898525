"""Field fallback helpers for transforming loosely-typed upstream payloads."""

from __future__ import annotations

from typing import Any, List, Mapping, Optional, Union

from mods.models import UnifiedCategory, UnifiedTag

_MISSING = (None, "")


def first_present(data: Any, *keys: str, default: Any = None) -> Any:
    """
    Return the value of the first key present in ``data``.

    None and empty strings count as absent, so ``first_present(v, "a", "b")``
    walks the chain until a real value turns up. Non-mapping inputs yield the
    default.
    """
    if not isinstance(data, Mapping):
        return default
    for key in keys:
        value = data.get(key)
        if value not in _MISSING:
            return value
    return default


def as_str(value: Any, default: str = "") -> str:
    if value in _MISSING:
        return default
    return str(value)


def as_optional_str(value: Any) -> Optional[str]:
    if value in _MISSING:
        return None
    return str(value)


def as_int(value: Any, default: int = 0) -> int:
    if value in _MISSING or isinstance(value, bool):
        return default
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return default


def as_optional_int(value: Any) -> Optional[int]:
    if value in _MISSING or isinstance(value, bool):
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def as_optional_float(value: Any) -> Optional[float]:
    if value in _MISSING or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def as_str_list(value: Any) -> List[str]:
    if not isinstance(value, (list, tuple)):
        return []
    return [str(item) for item in value if item not in _MISSING]


def truncate(text: str, length: int) -> str:
    return text[:length]


def to_category(item: Union[str, Mapping[str, Any]]) -> UnifiedCategory:
    """
    Normalize a category given either as a bare string or as an object.

    A bare string becomes id, name and slug at once. Objects walk
    ``id|name``, ``name|id`` and ``slug|name|id``.
    """
    if not isinstance(item, Mapping):
        text = as_str(item)
        return UnifiedCategory(id=text, name=text, slug=text)
    return UnifiedCategory(
        id=as_str(first_present(item, "id", "name")),
        name=as_str(first_present(item, "name", "id")),
        slug=as_str(first_present(item, "slug", "name", "id")),
        icon_url=as_optional_str(first_present(item, "iconUrl", "icon")),
    )


def to_tag(item: Union[str, Mapping[str, Any]]) -> UnifiedTag:
    category = to_category(item)
    return UnifiedTag(id=category.id, name=category.name, slug=category.slug)
