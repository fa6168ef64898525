"""Ordered detection of upstream search response shapes."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Sequence

from mods.models import UnifiedSearchParams, UnifiedSearchResponse

logger = logging.getLogger(__name__)

ShapeTransform = Callable[[Any, UnifiedSearchParams], UnifiedSearchResponse]


@dataclass(frozen=True)
class ResponseShape:
    """A named predicate/transformer pair for one upstream envelope."""

    name: str
    matches: Callable[[Any], bool]
    transform: ShapeTransform


def has_list(key: str) -> Callable[[Any], bool]:
    def _matches(payload: Any) -> bool:
        return isinstance(payload, Mapping) and isinstance(payload.get(key), list)

    return _matches


def is_list(payload: Any) -> bool:
    return isinstance(payload, list)


def normalize_search_payload(
    payload: Any,
    shapes: Sequence[ResponseShape],
    params: UnifiedSearchParams,
    provider_id: str,
) -> UnifiedSearchResponse:
    """
    Try each shape in priority order and transform with the first match.

    Payloads no shape recognizes, or whose matching transform fails on
    malformed content, degrade to an empty response with a warning.
    """
    for shape in shapes:
        if not shape.matches(payload):
            continue
        try:
            return shape.transform(payload, params)
        except (TypeError, ValueError, KeyError, AttributeError) as e:
            logger.warning(
                f"[{provider_id}] Malformed '{shape.name}' search response: {type(e).__name__}: {e}"
            )
            return UnifiedSearchResponse.empty(provider_id, params)

    logger.warning(f"[{provider_id}] Unexpected search response format: {type(payload).__name__}")
    return UnifiedSearchResponse.empty(provider_id, params)
