"""
Mod provider routes.

Thin HTTP layer over ModProviderService: maps query strings onto
UnifiedSearchParams, delegates, and lets ModProviderError subclasses surface
through the application's exception handler.
"""

import logging
from typing import Any, List, Optional, get_args

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask
from starlette.datastructures import QueryParams

from dependencies import get_actor_id, get_mod_provider_service
from exceptions import ValidationError
from mods.constants import DEFAULT_PAGE, DEFAULT_PAGE_SIZE
from mods.models import (
    MultiProviderSearchResponse,
    ProviderInfo,
    SortBy,
    SortOrder,
    UnifiedCategory,
    UnifiedClassification,
    UnifiedDependency,
    UnifiedProject,
    UnifiedSearchParams,
    UnifiedSearchResponse,
    UnifiedTag,
)
from mods.service import ModProviderService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/mods", tags=["mods"])


# ---------------------------------------------------------------------------
# Query parsing
# ---------------------------------------------------------------------------
def _int_param(value: Optional[str], default: int) -> int:
    if value is None:
        return default
    try:
        parsed = int(value)
    except ValueError:
        return default
    return parsed if parsed >= 1 else default


def _list_param(query: QueryParams, key: str) -> List[str]:
    """Accept both ``?tags=a,b`` and ``?tags=a&tags=b``."""
    items: List[str] = []
    for raw in query.getlist(key):
        items.extend(part.strip() for part in raw.split(",") if part.strip())
    return items


def _choice(value: Optional[str], choices: tuple, name: str) -> Optional[str]:
    if not value:
        return None
    if value not in choices:
        raise ValidationError(
            f"Invalid {name}: {value}",
            detail={"field": name, "allowed": list(choices)},
        )
    return value


def parse_search_params(query: QueryParams) -> UnifiedSearchParams:
    classification = None
    raw_classification = query.get("classification")
    if raw_classification:
        try:
            classification = UnifiedClassification(raw_classification.upper())
        except ValueError:
            raise ValidationError(
                f"Invalid classification: {raw_classification}",
                detail={"field": "classification", "allowed": [c.value for c in UnifiedClassification]},
            )

    return UnifiedSearchParams(
        query=query.get("q") or query.get("query") or None,
        classification=classification,
        categories=_list_param(query, "categories"),
        tags=_list_param(query, "tags"),
        game_version=query.get("gameVersion") or None,
        page=_int_param(query.get("page"), DEFAULT_PAGE),
        page_size=_int_param(query.get("pageSize") or query.get("limit"), DEFAULT_PAGE_SIZE),
        sort_by=_choice(query.get("sortBy"), get_args(SortBy), "sortBy"),
        sort_order=_choice(query.get("sortOrder"), get_args(SortOrder), "sortOrder"),
    )


# ---------------------------------------------------------------------------
# Providers
# ---------------------------------------------------------------------------
@router.get("/providers", response_model=List[ProviderInfo])
async def list_providers(service: ModProviderService = Depends(get_mod_provider_service)):
    return service.get_providers()


@router.post("/providers/{provider_id}/configure")
async def configure_provider(
    provider_id: str,
    request: Request,
    service: ModProviderService = Depends(get_mod_provider_service),
    actor: Optional[str] = Depends(get_actor_id),
):
    try:
        body: Any = await request.json()
    except ValueError:
        body = None

    api_key = body.get("apiKey") if isinstance(body, dict) else None
    if not isinstance(api_key, str) or not api_key:
        raise ValidationError("apiKey is required and must be a string")

    await service.set_api_key(provider_id, api_key, actor)
    return {"success": True, "message": f"API key configured for {provider_id}"}


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------
@router.get("/providers/{provider_id}/search", response_model=UnifiedSearchResponse)
async def search_provider(
    provider_id: str,
    request: Request,
    service: ModProviderService = Depends(get_mod_provider_service),
):
    params = parse_search_params(request.query_params)
    return await service.search(provider_id, params)


@router.get("/search", response_model=MultiProviderSearchResponse)
async def search_all(
    request: Request,
    service: ModProviderService = Depends(get_mod_provider_service),
):
    params = parse_search_params(request.query_params)
    return await service.search_all(params)


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------
@router.get("/providers/{provider_id}/projects/slug/{slug}", response_model=UnifiedProject)
async def get_project_by_slug(
    provider_id: str,
    slug: str,
    service: ModProviderService = Depends(get_mod_provider_service),
):
    return await service.get_project_by_slug(provider_id, slug)


@router.get("/providers/{provider_id}/projects/{project_id}", response_model=UnifiedProject)
async def get_project(
    provider_id: str,
    project_id: str,
    service: ModProviderService = Depends(get_mod_provider_service),
):
    return await service.get_project(provider_id, project_id)


@router.get("/providers/{provider_id}/categories", response_model=List[UnifiedCategory])
async def get_categories(
    provider_id: str,
    service: ModProviderService = Depends(get_mod_provider_service),
):
    return await service.get_categories(provider_id)


@router.get("/providers/{provider_id}/tags", response_model=List[UnifiedTag])
async def get_tags(
    provider_id: str,
    service: ModProviderService = Depends(get_mod_provider_service),
):
    return await service.get_tags(provider_id)


@router.get(
    "/providers/{provider_id}/projects/{project_id}/versions/{version_id}/dependencies",
    response_model=List[UnifiedDependency],
)
async def get_version_dependencies(
    provider_id: str,
    project_id: str,
    version_id: str,
    service: ModProviderService = Depends(get_mod_provider_service),
):
    return await service.get_version_dependencies(provider_id, project_id, version_id)


@router.get("/providers/{provider_id}/projects/{project_id}/versions/{version_id}/download")
async def download_version(
    provider_id: str,
    project_id: str,
    version_id: str,
    service: ModProviderService = Depends(get_mod_provider_service),
):
    stream = await service.download_version(provider_id, project_id, version_id)

    headers = {"Content-Disposition": f'attachment; filename="{project_id}-{version_id}.zip"'}
    if stream.content_length is not None:
        headers["Content-Length"] = str(stream.content_length)

    return StreamingResponse(
        stream.iter_bytes(),
        media_type="application/octet-stream",
        headers=headers,
        background=BackgroundTask(stream.aclose),
    )
