"""Modtale marketplace adapter."""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, List, Mapping, Optional

from mods.constants import SHORT_DESCRIPTION_LENGTH
from mods.models import (
    ProviderCapability,
    UnifiedAuthor,
    UnifiedCategory,
    UnifiedDependency,
    UnifiedProject,
    UnifiedSearchParams,
    UnifiedSearchResponse,
    UnifiedTag,
    UnifiedVersion,
)
from mods.providers.base import ModProvider
from mods.providers.shapes import ResponseShape, has_list, is_list, normalize_search_payload
from mods.streams import DownloadStream
from mods.utils import (
    as_int,
    as_optional_float,
    as_optional_int,
    as_optional_str,
    as_str,
    as_str_list,
    first_present,
    to_category,
    to_tag,
    truncate,
)

logger = logging.getLogger(__name__)

MODTALE_API_BASE = os.getenv("MODTALE_API_BASE", "https://api.modtale.net/api/v1")

SORT_FIELDS: Dict[str, str] = {
    "downloads": "downloadCount",
    "rating": "rating",
    "updated": "updatedDate",
    "created": "createdDate",
    "name": "title",
}


class ModtaleProvider(ModProvider):
    """
    Modtale REST API.

    Authenticates with the ``X-MODTALE-KEY`` header, pages 0-indexed with
    ``page``/``size`` and answers searches in one of several envelopes.
    """

    id = "modtale"
    display_name = "Modtale"
    icon_url = "https://modtale.net/favicon.ico"
    description = "Community mods, art and worlds hosted on Modtale"
    requires_api_key = True
    capabilities = frozenset(
        {
            ProviderCapability.PROJECT_BY_SLUG,
            ProviderCapability.TAGS,
        }
    )

    api_key_header = "X-MODTALE-KEY"
    default_base_url = MODTALE_API_BASE

    def __init__(self, **kwargs: Any):
        super().__init__(**kwargs)
        self.search_shapes = (
            ResponseShape("paginated", has_list("content"), self._from_paginated),
            ResponseShape("array", is_list, self._from_array),
            ResponseShape("keyed", has_list("projects"), self._from_keyed),
        )

    # Transforms

    def transform_version(self, version: Mapping[str, Any]) -> UnifiedVersion:
        game_versions = as_str_list(version.get("gameVersions"))
        return UnifiedVersion(
            id=as_str(version.get("id")),
            version=as_str(first_present(version, "version", "versionNumber")),
            changelog=as_optional_str(version.get("changelog")),
            downloads=as_int(first_present(version, "downloadCount", "downloads")),
            game_version=as_str(version.get("gameVersion") or (game_versions[0] if game_versions else "")),
            release_date=as_str(
                first_present(version, "createdAt", "createdDate", "releaseDate", "publishedAt")
            ),
            file_size=as_int(first_present(version, "fileSize", "size")),
            file_name=as_str(first_present(version, "fileName", "file")),
        )

    def transform_author(self, author: Any) -> UnifiedAuthor:
        if isinstance(author, str):
            return UnifiedAuthor.from_name(author)
        if not isinstance(author, Mapping):
            return UnifiedAuthor(id="", username="")
        return UnifiedAuthor(
            id=as_str(first_present(author, "id", "username")),
            username=as_str(first_present(author, "username", "name")),
            display_name=as_str(first_present(author, "displayName", "name", "username")),
            avatar_url=as_optional_str(author.get("avatarUrl")),
        )

    def transform_project(self, project: Mapping[str, Any]) -> UnifiedProject:
        raw_versions = project.get("versions")
        versions = (
            [self.transform_version(v) for v in raw_versions if isinstance(v, Mapping)]
            if isinstance(raw_versions, list)
            else []
        )
        raw_tags = project.get("tags")
        tags = [to_tag(t) for t in raw_tags] if isinstance(raw_tags, list) else []
        description = as_str(project.get("description"))
        gallery = project.get("galleryImages")

        return UnifiedProject(
            id=as_str(project.get("id")),
            slug=as_str(first_present(project, "slug", "id")),
            provider_id=self.id,
            title=as_str(first_present(project, "title", "name")),
            description=description,
            short_description=as_str(
                project.get("shortDescription"),
                default=truncate(description, SHORT_DESCRIPTION_LENGTH),
            ),
            classification=project.get("classification"),
            author=self.transform_author(project.get("author")),
            # Modtale classifies projects instead of categorizing them
            categories=[],
            tags=tags,
            downloads=as_int(first_present(project, "downloadCount", "downloads")),
            rating=as_optional_float(first_present(project, "rating", "averageRating")) or 0.0,
            rating_count=as_optional_int(first_present(project, "favoriteCount", "ratingCount")) or 0,
            followers=as_optional_int(first_present(project, "followers", "followerCount")),
            icon_url=as_optional_str(first_present(project, "imageUrl", "iconUrl")),
            banner_url=as_optional_str(project.get("bannerUrl")),
            gallery_images=as_str_list(gallery) if isinstance(gallery, list) else None,
            versions=versions,
            game_versions=as_str_list(project.get("gameVersions")),
            created_at=as_str(first_present(project, "createdAt", "createdDate")),
            updated_at=as_str(first_present(project, "updatedAt", "updatedDate", "modifiedDate")),
            featured=bool(project.get("featured")),
            raw=project,
        )

    def _projects(self, items: List[Any]) -> List[UnifiedProject]:
        return [self.transform_project(p) for p in items if isinstance(p, Mapping)]

    # Search envelopes

    def _from_paginated(self, payload: Mapping[str, Any], params: UnifiedSearchParams) -> UnifiedSearchResponse:
        content = payload["content"]
        return UnifiedSearchResponse(
            projects=self._projects(content),
            total=as_int(payload.get("totalElements"), default=len(content)),
            # Spring pages are 0-indexed
            page=as_int(payload.get("number")) + 1,
            page_size=as_int(payload.get("size")) or params.page_size,
            has_more=not payload.get("last"),
            provider_id=self.id,
        )

    def _from_array(self, payload: List[Any], params: UnifiedSearchParams) -> UnifiedSearchResponse:
        return UnifiedSearchResponse(
            projects=self._projects(payload),
            total=len(payload),
            page=params.page,
            page_size=params.page_size,
            has_more=len(payload) >= params.page_size,
            provider_id=self.id,
        )

    def _from_keyed(self, payload: Mapping[str, Any], params: UnifiedSearchParams) -> UnifiedSearchResponse:
        projects = payload["projects"]
        total = as_int(payload.get("total"), default=len(projects))
        page = as_int(payload.get("page")) or params.page
        page_size = as_int(payload.get("limit")) or params.page_size
        has_more = payload.get("hasMore")
        if has_more is None:
            has_more = page * page_size < total
        return UnifiedSearchResponse(
            projects=self._projects(projects),
            total=total,
            page=page,
            page_size=page_size,
            has_more=bool(has_more),
            provider_id=self.id,
        )

    def build_search_query(self, params: UnifiedSearchParams) -> Dict[str, str]:
        query: Dict[str, str] = {}
        if params.query:
            query["search"] = params.query
        if params.classification:
            query["classification"] = params.classification.value
        if params.tags:
            query["tags"] = ",".join(params.tags)
        if params.game_version:
            query["gameVersion"] = params.game_version

        query["page"] = str(params.page - 1)
        query["size"] = str(params.page_size)

        if params.sort_by:
            field = SORT_FIELDS.get(params.sort_by, params.sort_by)
            query["sort"] = f"{field},{params.sort_order or 'desc'}"
        return query

    # Operations

    async def search_projects(self, params: UnifiedSearchParams) -> UnifiedSearchResponse:
        payload = await self._request_json("/projects", params=self.build_search_query(params))
        return normalize_search_payload(payload, self.search_shapes, params, self.id)

    async def get_project(self, project_id: str) -> UnifiedProject:
        project = await self._request_json(f"/projects/{project_id}")
        return self.transform_project(project)

    async def get_project_by_slug(self, slug: str) -> UnifiedProject:
        project = await self._request_json(f"/projects/slug/{slug}")
        return self.transform_project(project)

    async def get_categories(self) -> List[UnifiedCategory]:
        classifications = await self._request_json("/meta/classifications")
        if not isinstance(classifications, list):
            return []
        return [to_category(c) for c in classifications]

    async def get_tags(self) -> List[UnifiedTag]:
        tags = await self._request_json("/tags")
        if not isinstance(tags, list):
            return []
        return [to_tag(t) for t in tags]

    def transform_dependency(self, dep: Any) -> Optional[UnifiedDependency]:
        if isinstance(dep, (str, int)):
            return UnifiedDependency(project_id=str(dep), project_name=str(dep), type="required")
        if not isinstance(dep, Mapping):
            return None
        project_id = as_str(first_present(dep, "modId", "projectId", "id"))
        if not project_id:
            return None
        required = dep.get("required") is not False
        return UnifiedDependency(
            project_id=project_id,
            project_name=as_str(first_present(dep, "name", "projectName"), default=project_id),
            version_id=as_optional_str(dep.get("versionId")),
            type="required" if required else "optional",
        )

    async def get_version_dependencies(
        self, project_id: str, version_id: str
    ) -> List[UnifiedDependency]:
        try:
            project = await self._request_json(f"/projects/{project_id}")
            versions = project.get("versions") if isinstance(project, Mapping) else None
            version = next(
                (
                    v for v in versions or []
                    if isinstance(v, Mapping) and as_str(v.get("id")) == version_id
                ),
                None,
            )
            if version is None:
                logger.warning(f"{self.log_tag} Version {version_id} not found for project {project_id}")
                return []

            mod_ids = first_present(version, "modIds", "dependencies", default=[])
            if not isinstance(mod_ids, list):
                return []
            return [dep for dep in (self.transform_dependency(d) for d in mod_ids) if dep is not None]
        except Exception as e:
            logger.error(
                f"{self.log_tag} Error getting dependencies for {project_id}/{version_id}: "
                f"{type(e).__name__}: {e}"
            )
            return []

    def _download_url(self, project_id: str, version_id: str) -> str:
        return f"{self.base_url}/projects/{project_id}/versions/{version_id}/download"

    async def download_version(self, project_id: str, version_id: str) -> DownloadStream:
        # The endpoint needs X-MODTALE-KEY, so the file is always proxied
        return await self._open_stream(self._download_url(project_id, version_id))
