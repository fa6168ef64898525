"""CurseForge marketplace adapter."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
from typing import Any, Dict, List, Mapping, Optional

from exceptions import DownloadUnavailableError, UpstreamError
from mods.constants import SHORT_DESCRIPTION_LENGTH
from mods.models import (
    DependencyType,
    ProviderConfig,
    UnifiedAuthor,
    UnifiedCategory,
    UnifiedClassification,
    UnifiedDependency,
    UnifiedProject,
    UnifiedSearchParams,
    UnifiedSearchResponse,
    UnifiedVersion,
)
from mods.providers.base import ModProvider
from mods.providers.shapes import ResponseShape, normalize_search_payload
from mods.streams import DownloadStream
from mods.utils import (
    as_int,
    as_optional_float,
    as_optional_int,
    as_optional_str,
    as_str,
    as_str_list,
    first_present,
    truncate,
)

logger = logging.getLogger(__name__)

CURSEFORGE_API_BASE = os.getenv("CURSEFORGE_API_BASE", "https://api.curseforge.com")
CURSEFORGE_GAME_SLUG = os.getenv("CURSEFORGE_GAME_SLUG", "hytale")
try:
    CURSEFORGE_GAME_ID = int(os.getenv("CURSEFORGE_GAME_ID", "70216"))
except ValueError:
    CURSEFORGE_GAME_ID = 70216

MAX_PAGE_SIZE = 50

# CurseForge ModsSearchSortField codes
SORT_FIELDS: Dict[str, int] = {
    "name": 1,
    "downloads": 2,
    "rating": 3,
    "updated": 4,
    "created": 11,
}
DEFAULT_SORT_FIELD = SORT_FIELDS["downloads"]

# CurseForge FileRelationType codes
RELATION_TYPES: Dict[int, DependencyType] = {
    1: "embedded",
    2: "optional",
    3: "required",
    4: "optional",
    5: "incompatible",
    6: "embedded",
}

SHA1_ALGO = 1


def classify_class_name(name: str) -> Optional[UnifiedClassification]:
    """Map a CurseForge class category name onto the unified taxonomy."""
    lowered = name.lower()
    if "mod" in lowered and "modpack" not in lowered:
        return UnifiedClassification.PLUGIN
    if "modpack" in lowered or "pack" in lowered:
        return UnifiedClassification.MODPACK
    if "resource" in lowered or "texture" in lowered or "art" in lowered:
        return UnifiedClassification.ART
    if "world" in lowered or "save" in lowered or "map" in lowered:
        return UnifiedClassification.SAVE
    if "data" in lowered:
        return UnifiedClassification.DATA
    return None


def _data(payload: Any) -> Any:
    return payload.get("data") if isinstance(payload, Mapping) else None


class CurseForgeProvider(ModProvider):
    """
    CurseForge Core API.

    Every query is scoped to one game, so a credential change triggers game
    discovery (``/v1/games``) and a reload of that game's class categories,
    which also drive the classification mapping.
    """

    id = "curseforge"
    display_name = "CurseForge"
    icon_url = "https://www.curseforge.com/favicon.ico"
    description = "Mods and modpacks from the CurseForge catalogue"
    requires_api_key = True
    capabilities = frozenset()

    api_key_header = "x-api-key"
    default_base_url = CURSEFORGE_API_BASE

    def __init__(
        self,
        *,
        game_slug: str = CURSEFORGE_GAME_SLUG,
        known_game_id: int = CURSEFORGE_GAME_ID,
        **kwargs: Any,
    ):
        super().__init__(**kwargs)
        self.game_slug = game_slug.lower()
        self.known_game_id = known_game_id
        self.game_id: Optional[int] = None
        self.categories: List[Mapping[str, Any]] = []
        self.classification_map: Dict[int, UnifiedClassification] = {}
        self._discovery_task: Optional[asyncio.Task] = None
        self.search_shapes = (
            ResponseShape("paginated", self._is_paginated, self._from_paginated),
        )

    # Configuration

    async def initialize(self, config: ProviderConfig) -> None:
        await super().initialize(config)
        if self.api_key:
            # Discovery runs here; a background run from set_api_key is redundant
            await self._cancel_discovery()
            await self.discover_game()

    def set_api_key(self, api_key: str) -> None:
        super().set_api_key(api_key)
        if self._discovery_task is not None and not self._discovery_task.done():
            self._discovery_task.cancel()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug(f"{self.log_tag} No running loop; game discovery deferred to next search")
            return
        self._discovery_task = loop.create_task(self.discover_game())
        self._discovery_task.add_done_callback(self._log_discovery_failure)

    async def _cancel_discovery(self) -> None:
        task, self._discovery_task = self._discovery_task, None
        if task is None or task.done():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def aclose(self) -> None:
        await self._cancel_discovery()
        await super().aclose()

    def _log_discovery_failure(self, task: "asyncio.Task[None]") -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"{self.log_tag} Failed to discover game: {type(error).__name__}: {error}")

    def _matches_game(self, game: Mapping[str, Any]) -> bool:
        slug = as_str(game.get("slug")).lower()
        name = as_str(game.get("name")).lower()
        return (
            slug == self.game_slug
            or name == self.game_slug
            or self.game_slug in slug
            or self.game_slug in name
            or as_int(game.get("id"), default=-1) == self.known_game_id
        )

    async def discover_game(self) -> None:
        """Resolve the game id all queries are scoped to, then load its categories."""
        if not self.api_key:
            return

        try:
            games = _data(await self._request_json("/v1/games"))
            games = games if isinstance(games, list) else []
            logger.info(f"{self.log_tag} Found {len(games)} games in CurseForge")
            match = next((g for g in games if isinstance(g, Mapping) and self._matches_game(g)), None)
        except Exception as e:
            logger.error(f"{self.log_tag} Failed to discover game: {type(e).__name__}: {e}")
            self.game_id = self.known_game_id
            logger.info(f"{self.log_tag} Using fallback game ID: {self.game_id}")
            return

        if match is not None:
            self.game_id = as_int(match.get("id"))
            logger.info(
                f"{self.log_tag} Discovered game ID: {self.game_id} "
                f"(name: {match.get('name')}, slug: {match.get('slug')})"
            )
        else:
            logger.warning(f"{self.log_tag} '{self.game_slug}' not found in games list, using known game ID")
            self.game_id = self.known_game_id
        await self.load_categories()

    async def load_categories(self) -> None:
        if not self.game_id:
            return

        try:
            payload = await self._request_json("/v1/categories", params={"gameId": str(self.game_id)})
        except Exception as e:
            logger.error(f"{self.log_tag} Failed to load categories: {type(e).__name__}: {e}")
            return

        categories = _data(payload)
        self.categories = [c for c in categories if isinstance(c, Mapping)] if isinstance(categories, list) else []
        self.classification_map = {}
        for category in self.categories:
            if not category.get("isClass"):
                continue
            classification = classify_class_name(as_str(category.get("name")))
            if classification is not None:
                self.classification_map[as_int(category.get("id"))] = classification
        logger.info(f"{self.log_tag} Loaded {len(self.categories)} categories")

    def get_classification(self, class_id: Any) -> UnifiedClassification:
        if not class_id:
            return UnifiedClassification.PLUGIN
        return self.classification_map.get(as_int(class_id), UnifiedClassification.PLUGIN)

    def class_id_for(self, classification: UnifiedClassification) -> Optional[int]:
        for class_id, mapped in self.classification_map.items():
            if mapped == classification:
                return class_id
        return None

    # Transforms

    def transform_file(self, file: Mapping[str, Any]) -> UnifiedVersion:
        game_versions = as_str_list(file.get("gameVersions"))
        hashes = file.get("hashes") if isinstance(file.get("hashes"), list) else []
        sha1 = next(
            (h.get("value") for h in hashes if isinstance(h, Mapping) and h.get("algo") == SHA1_ALGO),
            None,
        )
        return UnifiedVersion(
            id=as_str(file.get("id")),
            version=as_str(first_present(file, "displayName", "fileName")),
            # File objects carry no changelog
            changelog=None,
            downloads=as_int(file.get("downloadCount")),
            game_version=game_versions[0] if game_versions else "",
            release_date=as_str(file.get("fileDate")),
            file_size=as_int(file.get("fileLength")),
            file_name=as_str(file.get("fileName")),
            file_hash=as_optional_str(sha1),
        )

    def transform_category(self, category: Mapping[str, Any]) -> UnifiedCategory:
        return UnifiedCategory(
            id=as_str(category.get("id")),
            name=as_str(category.get("name")),
            slug=as_str(category.get("slug")),
            icon_url=as_optional_str(category.get("iconUrl")),
        )

    def transform_mod(self, mod: Mapping[str, Any]) -> UnifiedProject:
        authors = [a for a in mod.get("authors") or [] if isinstance(a, Mapping)]
        if authors:
            name = as_str(authors[0].get("name"), default="Unknown")
            author = UnifiedAuthor(
                id=as_str(authors[0].get("id"), default=name),
                username=name,
                display_name=name,
                avatar_url=as_optional_str(authors[0].get("avatarUrl")),
            )
        else:
            author = UnifiedAuthor(id="unknown", username="Unknown", display_name="Unknown")

        files = [f for f in mod.get("latestFiles") or [] if isinstance(f, Mapping)]
        screenshots = [s for s in mod.get("screenshots") or [] if isinstance(s, Mapping)]
        logo = mod.get("logo") if isinstance(mod.get("logo"), Mapping) else {}
        summary = as_str(mod.get("summary"))

        return UnifiedProject(
            id=as_str(mod.get("id")),
            slug=as_str(first_present(mod, "slug", "id")),
            provider_id=self.id,
            title=as_str(mod.get("name")),
            description=summary,
            short_description=truncate(summary, SHORT_DESCRIPTION_LENGTH),
            classification=self.get_classification(mod.get("classId")),
            author=author,
            categories=[
                self.transform_category(c) for c in mod.get("categories") or [] if isinstance(c, Mapping)
            ],
            downloads=as_int(mod.get("downloadCount")),
            rating=as_optional_float(mod.get("rating")),
            rating_count=as_optional_int(mod.get("thumbsUpCount")),
            icon_url=as_optional_str(logo.get("url")),
            banner_url=as_optional_str(screenshots[0].get("url")) if screenshots else None,
            gallery_images=[as_str(s.get("url")) for s in screenshots if s.get("url")],
            versions=[self.transform_file(f) for f in files],
            game_versions=as_str_list(
                [i.get("gameVersion") for i in mod.get("latestFilesIndexes") or [] if isinstance(i, Mapping)]
            ),
            created_at=as_str(mod.get("dateCreated")),
            updated_at=as_str(mod.get("dateModified")),
            featured=bool(mod.get("isFeatured")),
            raw=mod,
        )

    # Search

    @staticmethod
    def _is_paginated(payload: Any) -> bool:
        return (
            isinstance(payload, Mapping)
            and isinstance(payload.get("data"), list)
            and isinstance(payload.get("pagination"), Mapping)
        )

    def _from_paginated(self, payload: Mapping[str, Any], params: UnifiedSearchParams) -> UnifiedSearchResponse:
        pagination = payload["pagination"]
        index = as_int(pagination.get("index"))
        result_count = as_int(pagination.get("resultCount"), default=len(payload["data"]))
        total = as_int(pagination.get("totalCount"))
        page_size = as_int(pagination.get("pageSize")) or min(params.page_size, MAX_PAGE_SIZE)
        return UnifiedSearchResponse(
            projects=[self.transform_mod(m) for m in payload["data"] if isinstance(m, Mapping)],
            total=total,
            page=index // page_size + 1,
            page_size=page_size,
            has_more=index + result_count < total,
            provider_id=self.id,
        )

    def build_search_query(self, params: UnifiedSearchParams) -> Dict[str, str]:
        query: Dict[str, str] = {"gameId": str(self.game_id)}
        if params.query:
            query["searchFilter"] = params.query
        if params.classification:
            class_id = self.class_id_for(params.classification)
            if class_id is not None:
                query["classId"] = str(class_id)
        if params.categories:
            query["categoryIds"] = f"[{','.join(params.categories)}]"
        if params.game_version:
            query["gameVersion"] = params.game_version

        page_size = min(params.page_size, MAX_PAGE_SIZE)
        query["index"] = str((params.page - 1) * page_size)
        query["pageSize"] = str(page_size)

        if params.sort_by:
            query["sortField"] = str(SORT_FIELDS.get(params.sort_by, DEFAULT_SORT_FIELD))
            query["sortOrder"] = "asc" if params.sort_order == "asc" else "desc"
        return query

    async def search_projects(self, params: UnifiedSearchParams) -> UnifiedSearchResponse:
        if not self.game_id:
            await self.discover_game()

        if not self.game_id:
            logger.warning(f"{self.log_tag} Cannot search - game ID not found")
            return UnifiedSearchResponse.empty(self.id, params)

        payload = await self._request_json("/v1/mods/search", params=self.build_search_query(params))
        return normalize_search_payload(payload, self.search_shapes, params, self.id)

    # Single entities

    async def get_project(self, project_id: str) -> UnifiedProject:
        mod = _data(await self._request_json(f"/v1/mods/{project_id}"))
        if not isinstance(mod, Mapping):
            raise self._malformed(f"mod {project_id}")
        return self.transform_mod(mod)

    def _malformed(self, what: str) -> UpstreamError:
        return UpstreamError(f"CurseForge returned no data for {what}", provider=self.id)

    async def get_categories(self) -> List[UnifiedCategory]:
        if not self.categories and self.game_id:
            await self.load_categories()
        return [self.transform_category(c) for c in self.categories if c.get("isClass")]

    async def _get_file(self, project_id: str, version_id: str) -> Mapping[str, Any]:
        file = _data(await self._request_json(f"/v1/mods/{project_id}/files/{version_id}"))
        if not isinstance(file, Mapping):
            raise self._malformed(f"file {project_id}/{version_id}")
        return file

    async def _resolve_dependency(self, dep: Mapping[str, Any]) -> UnifiedDependency:
        mod_id = as_str(dep.get("modId"))
        dep_type = RELATION_TYPES.get(as_int(dep.get("relationType")), "optional")
        try:
            mod = _data(await self._request_json(f"/v1/mods/{mod_id}"))
            name = as_str(mod.get("name")) if isinstance(mod, Mapping) else ""
        except Exception as e:
            logger.warning(f"{self.log_tag} Could not resolve dependency {mod_id}: {type(e).__name__}")
            name = ""

        if not name:
            return UnifiedDependency(
                project_id=mod_id, project_name=f"Mod #{mod_id}", type=dep_type, resolved=False
            )
        return UnifiedDependency(project_id=mod_id, project_name=name, type=dep_type)

    async def get_version_dependencies(
        self, project_id: str, version_id: str
    ) -> List[UnifiedDependency]:
        try:
            file = await self._get_file(project_id, version_id)
            deps = [
                d for d in file.get("dependencies") or []
                if isinstance(d, Mapping) and d.get("modId") not in (None, "")
            ]
            return list(await asyncio.gather(*(self._resolve_dependency(d) for d in deps)))
        except Exception as e:
            logger.error(
                f"{self.log_tag} Error getting dependencies for {project_id}/{version_id}: "
                f"{type(e).__name__}: {e}"
            )
            return []

    async def download_version(self, project_id: str, version_id: str) -> DownloadStream:
        self._require_api_key()
        file = await self._get_file(project_id, version_id)
        download_url = as_optional_str(file.get("downloadUrl"))

        if not download_url:
            # Files with third-party distribution disabled omit the URL inline
            payload = await self._request_json(f"/v1/mods/{project_id}/files/{version_id}/download-url")
            download_url = as_optional_str(_data(payload))

        if not download_url:
            raise DownloadUnavailableError(
                "Download URL not available for this file",
                provider=self.id,
                detail={"project_id": project_id, "version_id": version_id},
            )

        return await self._open_stream(download_url)
