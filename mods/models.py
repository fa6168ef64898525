"""Unified data model shared by every mod provider adapter."""

from __future__ import annotations

from enum import Enum
from typing import Any, Iterable, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator
from pydantic.alias_generators import to_camel

from mods.constants import DEFAULT_PAGE, DEFAULT_PAGE_SIZE

SortBy = Literal["downloads", "rating", "updated", "created", "name"]
SortOrder = Literal["asc", "desc"]
DependencyType = Literal["required", "optional", "incompatible", "embedded"]


class UnifiedClassification(str, Enum):
    """Project-type taxonomy replacing each provider's own class system."""

    PLUGIN = "PLUGIN"
    DATA = "DATA"
    ART = "ART"
    SAVE = "SAVE"
    MODPACK = "MODPACK"


def coerce_classification(value: Any) -> UnifiedClassification:
    """Map any upstream value onto the closed enum, defaulting to PLUGIN."""
    if isinstance(value, UnifiedClassification):
        return value
    if isinstance(value, str):
        try:
            return UnifiedClassification(value.strip().upper())
        except ValueError:
            pass
    return UnifiedClassification.PLUGIN


class ProviderCapability(str, Enum):
    """Optional adapter operations a caller may query before using them."""

    PROJECT_BY_SLUG = "project_by_slug"
    TAGS = "tags"
    DIRECT_DOWNLOAD_URL = "direct_download_url"


class UnifiedModel(BaseModel):
    """Base for unified entities: camelCase on the wire, immutable once built."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class ProviderConfig(UnifiedModel):
    """
    Adapter initialization parameters.

    ``rate_limit`` (requests per minute) is an advisory hint recorded on the
    adapter for callers to read; adapters do not throttle on it.
    """

    api_key: Optional[str] = None
    rate_limit: Optional[int] = None
    timeout: Optional[float] = Field(None, gt=0)


class ProviderInfo(UnifiedModel):
    """Read-only projection of an adapter's identity and configuration state."""

    id: str
    display_name: str
    icon_url: Optional[str] = None
    requires_api_key: bool
    is_configured: bool
    description: Optional[str] = None


class UnifiedAuthor(UnifiedModel):
    id: str
    username: str
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None

    @classmethod
    def from_name(cls, name: str) -> "UnifiedAuthor":
        return cls(id=name, username=name, display_name=name)


class UnifiedCategory(UnifiedModel):
    id: str
    name: str
    slug: str
    icon_url: Optional[str] = None


class UnifiedTag(UnifiedModel):
    id: str
    name: str
    slug: str


class UnifiedVersion(UnifiedModel):
    """One downloadable artifact of a project."""

    id: str
    version: str
    changelog: Optional[str] = None
    downloads: int = 0
    game_version: str = ""
    release_date: str = ""
    file_size: int = 0
    file_name: str = ""
    file_hash: Optional[str] = None

    @field_validator("file_size", mode="before")
    @classmethod
    def _non_negative_size(cls, value: Any) -> int:
        try:
            size = int(value or 0)
        except (TypeError, ValueError):
            return 0
        return max(size, 0)


class UnifiedDependency(UnifiedModel):
    """
    Reference from one version to another project.

    ``required`` is derived from ``type`` so the two can never disagree.
    ``resolved`` is False when the project name is a placeholder because the
    referenced project could not be looked up.
    """

    project_id: str
    project_name: str
    version_id: Optional[str] = None
    type: DependencyType = "required"
    resolved: bool = True

    @computed_field
    @property
    def required(self) -> bool:
        return self.type == "required"


class UnifiedProject(UnifiedModel):
    # Core identification
    id: str
    slug: str
    provider_id: str

    # Basic info
    title: str
    description: str = ""
    short_description: Optional[str] = None
    classification: UnifiedClassification = UnifiedClassification.PLUGIN

    author: UnifiedAuthor

    # Categorization
    categories: List[UnifiedCategory] = Field(default_factory=list)
    tags: Optional[List[UnifiedTag]] = None

    # Stats
    downloads: int = 0
    rating: Optional[float] = None
    rating_count: Optional[int] = None
    followers: Optional[int] = None

    # Media
    icon_url: Optional[str] = None
    banner_url: Optional[str] = None
    gallery_images: Optional[List[str]] = None

    # Versions, provider-defined order (typically newest first)
    versions: List[UnifiedVersion] = Field(default_factory=list)
    game_versions: List[str] = Field(default_factory=list)

    created_at: str = ""
    updated_at: str = ""
    featured: bool = False

    # Untransformed upstream payload; opaque to this package
    raw: Any = Field(None, alias="_raw")

    @field_validator("classification", mode="before")
    @classmethod
    def _closed_classification(cls, value: Any) -> UnifiedClassification:
        return coerce_classification(value)

    @field_validator("game_versions", mode="before")
    @classmethod
    def _distinct_game_versions(cls, value: Optional[Iterable[Any]]) -> List[str]:
        if not value:
            return []
        seen: List[str] = []
        for item in value:
            text = str(item).strip() if item is not None else ""
            if text and text not in seen:
                seen.append(text)
        return seen

    @computed_field(alias="latestVersion")
    @property
    def latest_version(self) -> Optional[UnifiedVersion]:
        return self.versions[0] if self.versions else None

    def find_version(self, version_id: str) -> Optional[UnifiedVersion]:
        for version in self.versions:
            if version.id == version_id:
                return version
        return None


class UnifiedSearchParams(UnifiedModel):
    query: Optional[str] = None
    classification: Optional[UnifiedClassification] = None
    categories: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    game_version: Optional[str] = None
    page: int = Field(DEFAULT_PAGE, ge=1)
    page_size: int = Field(DEFAULT_PAGE_SIZE, ge=1)
    sort_by: Optional[SortBy] = None
    sort_order: Optional[SortOrder] = None


class UnifiedSearchResponse(UnifiedModel):
    projects: List[UnifiedProject] = Field(default_factory=list)
    total: int = 0
    page: int = DEFAULT_PAGE
    page_size: int = DEFAULT_PAGE_SIZE
    has_more: bool = False
    provider_id: str

    @classmethod
    def empty(cls, provider_id: str, params: UnifiedSearchParams) -> "UnifiedSearchResponse":
        return cls(
            projects=[],
            total=0,
            page=params.page,
            page_size=params.page_size,
            has_more=False,
            provider_id=provider_id,
        )


class MultiProviderSearchResponse(UnifiedModel):
    """One search response per attempted provider, in registry order."""

    results: List[UnifiedSearchResponse] = Field(default_factory=list)

    @computed_field(alias="totalAcrossProviders")
    @property
    def total_across_providers(self) -> int:
        return sum(result.total for result in self.results)


class UnifiedModMetadata(UnifiedModel):
    """What was installed, so callers can persist it without a second lookup."""

    provider_id: str
    project_id: str
    project_title: str
    project_icon_url: Optional[str] = None
    version_id: str
    version_name: str
    classification: UnifiedClassification
    file_size: Optional[int] = None
    file_hash: Optional[str] = None
