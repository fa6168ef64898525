"""Unified mod provider abstraction over multiple mod marketplaces."""

from .models import (
    MultiProviderSearchResponse,
    ProviderCapability,
    ProviderConfig,
    ProviderInfo,
    UnifiedAuthor,
    UnifiedCategory,
    UnifiedClassification,
    UnifiedDependency,
    UnifiedModMetadata,
    UnifiedProject,
    UnifiedSearchParams,
    UnifiedSearchResponse,
    UnifiedTag,
    UnifiedVersion,
)
from .providers import CurseForgeProvider, ModProvider, ModtaleProvider
from .registry import ModProviderRegistry
from .service import InstallationDownload, ModProviderService
from .streams import DownloadStream

__all__ = [
    "MultiProviderSearchResponse",
    "ProviderCapability",
    "ProviderConfig",
    "ProviderInfo",
    "UnifiedAuthor",
    "UnifiedCategory",
    "UnifiedClassification",
    "UnifiedDependency",
    "UnifiedModMetadata",
    "UnifiedProject",
    "UnifiedSearchParams",
    "UnifiedSearchResponse",
    "UnifiedTag",
    "UnifiedVersion",
    "CurseForgeProvider",
    "ModProvider",
    "ModtaleProvider",
    "ModProviderRegistry",
    "InstallationDownload",
    "ModProviderService",
    "DownloadStream",
]
