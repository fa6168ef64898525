"""Marketplace adapters implementing the unified provider contract."""

from mods.providers.base import ModProvider
from mods.providers.curseforge import CurseForgeProvider
from mods.providers.modtale import ModtaleProvider

__all__ = [
    "ModProvider",
    "CurseForgeProvider",
    "ModtaleProvider",
]
