"""
Settings store used to persist provider credentials.

Keys are namespaced by provider id (``"<providerId>.apiKey"``). Two stores are
provided: an in-memory one for tests and single-process use, and one backed by
the ``Setting`` table through SQLModel.
"""

import logging
import os
from datetime import datetime
from typing import Callable, Dict, List, Optional, Protocol, Tuple

from sqlmodel.ext.asyncio.session import AsyncSession

from models.settings import Setting

logger = logging.getLogger(__name__)


class SettingsStore(Protocol):
    async def get(self, key: str) -> Optional[str]:
        ...

    async def set(self, key: str, value: str, actor: Optional[str] = None) -> None:
        ...


class InMemorySettingsStore:
    """Dict-backed store; keeps a write log of (key, actor) for auditing."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.values: Dict[str, str] = dict(initial or {})
        self.writes: List[Tuple[str, Optional[str]]] = []

    async def get(self, key: str) -> Optional[str]:
        return self.values.get(key)

    async def set(self, key: str, value: str, actor: Optional[str] = None) -> None:
        self.values[key] = value
        self.writes.append((key, actor))
        logger.info(f"[SettingsStore] Updated {key}", extra={"actor": actor})


class DatabaseSettingsStore:
    """Store backed by the ``setting`` table."""

    def __init__(self, session_factory: Optional[Callable[[], AsyncSession]] = None):
        if session_factory is None:
            from database import async_session_factory

            session_factory = async_session_factory
        self._session_factory = session_factory

    async def get(self, key: str) -> Optional[str]:
        async with self._session_factory() as session:
            setting = await session.get(Setting, key)
            return setting.value if setting else None

    async def set(self, key: str, value: str, actor: Optional[str] = None) -> None:
        async with self._session_factory() as session:
            setting = await session.get(Setting, key)
            if setting is None:
                setting = Setting(key=key, value=value, updated_by=actor)
            else:
                setting.value = value
                setting.updated_by = actor
                setting.updated_at = datetime.utcnow()
            session.add(setting)
            await session.commit()
        logger.info(f"[SettingsStore] Updated {key}", extra={"actor": actor})


def create_settings_store() -> SettingsStore:
    """Pick the store from ``MOD_SETTINGS_BACKEND`` (``database`` or ``memory``)."""
    backend = (os.getenv("MOD_SETTINGS_BACKEND", "database") or "").strip().lower()
    if backend == "memory":
        return InMemorySettingsStore()
    return DatabaseSettingsStore()
